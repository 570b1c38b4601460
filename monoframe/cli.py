"""Command line front end.

Usage:
  monoframe [-d [ALGO]] [-t VALUE] [-i] [-m MODE] [--delay MS] [--no-header] [-y]
            INPUT [INPUT ...] OUTPUT

The output's extension picks the container: .gif (animated GIF), .anm
(packed frames behind a 16 byte ANM0 header), anything else (raw packed frames).
"""

from __future__ import annotations

import argparse
import logging
import sys

from . import __version__
from .container import ask_to_overwrite
from .convert import RunStatus, convert, print_summary
from .dither import DitherAlgorithm
from .options import DEFAULT_THRESHOLD, ConvertOptions, PreprocessSettings
from .packing import AddressMode

log = logging.getLogger(__name__)

ADDRESS_MODES = {mode.name.lower(): mode for mode in AddressMode}


def _dither_arg(text: str) -> DitherAlgorithm:
    try:
        return DitherAlgorithm.from_name(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _threshold_arg(text: str) -> int:
    try:
        value = int(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid threshold: {text!r}") from e
    if not 0 <= value <= 255:
        raise argparse.ArgumentTypeError(f"Threshold out of range, expected 0-255 got {value}")
    return value


def _delay_arg(text: str) -> int:
    try:
        value = int(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid delay: {text!r}") from e
    if not 0 <= value <= 0xFFFF:
        raise argparse.ArgumentTypeError(f"Delay out of range, expected 0-65535 got {value}")
    return value


DITHER_FLAGS = ("-d", "--dither")


def _is_algorithm(text: str) -> bool:
    try:
        DitherAlgorithm.from_name(text)
    except ValueError:
        return False
    return True


def _attach_dither_values(argv: list[str]) -> list[str]:
    """Glue a separate algorithm name onto a bare -d/--dither.

    A bare flag means Floyd-Steinberg. The following token is taken as its value
    only when it names an algorithm, so ``-d a.png out.gif`` keeps a.png as an input.
    """
    out = []
    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg == "--":
            out.extend(argv[i:])
            break
        if arg in DITHER_FLAGS:
            value = DitherAlgorithm.FLOYD_STEINBERG.cli_name
            if i + 1 < len(argv) and _is_algorithm(argv[i + 1]):
                i += 1
                value = argv[i]
            arg = f"--dither={value}"
        out.append(arg)
        i += 1
    return out


def build_parser() -> argparse.ArgumentParser:
    algorithms = "\n".join(f"  {a.cli_name:<8} {a.display_name}" for a in DitherAlgorithm)
    parser = argparse.ArgumentParser(
        prog="monoframe",
        description="Convert images to 1bpp framebuffers for SSD1306-style displays, or to an animated GIF",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Supported dithering algorithms:
{algorithms}

Examples:
  # Single 128x64 image to a raw SSD1306 framebuffer
  monoframe logo.png logo.bin

  # Animation with a header, ordered dither, 50 ms per frame
  monoframe -d b8x8 --delay 50 frame_*.png anim.anm

  # Preview the result as a GIF
  monoframe -d fs frame_*.png preview.gif
        """,
    )

    parser.add_argument("files", nargs="+", metavar="FILE",
                        help="Input images followed by the output file")
    parser.add_argument("-d", "--dither", type=_dither_arg, metavar="ALGORITHM",
                        help="Dither output (a bare -d uses fs)")
    parser.add_argument("-t", "--threshold", type=_threshold_arg, default=DEFAULT_THRESHOLD,
                        help=f"Threshold for non dithered output [0-255] (default: {DEFAULT_THRESHOLD})")
    parser.add_argument("-i", "--invert", action="store_true", help="Invert output")
    parser.add_argument("-m", "--mode", choices=sorted(ADDRESS_MODES), default="horizontal",
                        help="Framebuffer address mode (default: horizontal)")
    parser.add_argument("--delay", type=_delay_arg, default=0, metavar="MS",
                        help="Delay between frames in milliseconds (default: 0)")
    parser.add_argument("--no-header", dest="write_header", action="store_false",
                        help="Do not write the ANM header to .anm output")
    parser.add_argument("-y", "--yes", action="store_true",
                        help="Overwrite the output without asking")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def parse_args(argv: list[str] | None = None) -> tuple[argparse.Namespace, ConvertOptions]:
    parser = build_parser()
    if argv is None:
        argv = sys.argv[1:]
    args = parser.parse_intermixed_args(_attach_dither_values(list(argv)))

    if len(args.files) < 2:
        parser.error("need at least one input file and an output file")

    options = ConvertOptions(
        input_paths=tuple(args.files[:-1]),
        output_path=args.files[-1],
        address_mode=ADDRESS_MODES[args.mode],
        preprocess=PreprocessSettings(
            invert=args.invert,
            dither=args.dither,
            threshold=args.threshold,
        ),
        delay_ms=args.delay,
        write_header=args.write_header,
    )
    return args, options


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    args, options = parse_args(argv)
    configure_logging(args.verbose)

    confirm = (lambda path: True) if args.yes else ask_to_overwrite
    report = convert(options, confirm=confirm)
    print_summary(report, options)

    if report.status is RunStatus.CANCELLED:
        return 0
    if not report.ok:
        log.error("Conversion of \"%s\" finished with errors", options.output_path)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
