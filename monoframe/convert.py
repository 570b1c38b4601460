"""Drive a whole run: inputs -> 1-bit frames -> packed framebuffers -> container.

The first input fixes the geometry of the run. Later inputs with another size,
undecodable inputs and failed conversions are logged, counted and skipped.
Failing to read the first input or to open the output aborts the run.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TextIO

from PIL import Image

from .container import (
    Container,
    ConfirmOverwrite,
    ContainerKind,
    OpenStatus,
    OutputSettings,
    ask_to_overwrite,
    container_kind_for,
    create_container,
)
from .errors import DimensionMismatchError, FrameError, InputLoadError, PreprocessError
from .options import ConvertOptions
from .packing import allocate_framebuffer, pack
from .preprocess import describe, make_monochrome

log = logging.getLogger(__name__)


class RunStatus(Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class ConversionReport:
    output_path: Path
    kind: ContainerKind
    status: RunStatus = RunStatus.FAILED
    width: int = 0
    height: int = 0
    files_seen: int = 0
    frames_written: int = 0
    errors: int = 0
    failed_files: list[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is RunStatus.COMPLETED and self.errors == 0

    def record_error(self, path: Path) -> None:
        self.errors += 1
        self.failed_files.append(path)


def load_image(path: Path) -> Image.Image:
    """Open and fully decode ``path``."""
    try:
        image = Image.open(path)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise InputLoadError(path, f"cannot open image ({e})") from e

    try:
        image.load()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        image.close()
        raise InputLoadError(path, f"cannot decode image ({e})") from e
    return image


def _convert_frame(image: Image.Image, path: Path, options: ConvertOptions) -> Image.Image:
    try:
        mono = make_monochrome(image, options.preprocess)
    except (OSError, ValueError) as e:
        raise PreprocessError(path, f"1-bit conversion failed ({e})") from e
    if mono is None:
        raise PreprocessError(path, "1-bit conversion failed")
    return mono


def _write_frame(
    container: Container,
    image: Image.Image,
    path: Path,
    options: ConvertOptions,
    framebuffer: bytearray | None,
) -> bool:
    expected = (container.settings.width, container.settings.height)
    if image.size != expected:
        raise DimensionMismatchError(path, image.size, expected)

    mono = _convert_frame(image, path, options)
    try:
        if framebuffer is None:
            return container.add_frame(mono)
        pack(options.address_mode, mono, expected[0], expected[1], framebuffer)
        return container.add_frame(framebuffer)
    finally:
        mono.close()


def convert(options: ConvertOptions, confirm: ConfirmOverwrite = ask_to_overwrite) -> ConversionReport:
    kind = container_kind_for(options.output_path)
    report = ConversionReport(output_path=options.output_path, kind=kind)
    inputs = options.input_paths

    try:
        first = load_image(inputs[0])
    except InputLoadError as e:
        log.error("%s", e)
        report.files_seen = 1
        report.record_error(e.path)
        return report

    opened = False
    try:
        report.width, report.height = first.size
        if kind is not ContainerKind.GIF and (report.width % 8 or report.height % 8):
            log.error(
                "%s: image size %dx%d is not a multiple of 8, cannot pack it",
                inputs[0], report.width, report.height,
            )
            report.files_seen = 1
            report.record_error(inputs[0])
            return report

        settings = OutputSettings(
            path=options.output_path,
            width=report.width,
            height=report.height,
            address_mode=options.address_mode,
            delay_ms=options.delay_ms,
            write_header=options.write_header,
        )
        container = create_container(settings, kind, confirm)
        status = container.open()
        if status is OpenStatus.CANCELLED:
            report.status = RunStatus.CANCELLED
            return report
        if status is OpenStatus.FAILED:
            report.files_seen = 1
            report.record_error(inputs[0])
            return report
        opened = True
    finally:
        if not opened:
            first.close()

    # GIF pages are encoded from the 1-bit image, everything else goes through one reused buffer.
    framebuffer = None if kind is ContainerKind.GIF else allocate_framebuffer(report.width, report.height)

    log.info("Converting %d input file(s)...", len(inputs))
    with container:
        for index, path in enumerate(inputs):
            report.files_seen += 1
            image = None
            try:
                image = first if index == 0 else load_image(path)
                if not _write_frame(container, image, path, options, framebuffer):
                    log.error("%s: failed to write frame to \"%s\"", path, options.output_path)
                    report.record_error(path)
            except FrameError as e:
                log.error("%s", e)
                report.record_error(path)
            finally:
                if image is not None:
                    image.close()

        report.frames_written = container.frames_written

    report.status = RunStatus.COMPLETED
    return report


def print_summary(report: ConversionReport, options: ConvertOptions, out: TextIO | None = None) -> None:
    out = out or sys.stdout

    if report.status is RunStatus.CANCELLED:
        print("Cancelled.", file=out)
        return

    if report.kind is ContainerKind.GIF:
        header = "GIF"
    elif report.kind is ContainerKind.ANM and options.write_header:
        header = "Yes"
    else:
        header = "No"

    label, value = describe(options.preprocess)

    print(f'Stats for "{report.output_path}":', file=out)
    print(f"Format:\t\t{report.kind.value}", file=out)
    print(f"Header:\t\t{header}", file=out)
    if report.kind is not ContainerKind.GIF:
        print(f"Address mode:\t{options.address_mode.label}", file=out)
    print(f"Size:\t\t{report.width}x{report.height}", file=out)
    print(f"Frames written:\t{report.frames_written} of {report.files_seen}", file=out)
    print(f"Inverted?\t{'Yes' if options.preprocess.invert else 'No'}", file=out)
    print(f"{label}:\t{value}", file=out)
    if report.frames_written > 1:
        print(f"Frame/ms:\t{options.delay_ms}", file=out)

    if report.status is RunStatus.FAILED:
        print("Aborted, see the errors above.", file=out)
    elif report.errors:
        print(f"Errors:\t\t{report.errors} file(s) failed, see the messages above.", file=out)
