"""Run configuration, built once by the command line front end (or by callers directly)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .dither import DitherAlgorithm
from .packing import AddressMode

DEFAULT_THRESHOLD = 128
UINT16_MAX = 0xFFFF


@dataclass(frozen=True)
class PreprocessSettings:
    """How a decoded frame is turned into a 1-bit image.

    ``dither`` set means dithering is enabled with that algorithm; ``None``
    means the fixed luminance ``threshold`` is used instead.
    """

    invert: bool = False
    dither: DitherAlgorithm | None = None
    threshold: int = DEFAULT_THRESHOLD

    def __post_init__(self):
        if not 0 <= self.threshold <= 255:
            raise ValueError(f"Threshold out of range, expected 0-255 got {self.threshold}")

    @property
    def dither_enabled(self) -> bool:
        return self.dither is not None


@dataclass(frozen=True)
class ConvertOptions:
    input_paths: tuple[Path, ...]
    output_path: Path
    address_mode: AddressMode = AddressMode.HORIZONTAL
    preprocess: PreprocessSettings = field(default_factory=PreprocessSettings)
    delay_ms: int = 0
    write_header: bool = True

    def __post_init__(self):
        # Accept any iterable of str/Path, store normalised.
        object.__setattr__(self, "input_paths", tuple(Path(p) for p in self.input_paths))
        object.__setattr__(self, "output_path", Path(self.output_path))
        object.__setattr__(self, "address_mode", AddressMode(self.address_mode))

        if not self.input_paths:
            raise ValueError("At least one input file is required")
        if not 0 <= self.delay_ms <= UINT16_MAX:
            raise ValueError(f"Frame delay out of range, expected 0-{UINT16_MAX} got {self.delay_ms}")
