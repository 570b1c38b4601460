"""Per-file failures the conversion loop recovers from.

Anything raised from this hierarchy is logged against the offending input
file, counted as an error, and the run moves on to the next file.
"""

from __future__ import annotations

from pathlib import Path


class FrameError(Exception):
    def __init__(self, path: Path | str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class InputLoadError(FrameError):
    """The input could not be opened or decoded."""


class DimensionMismatchError(FrameError):
    def __init__(self, path: Path | str, size: tuple[int, int], expected: tuple[int, int]):
        super().__init__(
            path,
            f"image size is {size[0]}x{size[1]}, expected {expected[0]}x{expected[1]}",
        )
        self.size = size
        self.expected = expected


class PreprocessError(FrameError):
    """Conversion to a 1-bit image produced no result."""
