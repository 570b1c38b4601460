"""Output containers: raw framebuffer dump, ANM animation file, animated GIF.

All three share one lifecycle: ``open()`` -> ``add_frame()`` * N -> ``close()``.
None of them raise for I/O problems; ``open()`` reports an ``OpenStatus``,
``add_frame()`` a bool, and ``close()`` is safe to call any number of times.

ANM layout (little-endian, 16 byte header followed by packed frames):

    offset size field
    0      4    magic "ANM0"
    4      1    address mode (0=Horizontal, 1=Vertical, 2=Linear)
    5      1    compression (always 0)
    6      2    frame count
    8      2    delay between frames (ms)
    10     2    width
    12     2    height
    14     2    reserved (0)

The header is written as zeros on open and backpatched with the final values
on close, so an ANM file from an interrupted run reports 0 frames.
"""

from __future__ import annotations

import logging
import os
import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from PIL import GifImagePlugin, Image

from .packing import AddressMode, framebuffer_size

log = logging.getLogger(__name__)

ANM_MAGIC = b"ANM0"
ANM_HEADER_FORMAT = "<4sBBHHHHH"
ANM_HEADER_SIZE = struct.calcsize(ANM_HEADER_FORMAT)
ANM_MAX_FRAMES = 0xFFFF

# Key of the per-frame display time, as GIF frame metadata.
FRAME_TIME_KEY = "duration"

# Global GIF palette: index 0 black, index 1 white.
GIF_PALETTE = b"\x00\x00\x00\xff\xff\xff"
GIF_LOOP_FOREVER = 0
GIF_TRAILER = b";"


class ContainerKind(Enum):
    RAW = "RAW"
    ANM = "ANM"
    GIF = "GIF"


class OpenStatus(Enum):
    OPENED = "opened"
    CANCELLED = "cancelled"  # destination exists and the user declined to overwrite
    FAILED = "failed"


def container_kind_for(path: Path | str) -> ContainerKind:
    """Pick the container from the output name's last four characters (case-insensitive)."""
    suffix = str(path)[-4:].lower()
    if suffix == ".gif":
        return ContainerKind.GIF
    if suffix == ".anm":
        return ContainerKind.ANM
    return ContainerKind.RAW


def is_output_gif(path: Path | str) -> bool:
    return container_kind_for(path) is ContainerKind.GIF


def is_output_anm(path: Path | str) -> bool:
    return container_kind_for(path) is ContainerKind.ANM


def _reason(e: Exception) -> str:
    return getattr(e, "strerror", None) or str(e)


def ask_to_overwrite(path: Path) -> bool:
    """Blocking Y/N prompt on the terminal. Anything but y/yes (or EOF) declines."""
    try:
        answer = input(f'File "{path}" already exists. Overwrite? (Y/N) ')
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


@dataclass
class AnmHeader:
    address_mode: int = 0
    compression: int = 0
    frame_count: int = 0
    delay_ms: int = 0
    width: int = 0
    height: int = 0
    reserved: int = 0
    magic: bytes = ANM_MAGIC

    def pack(self) -> bytes:
        return struct.pack(
            ANM_HEADER_FORMAT,
            self.magic,          # magic / version
            self.address_mode,   # address mode
            self.compression,    # compression type
            self.frame_count,    # frame count
            self.delay_ms,       # delay between frames
            self.width,          # width
            self.height,         # height
            self.reserved,       # reserved
        )

    @classmethod
    def unpack(cls, data: bytes) -> "AnmHeader":
        magic, mode, compression, frames, delay, width, height, reserved = struct.unpack(
            ANM_HEADER_FORMAT, data[:ANM_HEADER_SIZE]
        )
        return cls(
            address_mode=mode,
            compression=compression,
            frame_count=frames,
            delay_ms=delay,
            width=width,
            height=height,
            reserved=reserved,
            magic=magic,
        )

    @staticmethod
    def placeholder() -> bytes:
        return bytes(ANM_HEADER_SIZE)


@dataclass(frozen=True)
class OutputSettings:
    path: Path
    width: int
    height: int
    address_mode: AddressMode = AddressMode.HORIZONTAL
    delay_ms: int = 0
    write_header: bool = True

    @property
    def frame_size(self) -> int:
        return framebuffer_size(self.width, self.height)


ConfirmOverwrite = Callable[[Path], bool]


class Container(ABC):
    """Shared open/add_frame/close state machine. Subclasses provide the backend hooks."""

    kind: ContainerKind

    def __init__(self, settings: OutputSettings, confirm: ConfirmOverwrite = ask_to_overwrite):
        self.settings = settings
        self.frames_written = 0
        self._confirm = confirm

    @property
    def path(self) -> Path:
        return self.settings.path

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    def open(self) -> OpenStatus:
        if self.is_open:
            log.error('"%s" is already open', self.path)
            return OpenStatus.FAILED

        if self.path.exists() and not self._confirm(self.path):
            log.debug('Not overwriting "%s"', self.path)
            return OpenStatus.CANCELLED

        try:
            self._open_backend()
        except (OSError, ValueError) as e:
            log.error('Failed to open "%s" for write: %s', self.path, _reason(e))
            self._release()
            return OpenStatus.FAILED

        self.frames_written = 0
        log.debug('Opened "%s" as %s', self.path, self.kind.value)
        return OpenStatus.OPENED

    def add_frame(self, frame) -> bool:
        if not self.is_open:
            log.error('Cannot write a frame, "%s" is not open', self.path)
            return False
        if not self._write_frame(frame):
            return False
        self.frames_written += 1
        return True

    def close(self) -> None:
        if not self.is_open:
            return
        try:
            self._finalize()
        except (OSError, ValueError) as e:
            log.error('Failed to finalize "%s": %s', self.path, _reason(e))
        finally:
            self._release()
        log.debug('Closed "%s" after %d frame(s)', self.path, self.frames_written)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # Backend hooks
    @abstractmethod
    def _open_backend(self) -> None:
        """Acquire the file handle. Raise OSError or ValueError on failure."""

    @abstractmethod
    def _write_frame(self, frame) -> bool:
        ...

    @abstractmethod
    def _finalize(self) -> None:
        """Flush whatever the format needs at the end of the file."""

    @abstractmethod
    def _release(self) -> None:
        ...


class RawContainer(Container):
    """Packed frames back to back, no header."""

    kind = ContainerKind.RAW

    def __init__(self, settings: OutputSettings, confirm: ConfirmOverwrite = ask_to_overwrite):
        super().__init__(settings, confirm)
        self._fp = None

    @property
    def is_open(self) -> bool:
        return self._fp is not None

    def _open_backend(self) -> None:
        self._fp = open(self.path, "w+b")

    def _write_frame(self, data: bytes | bytearray) -> bool:
        expected = self.settings.frame_size
        if len(data) != expected:
            log.error('Frame is %d bytes, expected %d for "%s"', len(data), expected, self.path)
            return False

        try:
            written = self._fp.write(data)
        except OSError as e:
            log.error('Write to "%s" failed: %s', self.path, _reason(e))
            return False

        if written != expected:
            log.error('Short write to "%s": %s of %d bytes', self.path, written, expected)
            return False
        return True

    def _finalize(self) -> None:
        self._fp.flush()

    def _release(self) -> None:
        if self._fp is not None:
            self._fp.close()
            self._fp = None


class HeaderState(Enum):
    NONE = "none"                # header disabled
    PLACEHOLDER = "placeholder"  # zeros on disk, frame count unknown
    FINAL = "final"              # backpatched with the final values


class AnmContainer(RawContainer):
    kind = ContainerKind.ANM

    def __init__(self, settings: OutputSettings, confirm: ConfirmOverwrite = ask_to_overwrite):
        super().__init__(settings, confirm)
        self.header_state = HeaderState.NONE

    def _open_backend(self) -> None:
        for name in ("width", "height", "delay_ms"):
            value = getattr(self.settings, name)
            if not 0 <= value <= 0xFFFF:
                raise ValueError(f"{name} {value} does not fit the ANM header")

        super()._open_backend()
        self.header_state = HeaderState.NONE
        if self.settings.write_header:
            self._fp.write(AnmHeader.placeholder())
            self.header_state = HeaderState.PLACEHOLDER

    def _write_frame(self, data: bytes | bytearray) -> bool:
        if self.header_state is HeaderState.PLACEHOLDER and self.frames_written >= ANM_MAX_FRAMES:
            log.error('"%s" already holds %d frames, the ANM header cannot count more', self.path, ANM_MAX_FRAMES)
            return False
        return super()._write_frame(data)

    def final_header(self) -> AnmHeader:
        return AnmHeader(
            address_mode=int(self.settings.address_mode),
            compression=0,
            frame_count=self.frames_written,
            delay_ms=self.settings.delay_ms,
            width=self.settings.width,
            height=self.settings.height,
        )

    def _backpatch_header(self) -> None:
        """PLACEHOLDER -> FINAL: rewrite the header at offset 0, leave the data untouched."""
        self._fp.seek(0, os.SEEK_SET)
        self._fp.write(self.final_header().pack())
        self._fp.seek(0, os.SEEK_END)
        self.header_state = HeaderState.FINAL

    def _finalize(self) -> None:
        if self.header_state is HeaderState.PLACEHOLDER:
            self._backpatch_header()
        super()._finalize()


def gif_page(bitmap: Image.Image) -> Image.Image:
    """Palette copy of a 1-bit frame: set pixels use index 1, the rest index 0."""
    page = Image.new("P", bitmap.size, 0)
    page.putpalette(GIF_PALETTE)
    page.paste(1, mask=bitmap)
    return page


class GifContainer(Container):
    """Multi-page GIF, written one page per ``add_frame()``. Frames are 1-bit
    images, not packed buffers. The header and loop extension go out with the
    first page, the trailer on close."""

    kind = ContainerKind.GIF

    def __init__(self, settings: OutputSettings, confirm: ConfirmOverwrite = ask_to_overwrite):
        super().__init__(settings, confirm)
        self._fp = None
        self._header_written = False

    @property
    def is_open(self) -> bool:
        return self._fp is not None

    def _open_backend(self) -> None:
        self._fp = open(self.path, "wb")
        self._header_written = False

    def _write_header(self, page: Image.Image) -> None:
        # No palette optimisation: every page must index the same global palette.
        info = {"loop": GIF_LOOP_FOREVER, FRAME_TIME_KEY: self.settings.delay_ms, "optimize": False}
        header, _ = GifImagePlugin.getheader(page, info=info)
        self._fp.writelines(header)
        self._header_written = True

    def _write_frame(self, bitmap: Image.Image) -> bool:
        expected = (self.settings.width, self.settings.height)
        if bitmap.size != expected:
            log.error(
                'Frame is %dx%d, expected %dx%d for "%s"',
                bitmap.size[0], bitmap.size[1], expected[0], expected[1], self.path,
            )
            return False

        page = gif_page(bitmap)
        try:
            if not self._header_written:
                self._write_header(page)
            params = {FRAME_TIME_KEY: self.settings.delay_ms}
            self._fp.writelines(GifImagePlugin.getdata(page, offset=(0, 0), **params))
            self._fp.flush()
        except (OSError, ValueError) as e:
            log.error('Write to "%s" failed: %s', self.path, _reason(e))
            return False
        finally:
            page.close()
        return True

    def _finalize(self) -> None:
        if not self._header_written:
            log.warning('No frames were added, "%s" is left empty', self.path)
            return
        self._fp.write(GIF_TRAILER)
        self._fp.flush()

    def _release(self) -> None:
        if self._fp is not None:
            self._fp.close()
            self._fp = None


_CONTAINERS = {
    ContainerKind.RAW: RawContainer,
    ContainerKind.ANM: AnmContainer,
    ContainerKind.GIF: GifContainer,
}


def create_container(
    settings: OutputSettings,
    kind: ContainerKind | None = None,
    confirm: ConfirmOverwrite = ask_to_overwrite,
) -> Container:
    """Build the container for ``settings.path``; the kind is resolved here once."""
    if kind is None:
        kind = container_kind_for(settings.path)
    return _CONTAINERS[kind](settings, confirm)
