"""Pack 1bpp images into the framebuffer layouts small OLED/LCD controllers expect.

Addressing modes:
- HORIZONTAL: SSD1306 page layout. ``height/8`` pages of ``width`` bytes,
  each byte is one 8-pixel tall column slice, bit 0 = top row of the page.
- VERTICAL:   column-major pages. Each column holds ``height/8`` consecutive
  bytes, bit 0 = top row of the page. The byte index is
  ``x*(height/8) + y/8``: ``x*8 + y/8`` on 64-row panels. Other heights keep
  a stride of ``height/8`` so the buffer stays ``width*height/8`` bytes.
- LINEAR:     row-major, MSB-first (bit 7 = leftmost pixel of the byte).

A pixel is "set" when its value in the 1-bit image is non-zero (white).
"""

from __future__ import annotations

from enum import IntEnum

from PIL import Image


class AddressMode(IntEnum):
    # Values are the ANM header encoding.
    HORIZONTAL = 0
    VERTICAL = 1
    LINEAR = 2

    @property
    def label(self) -> str:
        return self.name.capitalize()


def framebuffer_size(width: int, height: int) -> int:
    return (width * height) // 8


def allocate_framebuffer(width: int, height: int) -> bytearray:
    return bytearray(framebuffer_size(width, height))


def _pixel_rows(bitmap: Image.Image, width: int, height: int) -> list[list[int]]:
    pix = bitmap.load()
    return [[1 if pix[x, y] else 0 for x in range(width)] for y in range(height)]


def _pack_horizontal(bits: list[list[int]], width: int, height: int, out: bytearray) -> None:
    for page in range(height // 8):
        top = page * 8
        row_off = page * width
        for x in range(width):
            v = 0
            for bit in range(8):
                if bits[top + bit][x]:
                    v |= 1 << bit
            out[row_off + x] = v


def _pack_vertical(bits: list[list[int]], width: int, height: int, out: bytearray) -> None:
    pages = height // 8
    for x in range(width):
        col_off = x * pages
        for page in range(pages):
            top = page * 8
            v = 0
            for bit in range(8):
                if bits[top + bit][x]:
                    v |= 1 << bit
            out[col_off + page] = v


def _pack_linear(bits: list[list[int]], width: int, height: int, out: bytearray) -> None:
    stride = width // 8
    for y in range(height):
        row = bits[y]
        row_off = y * stride
        for b in range(stride):
            v = 0
            for bit in range(8):
                if row[b * 8 + bit]:
                    v |= 0x80 >> bit
            out[row_off + b] = v


_PACKERS = {
    AddressMode.HORIZONTAL: _pack_horizontal,
    AddressMode.VERTICAL: _pack_vertical,
    AddressMode.LINEAR: _pack_linear,
}


def byte_and_bit(mode: AddressMode, x: int, y: int, width: int, height: int) -> tuple[int, int]:
    """Return the (byte index, bit index) pixel (x, y) lands on in ``mode``."""
    mode = AddressMode(mode)
    if mode is AddressMode.HORIZONTAL:
        return x + (y // 8) * width, y % 8
    if mode is AddressMode.VERTICAL:
        return x * (height // 8) + y // 8, y % 8
    return y * (width // 8) + x // 8, 7 - (x % 8)


def pack(
    mode: AddressMode,
    bitmap: Image.Image,
    width: int,
    height: int,
    buffer: bytearray | None = None,
) -> bytearray:
    """Pack ``bitmap`` into ``buffer`` (allocated when omitted) using ``mode``.

    Every byte of the buffer is rewritten, so a buffer reused from a previous
    frame never leaks stale pixels. ``width`` and ``height`` must be multiples
    of 8 and the buffer exactly ``width*height/8`` bytes; callers check this.
    """
    if buffer is None:
        buffer = allocate_framebuffer(width, height)

    bits = _pixel_rows(bitmap, width, height)
    _PACKERS[AddressMode(mode)](bits, width, height, buffer)
    return buffer
