"""
Tests for framebuffer packing in the three address modes.
"""

import pytest

from monoframe.packing import (
    AddressMode,
    allocate_framebuffer,
    byte_and_bit,
    framebuffer_size,
    pack,
)

from conftest import mono, random_mono


class TestHorizontal:
    """SSD1306 page layout: byte = x + (y/8)*width, bit = y % 8."""

    @pytest.mark.parametrize("width,height", [(8, 8), (16, 8), (24, 16), (128, 64)])
    def test_every_pixel_round_trips(self, width, height):
        img = random_mono(width, height)
        buf = pack(AddressMode.HORIZONTAL, img, width, height)

        assert len(buf) == framebuffer_size(width, height)
        for y in range(height):
            for x in range(width):
                b = buf[x + (y // 8) * width]
                bit = (b >> (y % 8)) & 1
                assert bit == (1 if img.getpixel((x, y)) else 0), (x, y)

    def test_top_row_is_bit_zero(self):
        buf = pack(AddressMode.HORIZONTAL, mono(8, 8, [(0, 0), (1, 7)]), 8, 8)
        assert buf[0] == 0x01
        assert buf[1] == 0x80
        assert buf[2:] == bytearray(6)

    def test_second_page_follows_first(self):
        buf = pack(AddressMode.HORIZONTAL, mono(16, 16, [(3, 9)]), 16, 16)
        assert buf[3 + 16] == 0x02
        assert sum(buf) == 0x02

    def test_reused_buffer_is_fully_rewritten(self):
        """A dirty buffer from a previous frame must not leak into the next one."""
        buf = allocate_framebuffer(16, 16)
        buf[:] = b"\xff" * len(buf)

        pack(AddressMode.HORIZONTAL, mono(16, 16, [(0, 0)]), 16, 16, buf)

        assert buf[0] == 0x01
        assert sum(buf[1:]) == 0


class TestVertical:
    """Column-major pages: each column owns height/8 consecutive bytes."""

    def test_byte_index_on_64_row_panel(self):
        width, height = 128, 64
        for x, y in [(0, 0), (1, 0), (5, 17), (127, 63)]:
            buf = pack(AddressMode.VERTICAL, mono(width, height, [(x, y)]), width, height)
            assert buf[x * 8 + y // 8] == 1 << (y % 8)
            assert sum(buf) == 1 << (y % 8)

    def test_index_does_not_depend_on_width(self):
        x, y = 3, 42
        positions = []
        for width in (8, 32, 128):
            buf = pack(AddressMode.VERTICAL, mono(width, 64, [(x, y)]), width, 64)
            positions.append(next(i for i, b in enumerate(buf) if b))
        assert positions == [x * 8 + y // 8] * 3

    def test_round_trip_short_panel(self):
        width, height = 16, 32
        img = random_mono(width, height, seed=7)
        buf = pack(AddressMode.VERTICAL, img, width, height)

        assert len(buf) == framebuffer_size(width, height)
        for y in range(height):
            for x in range(width):
                index, bit = byte_and_bit(AddressMode.VERTICAL, x, y, width, height)
                assert (buf[index] >> bit) & 1 == (1 if img.getpixel((x, y)) else 0)


class TestLinear:
    """Row-major, MSB first."""

    def test_first_pixel_is_msb(self):
        buf = pack(AddressMode.LINEAR, mono(8, 8, [(0, 0)]), 8, 8)
        assert buf[0] == 0x80
        assert sum(buf[1:]) == 0

    def test_row_stride(self):
        buf = pack(AddressMode.LINEAR, mono(16, 8, [(15, 0), (8, 1)]), 16, 8)
        assert buf[1] == 0x01
        assert buf[3] == 0x80

    def test_round_trip(self):
        width, height = 24, 16
        img = random_mono(width, height, seed=99)
        buf = pack(AddressMode.LINEAR, img, width, height)
        for y in range(height):
            for x in range(width):
                index, bit = byte_and_bit(AddressMode.LINEAR, x, y, width, height)
                assert index == y * (width // 8) + x // 8
                assert bit == 7 - (x % 8)
                assert (buf[index] >> bit) & 1 == (1 if img.getpixel((x, y)) else 0)


class TestAddressMode:
    def test_header_values(self):
        assert [int(m) for m in AddressMode] == [0, 1, 2]

    def test_pack_accepts_plain_int(self):
        buf = pack(2, mono(8, 8, [(0, 0)]), 8, 8)
        assert buf[0] == 0x80

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            pack(7, mono(8, 8), 8, 8)

    def test_all_white_is_all_ones(self):
        img = mono(16, 16, [(x, y) for x in range(16) for y in range(16)])
        for mode in AddressMode:
            assert pack(mode, img, 16, 16) == bytearray(b"\xff" * 32)
