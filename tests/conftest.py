import random

import pytest
from PIL import Image


def mono(width, height, pixels=()):
    """1-bit image, black except for the given (x, y) pixels."""
    img = Image.new("1", (width, height), 0)
    for x, y in pixels:
        img.putpixel((x, y), 255)
    return img


def random_mono(width, height, seed=1234):
    rng = random.Random(seed)
    img = Image.new("1", (width, height), 0)
    for y in range(height):
        for x in range(width):
            if rng.random() < 0.5:
                img.putpixel((x, y), 255)
    return img


@pytest.fixture
def make_image(tmp_path):
    """Write a small image to tmp_path and return its path."""

    def _make(name, size, color=128, mode="L"):
        path = tmp_path / name
        Image.new(mode, size, color).save(path)
        return path

    return _make
