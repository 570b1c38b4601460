"""Binarisation helpers: threshold, invert and the seven dithering algorithms.

Floyd-Steinberg is Pillow's error-diffusion dither. The Bayer and cluster-dot
variants are ordered dithers driven by a tiled threshold map (numpy).
All functions return a new image and never touch their input.
"""

from __future__ import annotations

import math
from enum import Enum

import numpy as np
from PIL import Image, ImageOps


class DitherAlgorithm(Enum):
    # (command line name, display name, matrix kind, matrix size)
    FLOYD_STEINBERG = ("fs", "Floyd-Steinberg", None, 0)
    BAYER_4X4 = ("b4x4", "Bayer 4x4", "bayer", 4)
    BAYER_8X8 = ("b8x8", "Bayer 8x8", "bayer", 8)
    BAYER_16X16 = ("b16x16", "Bayer 16x16", "bayer", 16)
    CLUSTER_6X6 = ("c6x6", "Cluster 6x6", "cluster", 6)
    CLUSTER_8X8 = ("c8x8", "Cluster 8x8", "cluster", 8)
    CLUSTER_16X16 = ("c16x16", "Cluster 16x16", "cluster", 16)

    def __init__(self, cli_name: str, display_name: str, kind: str | None, size: int):
        self.cli_name = cli_name
        self.display_name = display_name
        self.kind = kind
        self.size = size

    @classmethod
    def from_name(cls, name: str) -> "DitherAlgorithm":
        key = name.strip().lower()
        for algo in cls:
            if algo.cli_name == key:
                return algo
        raise ValueError(f"Unknown dithering algorithm: {name!r}")


def bayer_matrix(size: int) -> np.ndarray:
    """Recursive Bayer index matrix, values 0..size*size-1. ``size`` is a power of two."""
    if size < 2 or size & (size - 1):
        raise ValueError(f"Bayer matrix size must be a power of two, got {size}")
    m = np.zeros((1, 1), dtype=np.int32)
    while m.shape[0] < size:
        m = np.block([[4 * m, 4 * m + 2], [4 * m + 3, 4 * m + 1]])
    return m


def cluster_matrix(size: int) -> np.ndarray:
    """Clustered-dot index matrix: cells are ranked by distance from the centre
    of the tile (ties broken by angle), so dots grow outward as a round cluster."""
    centre = (size - 1) / 2.0
    cells = []
    for y in range(size):
        for x in range(size):
            dx = x - centre
            dy = y - centre
            cells.append((dx * dx + dy * dy, math.atan2(dy, dx), y, x))
    cells.sort()

    m = np.zeros((size, size), dtype=np.int32)
    for rank, (_, _, y, x) in enumerate(cells):
        m[y, x] = rank
    return m


def threshold_map(algorithm: DitherAlgorithm) -> np.ndarray:
    if algorithm.kind == "bayer":
        m = bayer_matrix(algorithm.size)
    elif algorithm.kind == "cluster":
        m = cluster_matrix(algorithm.size)
    else:
        raise ValueError(f"{algorithm.display_name} has no threshold map")
    # Cell centres spread evenly over 0..255.
    return (m.astype(np.float32) + 0.5) * (255.0 / m.size)


def to_grayscale(image: Image.Image) -> Image.Image:
    """Luminance image ("L"). Transparent areas are flattened onto black (pixel off)."""
    if image.mode == "L":
        return image.copy()
    if "A" in image.getbands() or "transparency" in image.info:
        rgba = image.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (0, 0, 0, 255))
        return Image.alpha_composite(background, rgba).convert("L")
    return image.convert("L")


def invert(image: Image.Image) -> Image.Image:
    """Invert pixel values. 1-bit images stay 1-bit; anything else becomes "L"."""
    if image.mode == "1":
        return ImageOps.invert(image.convert("L")).convert("1", dither=Image.Dither.NONE)
    return ImageOps.invert(to_grayscale(image))


def threshold(image: Image.Image, value: int) -> Image.Image:
    """Pixels with luminance >= ``value`` become white (set), the rest black."""
    if not 0 <= value <= 255:
        raise ValueError(f"Threshold out of range, expected 0-255 got {value}")
    lut = [255 if level >= value else 0 for level in range(256)]
    return to_grayscale(image).point(lut, "1")


def ordered_dither(image: Image.Image, algorithm: DitherAlgorithm) -> Image.Image:
    gray = np.asarray(to_grayscale(image), dtype=np.float32)
    height, width = gray.shape
    tmap = threshold_map(algorithm)
    n = tmap.shape[0]

    reps_y = -(-height // n)
    reps_x = -(-width // n)
    tiled = np.tile(tmap, (reps_y, reps_x))[:height, :width]

    out = np.where(gray > tiled, 255, 0).astype(np.uint8)
    return Image.fromarray(out).convert("1", dither=Image.Dither.NONE)


def dither(image: Image.Image, algorithm: DitherAlgorithm) -> Image.Image:
    if algorithm is DitherAlgorithm.FLOYD_STEINBERG:
        return to_grayscale(image).convert("1", dither=Image.Dither.FLOYDSTEINBERG)
    return ordered_dither(image, algorithm)
