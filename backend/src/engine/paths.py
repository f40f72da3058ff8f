"""Scan line generation — the coordinate sequences a sort pass traverses.

Each scan line is an (N, 2) integer array of (x, y) coordinates in
traversal order, always inside the image. Lines are generated lazily;
a 4K sine pass produces tens of thousands of them.

All curved shapes follow the same recipe: sample a dense curve, rotate it
about a center, clip to bounds, floor to pixel coordinates.
"""

import math
from collections.abc import Iterator

import numpy as np

from engine.shapes import EllipseShape, LinearShape, ShapeDescriptor, SineShape

# Samples per unit along sine rows and ellipse perimeters
OVERSAMPLE = 3
# Ellipse shells per pixel of semi-major axis
SHELLS_PER_PIXEL = 5

_EMPTY = np.empty((0, 2), dtype=np.intp)


def _diag(width: int, height: int) -> int:
    return int(round(math.hypot(width, height)))


def _rotate(x: np.ndarray, y: np.ndarray, angle: float):
    theta = math.radians(angle)
    cos, sin = math.cos(theta), math.sin(theta)
    return x * cos - y * sin, y * cos + x * sin


def _clip(x: np.ndarray, y: np.ndarray, width: int, height: int) -> np.ndarray:
    """Keep in-bounds points, floored. NaN/inf samples fail every comparison."""
    keep = (x >= 0) & (x < width) & (y >= 0) & (y < height)
    if not keep.any():
        return _EMPTY
    coords = np.empty((int(keep.sum()), 2), dtype=np.intp)
    coords[:, 0] = np.floor(x[keep])
    coords[:, 1] = np.floor(y[keep])
    return coords


def dedup_adjacent(coords: np.ndarray) -> np.ndarray:
    """Collapse runs of identical consecutive coordinates to one entry."""
    if len(coords) < 2:
        return coords
    keep = np.ones(len(coords), dtype=bool)
    keep[1:] = np.any(coords[1:] != coords[:-1], axis=1)
    return coords[keep]


def _linear_extra_height(width: int, angle: float) -> int:
    return math.floor(width * math.tan(math.radians(angle)))


def _linear_rows(width: int, height: int) -> Iterator[np.ndarray]:
    xs = np.arange(width, dtype=np.intp)
    for y in range(height):
        line = np.empty((width, 2), dtype=np.intp)
        line[:, 0] = xs
        line[:, 1] = y
        yield line


def _linear_slanted(width: int, height: int, angle: float) -> Iterator[np.ndarray]:
    tan = math.tan(math.radians(angle))
    extra = _linear_extra_height(width, angle)
    rows = range(-extra, height) if extra > 0 else range(0, height - extra)

    xs = np.arange(width, dtype=np.intp)
    # Round half up: rows stay one pixel apart at every x, so lines never overlap
    slope = xs * tan + 0.5
    for row_idx in rows:
        ys = np.floor(slope + row_idx)
        # y == 0 is excluded as well
        keep = (ys > 0) & (ys < height)
        line = np.empty((int(keep.sum()), 2), dtype=np.intp)
        line[:, 0] = xs[keep]
        line[:, 1] = ys[keep]
        yield line


def _sine(
    width: int, height: int, shape: SineShape, angle: float
) -> Iterator[np.ndarray]:
    diag = _diag(width, height)
    c_x, c_y = math.floor(width * 0.5), math.floor(height * 0.5)

    x = np.arange(diag, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        wave = np.sin(x / shape.wavelength + shape.offset) * shape.amplitude
    x_centered = x - diag / 2.0

    for row_idx in range(diag * OVERSAMPLE):
        y = row_idx / OVERSAMPLE + wave - diag / 2.0
        rx, ry = _rotate(x_centered, y, angle)
        yield _clip(rx + c_x, ry + c_y, width, height)


def _ellipse_shell_count(width: int, height: int, shape: EllipseShape) -> int:
    try:
        shells = _diag(width, height) * SHELLS_PER_PIXEL * math.pow(1.0 + shape.eccentricity, 2)
    except OverflowError:
        return 0
    if not math.isfinite(shells):
        return 0
    return max(0, int(shells))


def _ellipse(
    width: int, height: int, shape: EllipseShape, angle: float
) -> Iterator[np.ndarray]:
    ecc = shape.eccentricity
    fx, fy = shape.center
    c_x, c_y = math.floor(width * fx), math.floor(height * fy)

    # Outer shells first: inner shells overwrite shared pixels
    for k in reversed(range(_ellipse_shell_count(width, height, shape))):
        a = k / SHELLS_PER_PIXEL
        b_sq = a * a * (1.0 - ecc * ecc)
        focal = math.sqrt(max(a * a - b_sq, 0.0))
        mean_sq = (a * a + b_sq) / 2.0
        perimeter = math.floor(2.0 * math.pi * math.sqrt(mean_sq)) if mean_sq > 0 else 0
        if perimeter <= 0:
            yield _EMPTY
            continue

        steps = np.arange(perimeter * OVERSAMPLE, dtype=np.float64) / OVERSAMPLE
        theta = np.radians(steps * 360.0 / perimeter)
        with np.errstate(divide="ignore", invalid="ignore"):
            r = b_sq / a / (1.0 - ecc * np.cos(theta))
            ex = r * np.cos(theta) - focal
            ey = r * np.sin(theta)
            rx, ry = _rotate(ex, ey, angle)
            coords = _clip(rx + c_x, ry + c_y, width, height)
        yield dedup_adjacent(coords)


def generate(
    width: int, height: int, shape: ShapeDescriptor, angle: float = 0.0
) -> Iterator[np.ndarray]:
    """Yield scan lines for an image of the given size.

    The order of lines and of coordinates within a line is significant:
    it decides which pixels are sorted together and which writes win when
    lines overlap.
    """
    if width <= 0 or height <= 0:
        return iter(())
    if isinstance(shape, SineShape):
        return _sine(width, height, shape, angle)
    if isinstance(shape, EllipseShape):
        return _ellipse(width, height, shape, angle)
    if isinstance(shape, LinearShape):
        if angle != 0.0:
            return _linear_slanted(width, height, angle)
        return _linear_rows(width, height)
    raise TypeError(f"Unknown shape: {shape!r}")


def scan_line_count(
    width: int, height: int, shape: ShapeDescriptor, angle: float = 0.0
) -> int:
    """Number of scan lines generate() yields for the same arguments."""
    if width <= 0 or height <= 0:
        return 0
    if isinstance(shape, SineShape):
        return _diag(width, height) * OVERSAMPLE
    if isinstance(shape, EllipseShape):
        return _ellipse_shell_count(width, height, shape)
    if angle != 0.0:
        return height + abs(_linear_extra_height(width, angle))
    return height
