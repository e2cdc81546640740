"""
Pixel and region analysis primitives shared by all classifiers.

Provides:
- PixelGrid, a bounds-checked view over an RGBA region
- Region extraction and color statistics
- Sobel edge detection
- Background color sampling and grayscale histograms
- Brute-force shift estimation between two crops
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import numpy as np
from scipy import ndimage

from diffsense.classifiers.models import AnalysisContext, Bounds, ImageBuffer

type RGB = tuple[int, int, int]
type RGBA = tuple[int, int, int, int]

EDGE_THRESHOLD = 50.0
DOMINANT_COLOR_BUCKET = 16
DOMINANT_COLOR_LIMIT = 5
BACKGROUND_BUCKET = 10
BACKGROUND_EDGE_SAMPLES = 10

MAX_SHIFT = 20
SHIFT_STRIDE = 2
SHIFT_SAMPLE_RATE = 4
DARK_PIXEL_CUTOFF = 30.0
CONSISTENT_SHIFT_SCORE = 200.0
SHIFT_PADDING = 20


def _round_half_up(values: Any) -> Any:
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5)


def _check_bounds(bounds: Bounds, width: int, height: int) -> None:
    if (
        bounds.x < 0
        or bounds.y < 0
        or bounds.width < 0
        or bounds.height < 0
        or bounds.x + bounds.width > width
        or bounds.y + bounds.height > height
    ):
        raise IndexError(
            f"Region ({bounds.x}, {bounds.y}, {bounds.width}x{bounds.height}) "
            f"lies outside {width}x{height} image"
        )


@dataclass(frozen=True, slots=True, eq=False)
class PixelGrid:
    """Bounds-checked accessor over an ``(height, width, 4)`` RGBA array."""

    pixels: np.ndarray[Any, np.dtype[np.uint8]]

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def get(self, x: int, y: int) -> RGBA:
        """Return the RGBA value at ``(x, y)``."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} grid")
        r, g, b, a = self.pixels[y, x]
        return int(r), int(g), int(b), int(a)

    def crop(self, bounds: Bounds) -> PixelGrid:
        """Copy a sub-rectangle; bounds must lie inside the grid."""
        _check_bounds(bounds, self.width, self.height)
        return PixelGrid(
            self.pixels[
                bounds.y : bounds.y + bounds.height,
                bounds.x : bounds.x + bounds.width,
            ].copy()
        )

    def gray(self) -> np.ndarray[Any, np.dtype[np.float64]]:
        """Grayscale intensity ``(R + G + B) / 3`` per pixel."""
        return self.pixels[..., :3].astype(np.float64).sum(axis=2) / 3.0

    def rgb(self) -> np.ndarray[Any, np.dtype[np.int32]]:
        return self.pixels[..., :3].astype(np.int32)

    def alpha(self) -> np.ndarray[Any, np.dtype[np.uint8]]:
        return self.pixels[..., 3]

    @classmethod
    def from_image(cls, image: ImageBuffer) -> PixelGrid:
        return cls(image.as_array())


@dataclass(frozen=True, slots=True)
class DominantColor:
    """A quantized color bucket and how many pixels fell into it."""

    color: RGB
    count: int


@dataclass(frozen=True, slots=True)
class ColorStats:
    """Average color, variance and dominant colors of a region."""

    avg_color: RGBA
    variance: float
    dominant_colors: tuple[DominantColor, ...]


@dataclass(frozen=True, slots=True)
class EdgeStats:
    """Sobel edge count and density over the interior of a region."""

    edge_count: int
    edge_density: float


@dataclass(frozen=True, slots=True)
class ShiftEstimate:
    """Best integer translation found between two crops."""

    dx: int
    dy: int
    distance: float
    score: float
    consistent: bool
    direction: str


def extract_region_data(image: ImageBuffer, bounds: Bounds) -> PixelGrid:
    """
    Copy a rectangular sub-image out of a full RGBA buffer.

    Bounds are not clamped. A region that leaves the image raises
    ``IndexError``; callers clamp beforehand.
    """
    return PixelGrid.from_image(image).crop(bounds)


def calculate_color_stats(grid: PixelGrid) -> ColorStats:
    """
    Compute average RGBA, color variance and the top dominant colors.

    Variance is the mean squared deviation from the rounded average, averaged
    over R, G and B. Dominant colors quantize each channel into 16-value
    buckets and keep the five most frequent, ties going to the color seen
    first in row-major order.
    """
    rgba = grid.pixels.reshape(-1, 4).astype(np.int64)
    count = len(rgba)
    if count == 0:
        return ColorStats(avg_color=(0, 0, 0, 0), variance=0.0, dominant_colors=())

    avg = _round_half_up(rgba.sum(axis=0) / count).astype(np.int64)
    avg_color: RGBA = (int(avg[0]), int(avg[1]), int(avg[2]), int(avg[3]))

    deviation = rgba[:, :3] - avg[:3]
    variance = float((deviation**2).sum(axis=1).mean() / 3.0)

    quantized = (rgba[:, :3] // DOMINANT_COLOR_BUCKET) * DOMINANT_COLOR_BUCKET
    keys = (quantized[:, 0] << 16) | (quantized[:, 1] << 8) | quantized[:, 2]
    unique_keys, first_index, counts = np.unique(keys, return_index=True, return_counts=True)
    order = np.lexsort((first_index, -counts))[:DOMINANT_COLOR_LIMIT]

    dominant_colors = tuple(
        DominantColor(
            color=(
                int(unique_keys[i] >> 16) & 0xFF,
                int(unique_keys[i] >> 8) & 0xFF,
                int(unique_keys[i]) & 0xFF,
            ),
            count=int(counts[i]),
        )
        for i in order
    )

    return ColorStats(avg_color=avg_color, variance=variance, dominant_colors=dominant_colors)


def edge_map(grid: PixelGrid) -> np.ndarray[Any, np.dtype[np.bool_]]:
    """Boolean mask of interior pixels whose Sobel magnitude exceeds the threshold."""
    mask = np.zeros((grid.height, grid.width), dtype=bool)
    if grid.width < 3 or grid.height < 3:
        return mask

    gray = grid.gray()
    gx = ndimage.sobel(gray, axis=1)
    gy = ndimage.sobel(gray, axis=0)
    magnitude = np.sqrt(gx * gx + gy * gy)

    # Border pixels lack a full 3x3 neighbourhood and never count as edges
    mask[1:-1, 1:-1] = magnitude[1:-1, 1:-1] > EDGE_THRESHOLD
    return mask


def detect_edges(grid: PixelGrid) -> EdgeStats:
    """Count Sobel edges on the grayscale image."""
    edge_count = int(edge_map(grid).sum())
    interior = (grid.width - 2) * (grid.height - 2)
    edge_density = edge_count / interior if interior > 0 else 0.0
    return EdgeStats(edge_count=edge_count, edge_density=edge_density)


def detect_background_color(grid: PixelGrid) -> RGB:
    """
    Estimate the background color from the region border.

    Samples the four corners plus evenly spaced points along the top and
    bottom rows, buckets them to steps of 10 and returns the first sample of
    the most common bucket.
    """
    width, height = grid.width, grid.height
    if width == 0 or height == 0:
        return (255, 255, 255)

    positions = [(0, 0), (width - 1, 0), (0, height - 1), (width - 1, height - 1)]
    for i in range(BACKGROUND_EDGE_SAMPLES):
        x = int((width - 1) * (i / (BACKGROUND_EDGE_SAMPLES - 1)))
        positions.append((x, 0))
        positions.append((x, height - 1))

    buckets: dict[RGB, tuple[int, RGB]] = {}
    for x, y in positions:
        r, g, b, _ = grid.get(x, y)
        key = (
            r // BACKGROUND_BUCKET * BACKGROUND_BUCKET,
            g // BACKGROUND_BUCKET * BACKGROUND_BUCKET,
            b // BACKGROUND_BUCKET * BACKGROUND_BUCKET,
        )
        count, first_sample = buckets.get(key, (0, (r, g, b)))
        buckets[key] = (count + 1, first_sample)

    best_count = 0
    background: RGB = (255, 255, 255)
    for count, sample in buckets.values():
        if count > best_count:
            best_count = count
            background = sample
    return background


def color_delta(grid: PixelGrid, color: RGB) -> np.ndarray[Any, np.dtype[np.int32]]:
    """Per-pixel summed absolute channel difference against ``color``."""
    return np.abs(grid.rgb() - np.array(color, dtype=np.int32)).sum(axis=2)


def grayscale_histogram(grid: PixelGrid) -> np.ndarray[Any, np.dtype[np.float64]]:
    """Normalized 256-bin histogram of rounded grayscale values."""
    gray = _round_half_up(grid.gray()).astype(np.int64).ravel()
    histogram = np.bincount(gray, minlength=256).astype(np.float64)
    total = histogram.sum()
    if total > 0:
        histogram /= total
    return histogram


def histogram_intersection(
    first: np.ndarray[Any, np.dtype[np.float64]],
    second: np.ndarray[Any, np.dtype[np.float64]],
) -> float:
    """Overlap of two normalized histograms, 1.0 for identical distributions."""
    return float(np.minimum(first, second).sum())


def expand_bounds(bounds: Bounds, padding: int, width: int, height: int) -> Bounds:
    """Pad bounds on every side, clamped to the image extent."""
    left = max(0, bounds.x - padding)
    top = max(0, bounds.y - padding)
    right = min(width, bounds.x + bounds.width + padding)
    bottom = min(height, bounds.y + bounds.height + padding)
    return Bounds(x=left, y=top, width=max(0, right - left), height=max(0, bottom - top))


def _shift_direction(dx: int, dy: int, distance: float) -> str:
    if distance <= 2:
        return "none"

    angle = math.degrees(math.atan2(dy, dx))
    if -22.5 <= angle < 22.5:
        return "right"
    if 22.5 <= angle < 67.5:
        return "down-right"
    if 67.5 <= angle < 112.5:
        return "down"
    if 112.5 <= angle < 157.5:
        return "down-left"
    if -67.5 <= angle < -22.5:
        return "up-right"
    if -112.5 <= angle < -67.5:
        return "up"
    if -157.5 <= angle < -112.5:
        return "up-left"
    return "left"


def estimate_shift(
    original: PixelGrid,
    compared: PixelGrid,
    max_shift: int = MAX_SHIFT,
    stride: int = SHIFT_STRIDE,
    sample_rate: int = SHIFT_SAMPLE_RATE,
) -> ShiftEstimate:
    """
    Find the integer translation that best maps ``original`` onto ``compared``.

    Sparse samples of the original (every ``sample_rate`` pixels, skipping
    near-black ones) are projected by each candidate shift and scored by the
    mean of ``255 - |gray difference|``. The first strictly best candidate in
    row-major shift order wins.
    """
    if (original.width, original.height) != (compared.width, compared.height):
        raise ValueError("Shift estimation requires equally sized crops")

    width, height = original.width, original.height
    original_gray = original.gray()
    compared_gray = compared.gray()

    ys, xs = np.mgrid[0:height:sample_rate, 0:width:sample_rate]
    values = original_gray[ys, xs]
    keep = values > DARK_PIXEL_CUTOFF
    xs, ys, values = xs[keep], ys[keep], values[keep]

    best_dx, best_dy, best_score = 0, 0, 0.0
    for dy in range(-max_shift, max_shift + 1, stride):
        for dx in range(-max_shift, max_shift + 1, stride):
            nx = xs + dx
            ny = ys + dy
            valid = (nx >= 0) & (nx < width) & (ny >= 0) & (ny < height)
            if not valid.any():
                continue

            projected = compared_gray[ny[valid], nx[valid]]
            score = float(np.mean(255.0 - np.abs(values[valid] - projected)))
            if score > best_score:
                best_dx, best_dy, best_score = dx, dy, score

    distance = math.hypot(best_dx, best_dy)
    return ShiftEstimate(
        dx=best_dx,
        dy=best_dy,
        distance=distance,
        score=best_score,
        consistent=best_score > CONSISTENT_SHIFT_SCORE,
        direction=_shift_direction(best_dx, best_dy, distance),
    )


def calculate_shift(
    bounds: Bounds,
    context: AnalysisContext,
    padding: int = SHIFT_PADDING,
) -> ShiftEstimate:
    """Estimate how far the content around ``bounds`` moved between the two images."""
    expanded = expand_bounds(bounds, padding, context.width, context.height)
    original = extract_region_data(context.original_image, expanded)
    compared = extract_region_data(context.compared_image, expanded)
    return estimate_shift(original, compared)
