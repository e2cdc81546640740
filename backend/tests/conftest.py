"""Pytest fixtures for diffsense tests."""

from __future__ import annotations

from collections.abc import Callable, Generator

import numpy as np
import pytest
import structlog

from diffsense.classifiers.models import AnalysisContext, Bounds, DifferenceRegion

type Color = int | tuple[int, int, int]


def _rgb(color: Color) -> tuple[int, int, int]:
    if isinstance(color, int):
        return (color, color, color)
    return color


class ImageFactory:
    """Builders for small synthetic RGB test images."""

    @staticmethod
    def solid(width: int, height: int, color: Color) -> np.ndarray:
        image = np.empty((height, width, 3), dtype=np.uint8)
        image[:, :] = _rgb(color)
        return image

    @staticmethod
    def with_box(
        image: np.ndarray, x: int, y: int, width: int, height: int, color: Color
    ) -> np.ndarray:
        result = image.copy()
        result[y : y + height, x : x + width] = _rgb(color)
        return result

    @staticmethod
    def stripes(
        width: int, height: int, period: int, first: Color, second: Color
    ) -> np.ndarray:
        """Vertical stripes; columns with ``x % period < period // 2`` get ``first``."""
        image = np.empty((height, width, 3), dtype=np.uint8)
        columns = np.arange(width) % period < period // 2
        image[:, columns] = _rgb(first)
        image[:, ~columns] = _rgb(second)
        return image

    @staticmethod
    def checkerboard(width: int, height: int, cell: int, first: Color, second: Color) -> np.ndarray:
        image = np.empty((height, width, 3), dtype=np.uint8)
        ys, xs = np.mgrid[0:height, 0:width]
        even = (xs // cell + ys // cell) % 2 == 0
        image[even] = _rgb(first)
        image[~even] = _rgb(second)
        return image


@pytest.fixture
def images() -> type[ImageFactory]:
    """Synthetic image builders."""
    return ImageFactory


@pytest.fixture
def make_context() -> Callable[[np.ndarray, np.ndarray], AnalysisContext]:
    """Build an analysis context from two RGB arrays."""
    return AnalysisContext.from_images


@pytest.fixture
def make_region() -> Callable[..., DifferenceRegion]:
    """Build a difference region with a given difference percentage."""

    def factory(
        x: int,
        y: int,
        width: int,
        height: int,
        percentage: float,
        region_id: int = 1,
        pixel_count: int | None = None,
    ) -> DifferenceRegion:
        count = width * height if pixel_count is None else pixel_count
        return DifferenceRegion(
            id=region_id,
            bounds=Bounds(x=x, y=y, width=width, height=height),
            pixel_count=count,
            difference_pixels=int(count * percentage / 100),
            difference_percentage=percentage,
        )

    return factory


@pytest.fixture
def shifted_box_context(images: type[ImageFactory]) -> AnalysisContext:
    """80x80 dark canvas with a white 17x17 box moved 10px to the right."""
    canvas = images.solid(80, 80, 50)
    original = images.with_box(canvas, 32, 32, 17, 17, 255)
    compared = images.with_box(canvas, 42, 32, 17, 17, 255)
    return AnalysisContext.from_images(original, compared)


@pytest.fixture
def added_block_context(images: type[ImageFactory]) -> AnalysisContext:
    """Light 80x80 canvas that gains a dark 40x40 block."""
    canvas = images.solid(80, 80, 240)
    compared = images.with_box(canvas, 20, 20, 40, 40, 50)
    return AnalysisContext.from_images(canvas, compared)


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Restore default structlog configuration after each test."""
    yield
    structlog.reset_defaults()
