"""
Size change classifier.

Compares the bounding box of the visible content on each side of a region to
detect scaling, resizing and aspect ratio changes of a single element.
"""

from __future__ import annotations

from dataclasses import dataclass

from diffsense.classifiers.base import DifferenceClassifier
from diffsense.classifiers.models import (
    AnalysisContext,
    Bounds,
    ClassificationResult,
    DifferenceRegion,
    DifferenceType,
)
from diffsense.classifiers.pixels import (
    PixelGrid,
    color_delta,
    detect_background_color,
    edge_map,
    extract_region_data,
    grayscale_histogram,
    histogram_intersection,
)

BACKGROUND_DELTA = 30


@dataclass(frozen=True, slots=True)
class ContentBox:
    """Inclusive pixel extent of the content inside a region."""

    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left + 1

    @property
    def height(self) -> int:
        return self.bottom - self.top + 1

    def to_bounds(self) -> Bounds:
        return Bounds(x=self.left, y=self.top, width=self.width, height=self.height)


@dataclass(frozen=True, slots=True)
class SizeAnalysis:
    boundary_changed: bool
    width_change: float
    height_change: float
    aspect_ratio_change: float
    uniform_scale: bool
    expansion_type: str
    original_size: tuple[int, int]
    compared_size: tuple[int, int]


def detect_content_box(grid: PixelGrid) -> ContentBox:
    """
    Locate the content extent of a region.

    Uses the Sobel edge map first, then falls back to pixels that differ from
    the sampled background. A region with neither yields the full grid.
    """
    mask = edge_map(grid)
    if not mask.any():
        mask = color_delta(grid, detect_background_color(grid)) > BACKGROUND_DELTA
    if not mask.any():
        return ContentBox(left=0, top=0, right=grid.width - 1, bottom=grid.height - 1)

    rows = mask.any(axis=1).nonzero()[0]
    cols = mask.any(axis=0).nonzero()[0]
    return ContentBox(
        left=int(cols[0]), top=int(rows[0]), right=int(cols[-1]), bottom=int(rows[-1])
    )


def analyze_size_change(original: ContentBox, compared: ContentBox) -> SizeAnalysis:
    width_change = (compared.width - original.width) / original.width
    height_change = (compared.height - original.height) / original.height

    original_aspect = original.width / original.height
    compared_aspect = compared.width / compared.height
    aspect_ratio_change = abs(compared_aspect - original_aspect) / original_aspect

    if width_change > 0.05 and height_change > 0.05:
        expansion_type = "expand"
    elif width_change < -0.05 and height_change < -0.05:
        expansion_type = "shrink"
    elif abs(width_change) > 0.05 or abs(height_change) > 0.05:
        expansion_type = "stretch"
    else:
        expansion_type = "none"

    return SizeAnalysis(
        boundary_changed=abs(width_change) > 0.05 or abs(height_change) > 0.05,
        width_change=width_change,
        height_change=height_change,
        aspect_ratio_change=aspect_ratio_change,
        uniform_scale=abs(width_change - height_change) < 0.1,
        expansion_type=expansion_type,
        original_size=(original.width, original.height),
        compared_size=(compared.width, compared.height),
    )


class SizeClassifier(DifferenceClassifier):
    """Detects elements that grew, shrank or changed proportions."""

    default_name = "SizeClassifier"
    default_priority = 3

    def can_classify(self, region: DifferenceRegion, context: AnalysisContext) -> bool:
        return 5 <= region.difference_percentage <= 80

    def classify(
        self, region: DifferenceRegion, context: AnalysisContext
    ) -> ClassificationResult | None:
        if region.bounds.area == 0:
            return None

        original = extract_region_data(context.original_image, region.bounds)
        compared = extract_region_data(context.compared_image, region.bounds)

        original_box = detect_content_box(original)
        compared_box = detect_content_box(compared)
        analysis = analyze_size_change(original_box, compared_box)

        similarity = histogram_intersection(
            grayscale_histogram(original.crop(original_box.to_bounds())),
            grayscale_histogram(compared.crop(compared_box.to_bounds())),
        )

        confidence = self._confidence(analysis, similarity, region)
        if not self._accept(region, confidence):
            return None

        return ClassificationResult(
            type=DifferenceType.SIZE,
            confidence=confidence,
            sub_type=self._sub_type(analysis),
            details={
                "widthChange": analysis.width_change,
                "heightChange": analysis.height_change,
                "aspectRatioChange": analysis.aspect_ratio_change,
                "originalSize": _size_dict(analysis.original_size),
                "comparedSize": _size_dict(analysis.compared_size),
                "contentSimilarity": similarity,
            },
        )

    def _confidence(
        self, analysis: SizeAnalysis, similarity: float, region: DifferenceRegion
    ) -> float:
        confidence = 0.0
        if analysis.boundary_changed:
            confidence += 0.3
        if similarity > 0.7:
            confidence += 0.3
        if abs(analysis.width_change) > 0.1:
            confidence += 0.15
        if abs(analysis.height_change) > 0.1:
            confidence += 0.15
        if analysis.uniform_scale:
            confidence += 0.1

        if not analysis.uniform_scale and analysis.aspect_ratio_change > 0.2:
            confidence *= 0.8
        if region.difference_percentage > 70:
            confidence *= 0.7

        return min(confidence, 1.0)

    def _sub_type(self, analysis: SizeAnalysis) -> str:
        width_change = abs(analysis.width_change)
        height_change = abs(analysis.height_change)

        if analysis.uniform_scale:
            match analysis.expansion_type:
                case "expand":
                    return "scale-up"
                case "shrink":
                    return "scale-down"
                case _:
                    return "scale"
        if width_change > height_change * 2:
            return "horizontal-resize"
        if height_change > width_change * 2:
            return "vertical-resize"
        if analysis.aspect_ratio_change > 0.2:
            return "aspect-change"
        return analysis.expansion_type


def _size_dict(size: tuple[int, int]) -> dict[str, int]:
    width, height = size
    return {"width": width, "height": height}
