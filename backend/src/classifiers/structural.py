"""
Structural change classifier.

Detects elements that appeared in or vanished from a region by comparing how
much non-background content each side holds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from diffsense.classifiers.base import DifferenceClassifier
from diffsense.classifiers.models import (
    AnalysisContext,
    ClassificationResult,
    DifferenceRegion,
    DifferenceType,
)
from diffsense.classifiers.pixels import (
    PixelGrid,
    color_delta,
    detect_background_color,
    detect_edges,
    extract_region_data,
)

BACKGROUND_DELTA = 30
OPAQUE_ALPHA = 250


@dataclass(frozen=True, slots=True)
class ContentPresence:
    has_content: bool
    content_density: float
    coverage: float
    edge_count: int


@dataclass(frozen=True, slots=True)
class QuadrantOccupancy:
    filled: int
    pattern: str


@dataclass(frozen=True, slots=True)
class StructuralChange:
    type: str
    pattern: str
    quadrants: QuadrantOccupancy | None = None


def analyze_content_presence(grid: PixelGrid) -> ContentPresence:
    """Measure how much of the region differs from its background."""
    background = detect_background_color(grid)
    content = (color_delta(grid, background) > BACKGROUND_DELTA) | (grid.alpha() < OPAQUE_ALPHA)

    total = grid.pixel_count
    density = float(content.sum()) / total if total else 0.0
    edge_count = detect_edges(grid).edge_count

    return ContentPresence(
        has_content=density > 0.05 or edge_count > 10,
        content_density=density,
        coverage=density,
        edge_count=edge_count,
    )


def analyze_quadrants(grid: PixelGrid) -> QuadrantOccupancy:
    """
    Report which quadrants of the region hold non-background pixels.

    Quadrants split at ``width // 2`` and ``height // 2`` and are ordered
    top-left, top-right, bottom-left, bottom-right.
    """
    mask = color_delta(grid, detect_background_color(grid)) > BACKGROUND_DELTA
    mid_x, mid_y = grid.width // 2, grid.height // 2
    quadrants = [
        bool(mask[:mid_y, :mid_x].any()),
        bool(mask[:mid_y, mid_x:].any()),
        bool(mask[mid_y:, :mid_x].any()),
        bool(mask[mid_y:, mid_x:].any()),
    ]

    filled = sum(quadrants)
    pattern = "scattered"
    match filled:
        case 4:
            pattern = "full"
        case 2:
            if (quadrants[0] and quadrants[1]) or (quadrants[2] and quadrants[3]):
                pattern = "horizontal"
            elif (quadrants[0] and quadrants[2]) or (quadrants[1] and quadrants[3]):
                pattern = "vertical"
        case 1:
            pattern = "corner"

    return QuadrantOccupancy(filled=filled, pattern=pattern)


def _element_pattern(grid: PixelGrid, suffix: str) -> tuple[str, QuadrantOccupancy]:
    edges = detect_edges(grid)
    quadrants = analyze_quadrants(grid)

    if edges.edge_density > 0.3:
        return f"text-{suffix}", quadrants
    if quadrants.filled >= 3:
        return f"block-{suffix}", quadrants
    if edges.edge_density > 0.1:
        return f"element-{suffix}", quadrants
    fallback = "content-addition" if suffix == "addition" else "element-removal"
    return fallback, quadrants


def analyze_structural_change(
    original: ContentPresence,
    compared: ContentPresence,
    original_grid: PixelGrid,
    compared_grid: PixelGrid,
) -> StructuralChange:
    if not original.has_content and compared.has_content:
        pattern, quadrants = _element_pattern(compared_grid, "addition")
        return StructuralChange(type="addition", pattern=pattern, quadrants=quadrants)

    if original.has_content and not compared.has_content:
        pattern, quadrants = _element_pattern(original_grid, "removal")
        return StructuralChange(type="removal", pattern=pattern, quadrants=quadrants)

    if original.has_content and compared.has_content:
        if original.content_density == 0:
            ratio = float("inf")
        else:
            ratio = compared.content_density / original.content_density

        if ratio > 1.5:
            return StructuralChange(type="expansion", pattern="content-increase")
        if ratio < 0.5:
            return StructuralChange(type="reduction", pattern="content-decrease")
        return StructuralChange(type="modification", pattern="content-change")

    return StructuralChange(type="unknown", pattern="none")


class StructuralClassifier(DifferenceClassifier):
    """Detects added and removed elements."""

    default_name = "StructuralClassifier"
    default_priority = 7

    def can_classify(self, region: DifferenceRegion, context: AnalysisContext) -> bool:
        return region.difference_percentage >= 30

    def classify(
        self, region: DifferenceRegion, context: AnalysisContext
    ) -> ClassificationResult | None:
        original = extract_region_data(context.original_image, region.bounds)
        compared = extract_region_data(context.compared_image, region.bounds)

        original_presence = analyze_content_presence(original)
        compared_presence = analyze_content_presence(compared)
        change = analyze_structural_change(
            original_presence, compared_presence, original, compared
        )

        is_addition = change.type == "addition"
        is_removal = change.type == "removal"

        features: dict[str, Any] = {
            "is_addition": is_addition,
            "is_removal": is_removal,
            "is_partial": original_presence.has_content and compared_presence.has_content,
            "density_change": abs(
                compared_presence.content_density - original_presence.content_density
            ),
            "coverage_change": abs(compared_presence.coverage - original_presence.coverage),
            "original_empty": not original_presence.has_content,
            "compared_empty": not compared_presence.has_content,
        }

        confidence = self._confidence(features, region)
        if not self._accept(region, confidence):
            return None

        return ClassificationResult(
            type=DifferenceType.STRUCTURAL,
            confidence=confidence,
            sub_type=self._sub_type(change),
            details={
                "isAddition": is_addition,
                "isRemoval": is_removal,
                "originalContentDensity": original_presence.content_density,
                "comparedContentDensity": compared_presence.content_density,
                "originalCoverage": original_presence.coverage,
                "comparedCoverage": compared_presence.coverage,
                "structuralPattern": change.pattern,
                "quadrantPattern": change.quadrants.pattern if change.quadrants else None,
            },
        )

    def _confidence(self, features: dict[str, Any], region: DifferenceRegion) -> float:
        confidence = 0.0
        if features["is_addition"] or features["is_removal"]:
            confidence += 0.5
        if features["density_change"] > 0.5:
            confidence += 0.2
        if features["coverage_change"] > 0.5:
            confidence += 0.2
        if features["original_empty"] != features["compared_empty"]:
            confidence += 0.2

        if features["is_partial"]:
            confidence *= 0.7
        if region.difference_percentage > 70:
            confidence += 0.1

        return min(confidence, 1.0)

    def _sub_type(self, change: StructuralChange) -> str:
        match change.type:
            case "addition":
                return f"new-{change.pattern}"
            case "removal":
                return f"removed-{change.pattern}"
            case "expansion":
                return "element-expansion"
            case "reduction":
                return "element-reduction"
            case _:
                return "structural-modification"
