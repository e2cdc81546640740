"""
Content change classifier.

Flags regions whose text or imagery changed, based on edge density, color
variance and the stability of the dominant color palette.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from diffsense.classifiers.base import DifferenceClassifier
from diffsense.classifiers.models import (
    AnalysisContext,
    ClassificationResult,
    DifferenceRegion,
    DifferenceType,
)
from diffsense.classifiers.pixels import (
    DominantColor,
    EdgeStats,
    calculate_color_stats,
    detect_edges,
    extract_region_data,
)


def dominant_color_change(
    original: Sequence[DominantColor], compared: Sequence[DominantColor]
) -> float:
    """
    Share of palette entries that did not survive the change.

    A color survives when present on both sides with a count differing by
    less than 30% of the larger count.
    """
    if not original or not compared:
        return 1.0

    original_counts = {c.color: c.count for c in original}
    compared_counts = {c.color: c.count for c in compared}
    total = len(original_counts.keys() | compared_counts.keys())

    matching = 0
    for color, count in original_counts.items():
        other = compared_counts.get(color)
        if other is None:
            continue
        if abs(count - other) / max(count, other) < 0.3:
            matching += 1

    return 1 - matching / total


class ContentClassifier(DifferenceClassifier):
    """Detects text changes, image replacements and other content edits."""

    default_name = "ContentClassifier"
    default_priority = 5

    def can_classify(self, region: DifferenceRegion, context: AnalysisContext) -> bool:
        return region.difference_percentage >= 5

    def classify(
        self, region: DifferenceRegion, context: AnalysisContext
    ) -> ClassificationResult | None:
        original = extract_region_data(context.original_image, region.bounds)
        compared = extract_region_data(context.compared_image, region.bounds)

        original_stats = calculate_color_stats(original)
        compared_stats = calculate_color_stats(compared)
        original_edges = detect_edges(original)
        compared_edges = detect_edges(compared)

        variance_change = abs(original_stats.variance - compared_stats.variance)
        edge_density_change = abs(original_edges.edge_density - compared_edges.edge_density)
        color_change = dominant_color_change(
            original_stats.dominant_colors, compared_stats.dominant_colors
        )

        features = {
            "high_edge_density": original_edges.edge_density > 0.1
            or compared_edges.edge_density > 0.1,
            "significant_edge_change": edge_density_change > 0.05,
            "high_color_variance": original_stats.variance > 1000
            or compared_stats.variance > 1000,
            "significant_color_change": color_change > 0.3,
            "large_region": region.pixel_count > 1000,
        }

        confidence = self._confidence(features, region)
        if not self._accept(region, confidence):
            return None

        return ClassificationResult(
            type=DifferenceType.CONTENT,
            confidence=confidence,
            sub_type=self._sub_type(features, original_edges, compared_edges),
            details={
                "edgeDensityChange": edge_density_change,
                "colorVarianceChange": variance_change,
                "dominantColorChange": color_change,
                "originalEdgeDensity": original_edges.edge_density,
                "comparedEdgeDensity": compared_edges.edge_density,
            },
        )

    def _confidence(self, features: dict[str, Any], region: DifferenceRegion) -> float:
        confidence = 0.0
        if features["high_edge_density"]:
            confidence += 0.3
        if features["significant_edge_change"]:
            confidence += 0.2
        if features["high_color_variance"]:
            confidence += 0.2
        if features["significant_color_change"]:
            confidence += 0.2
        if features["large_region"]:
            confidence += 0.1

        if region.difference_percentage > 50:
            confidence += 0.2
        elif region.difference_percentage > 30:
            confidence += 0.1

        return min(confidence, 1.0)

    def _sub_type(
        self,
        features: dict[str, Any],
        original_edges: EdgeStats,
        compared_edges: EdgeStats,
    ) -> str:
        if original_edges.edge_density > 0.3 or compared_edges.edge_density > 0.3:
            return "text"
        if features["high_color_variance"] and features["high_edge_density"]:
            return "image"
        if not features["high_edge_density"] and features["significant_color_change"]:
            return "solid"
        return "mixed"
