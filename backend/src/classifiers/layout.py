"""
Layout shift classifier.

Looks for content that moved without otherwise changing: the padded
neighbourhood of the region is searched for the translation that best maps
the original onto the compared image.
"""

from __future__ import annotations

from typing import Any

from diffsense.classifiers.base import DifferenceClassifier
from diffsense.classifiers.models import (
    AnalysisContext,
    ClassificationResult,
    DifferenceRegion,
    DifferenceType,
)
from diffsense.classifiers.pixels import (
    SHIFT_PADDING,
    EdgeStats,
    ShiftEstimate,
    detect_edges,
    estimate_shift,
    expand_bounds,
    extract_region_data,
    grayscale_histogram,
    histogram_intersection,
)


def edge_alignment(original: EdgeStats, compared: EdgeStats, shift: ShiftEstimate) -> float:
    """Edge count ratio between the two crops, 0.0 when no consistent shift exists."""
    if not shift.consistent:
        return 0.0
    return min(
        original.edge_count / (compared.edge_count or 1),
        compared.edge_count / (original.edge_count or 1),
    )


class LayoutClassifier(DifferenceClassifier):
    """Detects position shifts of otherwise unchanged elements."""

    default_name = "LayoutClassifier"
    default_priority = 6

    def can_classify(self, region: DifferenceRegion, context: AnalysisContext) -> bool:
        return 10 <= region.difference_percentage <= 70

    def classify(
        self, region: DifferenceRegion, context: AnalysisContext
    ) -> ClassificationResult | None:
        expanded = expand_bounds(region.bounds, SHIFT_PADDING, context.width, context.height)
        original = extract_region_data(context.original_image, expanded)
        compared = extract_region_data(context.compared_image, expanded)

        shift = estimate_shift(original, compared)
        similarity = histogram_intersection(
            grayscale_histogram(original), grayscale_histogram(compared)
        )
        alignment = edge_alignment(detect_edges(original), detect_edges(compared), shift)

        features: dict[str, Any] = {
            "consistent": shift.consistent,
            "distance": shift.distance,
            "similarity": similarity,
            "alignment": alignment,
            "horizontal": abs(shift.dx) > abs(shift.dy),
            "vertical": abs(shift.dy) > abs(shift.dx),
        }

        confidence = self._confidence(features, region)
        if not self._accept(region, confidence):
            return None

        return ClassificationResult(
            type=DifferenceType.LAYOUT,
            confidence=confidence,
            sub_type=self._sub_type(features),
            details={
                "shiftX": shift.dx,
                "shiftY": shift.dy,
                "shiftDistance": shift.distance,
                "shiftDirection": shift.direction,
                "structuralSimilarity": similarity,
                "edgeAlignment": alignment,
            },
        )

    def _confidence(self, features: dict[str, Any], region: DifferenceRegion) -> float:
        confidence = 0.0
        if features["consistent"]:
            confidence += 0.3
        if features["distance"] > 5:
            confidence += 0.2
        if features["similarity"] > 0.7:
            confidence += 0.2
        if features["alignment"] > 0.7:
            confidence += 0.2
        if features["horizontal"] or features["vertical"]:
            confidence += 0.1

        if region.difference_percentage > 60:
            confidence *= 0.7
        if region.difference_percentage < 15:
            confidence *= 0.8

        return min(confidence, 1.0)

    def _sub_type(self, features: dict[str, Any]) -> str:
        distance = features["distance"]
        if distance < 5:
            return "micro-shift"
        if features["horizontal"]:
            return "horizontal-shift"
        if features["vertical"]:
            return "vertical-shift"
        if distance > 20:
            return "major-shift"
        return "diagonal-shift"
