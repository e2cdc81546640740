"""
Style change classifier.

Recognizes recolors such as theme switches, palette swaps and saturation or
contrast tweaks. Style changes alter colors while leaving edge structure in
place, so edge preservation is the main signal.
"""

from __future__ import annotations

import colorsys
import math
from dataclasses import dataclass
from typing import Any

import numpy as np

from diffsense.classifiers.base import DifferenceClassifier
from diffsense.classifiers.models import (
    AnalysisContext,
    ClassificationResult,
    DifferenceRegion,
    DifferenceType,
)
from diffsense.classifiers.pixels import (
    EdgeStats,
    PixelGrid,
    calculate_color_stats,
    detect_edges,
    extract_region_data,
)


@dataclass(frozen=True, slots=True)
class ColorCharacteristics:
    """HSL summary of a region, lightness and saturation in [0, 1], hue in degrees."""

    brightness: float
    saturation: float
    avg_hue: float
    contrast: float
    avg_color: tuple[int, int, int]


def analyze_color_characteristics(grid: PixelGrid) -> ColorCharacteristics:
    stats = calculate_color_stats(grid)
    avg_color = stats.avg_color[:3]

    rgb = grid.rgb().reshape(-1, 3)
    if len(rgb) == 0:
        return ColorCharacteristics(0.0, 0.0, 0.0, 0.0, avg_color)

    colors, counts = np.unique(rgb, axis=0, return_counts=True)
    total_hue = total_saturation = total_lightness = 0.0
    min_lightness, max_lightness = 1.0, 0.0

    for (r, g, b), count in zip(colors.tolist(), counts.tolist()):
        hue, lightness, saturation = colorsys.rgb_to_hls(r / 255, g / 255, b / 255)
        total_hue += hue * 360 * count
        total_saturation += saturation * count
        total_lightness += lightness * count
        min_lightness = min(min_lightness, lightness)
        max_lightness = max(max_lightness, lightness)

    pixel_count = len(rgb)
    return ColorCharacteristics(
        brightness=total_lightness / pixel_count,
        saturation=total_saturation / pixel_count,
        avg_hue=total_hue / pixel_count,
        contrast=max_lightness - min_lightness,
        avg_color=avg_color,
    )


def edge_preservation(original: EdgeStats, compared: EdgeStats) -> float:
    """Mean of the min/max density and count ratios, 1.0 when neither side has edges."""
    if original.edge_count == 0 or compared.edge_count == 0:
        return 1.0 if original.edge_count == compared.edge_count else 0.0

    density_ratio = min(original.edge_density, compared.edge_density) / max(
        original.edge_density, compared.edge_density
    )
    count_ratio = min(original.edge_count, compared.edge_count) / max(
        original.edge_count, compared.edge_count
    )
    return (density_ratio + count_ratio) / 2


def hue_shift(original_hue: float, compared_hue: float) -> float:
    """Angular hue distance normalized to [0, 1]."""
    diff = abs(original_hue - compared_hue)
    if diff > 180:
        diff = 360 - diff
    return diff / 180


class StyleClassifier(DifferenceClassifier):
    """Detects color, brightness, saturation and contrast changes."""

    default_name = "StyleClassifier"
    default_priority = 4

    def can_classify(self, region: DifferenceRegion, context: AnalysisContext) -> bool:
        return region.difference_percentage >= 2

    def classify(
        self, region: DifferenceRegion, context: AnalysisContext
    ) -> ClassificationResult | None:
        original = extract_region_data(context.original_image, region.bounds)
        compared = extract_region_data(context.compared_image, region.bounds)

        original_colors = analyze_color_characteristics(original)
        compared_colors = analyze_color_characteristics(compared)
        preservation = edge_preservation(detect_edges(original), detect_edges(compared))

        features: dict[str, Any] = {
            "colorShift": math.dist(original_colors.avg_color, compared_colors.avg_color) / 255,
            "brightnessChange": abs(original_colors.brightness - compared_colors.brightness),
            "saturationChange": abs(original_colors.saturation - compared_colors.saturation),
            "hueShift": hue_shift(original_colors.avg_hue, compared_colors.avg_hue),
            "edgesPreserved": preservation > 0.8,
            "contrastChange": abs(original_colors.contrast - compared_colors.contrast),
        }

        confidence = self._confidence(features, region)
        if not self._accept(region, confidence):
            return None

        return ClassificationResult(
            type=DifferenceType.STYLE,
            confidence=confidence,
            sub_type=self._sub_type(features),
            details={
                **features,
                "edgePreservation": preservation,
                "originalBrightness": original_colors.brightness,
                "comparedBrightness": compared_colors.brightness,
                "originalSaturation": original_colors.saturation,
                "comparedSaturation": compared_colors.saturation,
            },
        )

    def _confidence(self, features: dict[str, Any], region: DifferenceRegion) -> float:
        confidence = 0.0
        if features["edgesPreserved"]:
            confidence += 0.3
        if features["colorShift"] > 0.1:
            confidence += 0.2
        if features["brightnessChange"] > 0.1:
            confidence += 0.15
        if features["saturationChange"] > 0.1:
            confidence += 0.15
        if features["hueShift"] > 0.1:
            confidence += 0.1
        if features["contrastChange"] > 0.1:
            confidence += 0.1

        # Restructured regions are unlikely to be pure recolors
        if not features["edgesPreserved"] and region.difference_percentage > 30:
            confidence *= 0.5

        return min(confidence, 1.0)

    def _sub_type(self, features: dict[str, Any]) -> str:
        if features["brightnessChange"] > 0.3 and features["edgesPreserved"]:
            return "theme"
        if features["hueShift"] > 0.2 or features["colorShift"] > 0.2:
            return "color-scheme"
        if features["saturationChange"] > 0.2:
            return "saturation"
        if features["contrastChange"] > 0.2:
            return "contrast"
        if features["colorShift"] > 0.05:
            return "color-adjustment"
        return "subtle"
