"""
Difference classification engine.

Classifies localized pixel differences between two aligned images into
content, style, layout, size and structural changes.
"""

from diffsense.classifiers.base import Classifier, DifferenceClassifier
from diffsense.classifiers.config import (
    ClassifierConfig,
    ClassifierSettings,
    load_classifier_config,
)
from diffsense.classifiers.content import ContentClassifier
from diffsense.classifiers.layout import LayoutClassifier
from diffsense.classifiers.manager import (
    ClassifierError,
    ClassifierManager,
    InvalidConfidenceError,
    classify_all,
    create_default_manager,
)
from diffsense.classifiers.models import (
    AnalysisContext,
    Bounds,
    ClassificationResult,
    ClassificationSummary,
    ConfidenceStats,
    DifferenceRegion,
    DifferenceType,
    ImageBuffer,
    RegionClassification,
)
from diffsense.classifiers.pixels import (
    ColorStats,
    EdgeStats,
    PixelGrid,
    ShiftEstimate,
    calculate_color_stats,
    calculate_shift,
    detect_background_color,
    detect_edges,
    extract_region_data,
)
from diffsense.classifiers.registry import (
    ClassifierRegistry,
    build_default_registry,
    get_all_classifiers,
)
from diffsense.classifiers.size import SizeClassifier
from diffsense.classifiers.structural import StructuralClassifier
from diffsense.classifiers.style import StyleClassifier

__all__ = [
    # Models
    "AnalysisContext",
    "Bounds",
    "ClassificationResult",
    "ClassificationSummary",
    "ConfidenceStats",
    "DifferenceRegion",
    "DifferenceType",
    "ImageBuffer",
    "RegionClassification",
    # Primitives
    "ColorStats",
    "EdgeStats",
    "PixelGrid",
    "ShiftEstimate",
    "calculate_color_stats",
    "calculate_shift",
    "detect_background_color",
    "detect_edges",
    "extract_region_data",
    # Classifiers
    "Classifier",
    "ContentClassifier",
    "DifferenceClassifier",
    "LayoutClassifier",
    "SizeClassifier",
    "StructuralClassifier",
    "StyleClassifier",
    # Registry and manager
    "ClassifierError",
    "ClassifierManager",
    "ClassifierRegistry",
    "InvalidConfidenceError",
    "build_default_registry",
    "classify_all",
    "create_default_manager",
    "get_all_classifiers",
    # Configuration
    "ClassifierConfig",
    "ClassifierSettings",
    "load_classifier_config",
]
