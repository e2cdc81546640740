"""
diffsense visual difference classification.

Explains why two aligned screenshots differ by sorting changed regions into
content, style, layout, size and structural changes with confidence scores.
"""

__version__ = "1.0.0"

from diffsense.classifiers import (
    AnalysisContext,
    Bounds,
    ClassificationResult,
    ClassificationSummary,
    ClassifierConfig,
    ClassifierManager,
    ClassifierRegistry,
    DifferenceRegion,
    DifferenceType,
    ImageBuffer,
    InvalidConfidenceError,
    RegionClassification,
    build_default_registry,
    classify_all,
    create_default_manager,
    get_all_classifiers,
    load_classifier_config,
)
from diffsense.logging_config import configure_logging

__all__ = [
    "AnalysisContext",
    "Bounds",
    "ClassificationResult",
    "ClassificationSummary",
    "ClassifierConfig",
    "ClassifierManager",
    "ClassifierRegistry",
    "DifferenceRegion",
    "DifferenceType",
    "ImageBuffer",
    "InvalidConfidenceError",
    "RegionClassification",
    "__version__",
    "build_default_registry",
    "classify_all",
    "configure_logging",
    "create_default_manager",
    "get_all_classifiers",
    "load_classifier_config",
]
