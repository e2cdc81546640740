"""
Classifier manager.

Dispatches difference regions to registered classifiers in descending
priority order. The first result that meets the confidence threshold wins;
regions nobody explains are reported as UNKNOWN.

Configuration lives in a single immutable snapshot that is swapped under a
lock, so registrations and threshold changes may happen while other threads
classify. A batch reads one snapshot for all of its regions.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace

import structlog

from diffsense.classifiers.base import Classifier
from diffsense.classifiers.config import ClassifierConfig
from diffsense.classifiers.models import (
    AnalysisContext,
    ClassificationResult,
    ClassificationSummary,
    ConfidenceStats,
    DifferenceRegion,
    DifferenceType,
    RegionClassification,
    empty_type_counts,
)
from diffsense.classifiers.registry import (
    ClassifierRegistry,
    build_default_registry,
    get_all_classifiers,
)

logger = structlog.get_logger(__name__)

UNMATCHED_CLASSIFIER = "none"
UNMATCHED_REASON = "No classifier matched with sufficient confidence"


class ClassifierError(Exception):
    """Base exception for classifier manager errors."""

    pass


class InvalidConfidenceError(ClassifierError, ValueError):
    """Raised when a confidence threshold falls outside [0, 1]."""

    pass


@dataclass(frozen=True, slots=True)
class _ManagerState:
    classifiers: tuple[Classifier, ...] = ()
    min_confidence: float = 0.5


def _validate_confidence(value: float) -> float:
    if not 0.0 <= value <= 1.0:
        raise InvalidConfidenceError(f"Confidence must be between 0 and 1, got {value}")
    return float(value)


def _sort_by_priority(classifiers: Iterable[Classifier]) -> tuple[Classifier, ...]:
    # sorted() is stable, so equal priorities keep registration order
    return tuple(sorted(classifiers, key=lambda c: c.priority, reverse=True))


class ClassifierManager:
    """
    Runs the classification pipeline over difference regions.

    Classifiers are consulted from highest to lowest priority. For each one
    that accepts the region via ``can_classify``, ``classify`` is called and
    its result is taken if the confidence reaches ``min_confidence``.
    """

    def __init__(
        self,
        min_confidence: float = 0.5,
        classifiers: Iterable[Classifier] = (),
        max_workers: int = 1,
    ) -> None:
        self._lock = threading.Lock()
        self._state = _ManagerState(
            classifiers=_sort_by_priority(classifiers),
            min_confidence=_validate_confidence(min_confidence),
        )
        self._max_workers = max(1, max_workers)
        self._log = logger.bind(component="classifier_manager")

    @property
    def classifiers(self) -> tuple[Classifier, ...]:
        """Registered classifiers in dispatch order."""
        return self._state.classifiers

    @property
    def min_confidence(self) -> float:
        return self._state.min_confidence

    @min_confidence.setter
    def min_confidence(self, value: float) -> None:
        threshold = _validate_confidence(value)
        with self._lock:
            self._state = replace(self._state, min_confidence=threshold)

    def register_classifier(self, classifier: Classifier) -> None:
        with self._lock:
            self._state = replace(
                self._state,
                classifiers=_sort_by_priority((*self._state.classifiers, classifier)),
            )
        self._log.info(
            "Registered classifier",
            classifier=classifier.name,
            priority=classifier.priority,
        )

    def unregister_classifier(self, name: str) -> bool:
        """Remove every classifier with ``name``. Returns whether any was removed."""
        with self._lock:
            remaining = tuple(c for c in self._state.classifiers if c.name != name)
            removed = len(remaining) < len(self._state.classifiers)
            if removed:
                self._state = replace(self._state, classifiers=remaining)

        if removed:
            self._log.info("Unregistered classifier", classifier=name)
        return removed

    def classify_region(
        self, region: DifferenceRegion, context: AnalysisContext
    ) -> RegionClassification:
        """Classify one region. Never returns ``None``; unmatched regions become UNKNOWN."""
        return self._classify_with(self._state, region, context)

    def classify_regions(
        self,
        regions: Sequence[DifferenceRegion],
        context: AnalysisContext,
        max_workers: int | None = None,
    ) -> ClassificationSummary:
        """
        Classify a batch of regions and aggregate the results.

        Args:
            regions: Regions to classify
            context: Image pair the regions were computed from
            max_workers: Thread count; defaults to the manager setting

        Returns:
            Summary whose ``regions`` follow the input order
        """
        state = self._state
        workers = min(max_workers or self._max_workers, max(len(regions), 1))

        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                classifications = list(
                    executor.map(lambda r: self._classify_with(state, r, context), regions)
                )
        else:
            classifications = [self._classify_with(state, r, context) for r in regions]

        summary = self._summarize(classifications)
        self._log.info(
            "Classified regions",
            total=summary.total_regions,
            classified=summary.classified_regions,
            unknown=summary.unclassified_regions,
            workers=workers,
        )
        return summary

    def generate_summary_text(self, summary: ClassificationSummary) -> str:
        """Render a human-readable breakdown of a summary."""
        total = summary.total_regions

        def percent(count: int) -> str:
            return f"{(count / total * 100) if total else 0.0:.1f}%"

        lines = [
            f"Analyzed {total} difference regions:",
            f"- Successfully classified: {summary.classified_regions} "
            f"({percent(summary.classified_regions)})",
            f"- Unknown: {summary.unclassified_regions}",
            "",
            "Classification breakdown:",
        ]
        for difference_type, count in summary.by_type.items():
            if count > 0:
                lines.append(f"- {difference_type}: {count} regions ({percent(count)})")

        confidence = summary.confidence
        lines.extend(
            [
                "",
                f"Confidence: min={confidence.min:.2f}, "
                f"avg={confidence.avg:.2f}, max={confidence.max:.2f}",
            ]
        )
        return "\n".join(lines)

    def _classify_with(
        self,
        state: _ManagerState,
        region: DifferenceRegion,
        context: AnalysisContext,
    ) -> RegionClassification:
        for classifier in state.classifiers:
            if not classifier.can_classify(region, context):
                continue

            result = classifier.classify(region, context)
            if result is not None and result.confidence >= state.min_confidence:
                self._log.debug(
                    "Region classified",
                    region_id=region.id,
                    classifier=classifier.name,
                    type=str(result.type),
                    sub_type=result.sub_type,
                    confidence=round(result.confidence, 3),
                )
                return RegionClassification(
                    region=region, classification=result, classifier=classifier.name
                )

        self._log.debug("Region unclassified", region_id=region.id)
        return RegionClassification(
            region=region,
            classification=ClassificationResult(
                type=DifferenceType.UNKNOWN,
                confidence=0.0,
                details={"reason": UNMATCHED_REASON},
            ),
            classifier=UNMATCHED_CLASSIFIER,
        )

    @staticmethod
    def _summarize(classifications: list[RegionClassification]) -> ClassificationSummary:
        by_type = empty_type_counts()
        classified = 0
        confidences: list[float] = []

        for item in classifications:
            result = item.classification
            by_type[result.type] += 1
            confidences.append(result.confidence)
            if result.type != DifferenceType.UNKNOWN:
                classified += 1

        if confidences:
            stats = ConfidenceStats(
                min=min(confidences),
                avg=sum(confidences) / len(confidences),
                max=max(confidences),
            )
        else:
            stats = ConfidenceStats()

        return ClassificationSummary(
            total_regions=len(classifications),
            classified_regions=classified,
            unclassified_regions=len(classifications) - classified,
            by_type=by_type,
            confidence=stats,
            regions=classifications,
        )


def classify_all(
    region: DifferenceRegion,
    context: AnalysisContext,
    classifiers: Iterable[Classifier] | None = None,
) -> list[ClassificationResult]:
    """
    Collect every applicable result for a region, highest priority first.

    Unlike the manager, no confidence threshold is applied and no result
    short-circuits the others.
    """
    if classifiers is None:
        classifiers = get_all_classifiers()

    results: list[ClassificationResult] = []
    for classifier in _sort_by_priority(classifiers):
        if not classifier.can_classify(region, context):
            continue
        result = classifier.classify(region, context)
        if result is not None:
            results.append(result)
    return results


def create_default_manager(
    config: ClassifierConfig | None = None,
    registry: ClassifierRegistry | None = None,
) -> ClassifierManager:
    """
    Build a manager populated from a registry.

    Each distinct factory is instantiated once, so tags that alias the same
    classifier do not register duplicates. Disabling any tag of a factory
    disables the factory under all of its aliases.
    """
    config = config or ClassifierConfig()
    registry = registry or build_default_registry()
    factories = registry.get_all()

    disabled = [factory for tag, factory in factories.items() if not config.is_enabled(tag)]
    instances: list[Classifier] = []
    seen: list[object] = []
    for factory in factories.values():
        if any(factory is f for f in (*disabled, *seen)):
            continue
        seen.append(factory)
        instances.append(factory())

    manager = ClassifierManager(
        min_confidence=config.min_confidence,
        classifiers=instances,
        max_workers=config.max_workers,
    )
    logger.info(
        "Created classifier manager",
        classifiers=[c.name for c in manager.classifiers],
        min_confidence=config.min_confidence,
    )
    return manager
