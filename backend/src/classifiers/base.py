"""
Classifier contract shared by the manager, the registry and the heuristics.

Every classifier exposes a ``name`` and ``priority`` fixed at construction and
two pure methods: a cheap ``can_classify`` pre-check and the full ``classify``
analysis. Instances hold no per-call state and can be shared across threads.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

import structlog

from diffsense.classifiers.models import AnalysisContext, ClassificationResult, DifferenceRegion

logger = structlog.get_logger(__name__)

MIN_RESULT_CONFIDENCE = 0.3


@runtime_checkable
class Classifier(Protocol):
    """Anything the manager can dispatch regions to."""

    @property
    def name(self) -> str: ...

    @property
    def priority(self) -> int: ...

    def can_classify(self, region: DifferenceRegion, context: AnalysisContext) -> bool: ...

    def classify(
        self, region: DifferenceRegion, context: AnalysisContext
    ) -> ClassificationResult | None: ...


class DifferenceClassifier(ABC):
    """Abstract base class for the built-in heuristic classifiers."""

    default_name: str = "DifferenceClassifier"
    default_priority: int = 0

    def __init__(self, name: str | None = None, priority: int | None = None) -> None:
        self._name = name if name is not None else self.default_name
        self._priority = priority if priority is not None else self.default_priority
        self._log = logger.bind(component=self._name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def priority(self) -> int:
        return self._priority

    @abstractmethod
    def can_classify(self, region: DifferenceRegion, context: AnalysisContext) -> bool:
        """Quick applicability check, usually on ``difference_percentage`` alone."""
        ...

    @abstractmethod
    def classify(
        self, region: DifferenceRegion, context: AnalysisContext
    ) -> ClassificationResult | None:
        """Analyze the region, returning ``None`` when the heuristic does not apply."""
        ...

    def _accept(self, region: DifferenceRegion, confidence: float) -> bool:
        """Gate a computed confidence against the per-classifier floor."""
        if confidence < MIN_RESULT_CONFIDENCE:
            self._log.debug(
                "Discarding low confidence result",
                region_id=region.id,
                confidence=round(confidence, 3),
            )
            return False
        return True

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self._name!r}, priority={self._priority})"
