"""
Tag-to-factory registry for classifiers.

A registry is an ordinary value: build one, register factories on it and pass
it to whoever needs to construct classifiers. There is no process-wide table.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import structlog

from diffsense.classifiers.base import Classifier
from diffsense.classifiers.content import ContentClassifier
from diffsense.classifiers.layout import LayoutClassifier
from diffsense.classifiers.models import DifferenceType
from diffsense.classifiers.size import SizeClassifier
from diffsense.classifiers.structural import StructuralClassifier
from diffsense.classifiers.style import StyleClassifier

logger = structlog.get_logger(__name__)

type ClassifierFactory = Callable[..., Classifier]


class ClassifierRegistry:
    """Maps classifier tags to factories. Later registrations replace earlier ones."""

    def __init__(self, factories: Mapping[str, ClassifierFactory] | None = None) -> None:
        self._factories: dict[str, ClassifierFactory] = dict(factories or {})

    def register(self, tag: str, factory: ClassifierFactory) -> None:
        if tag in self._factories:
            logger.debug("Replacing classifier factory", tag=tag)
        self._factories[tag] = factory

    def get(self, tag: str) -> ClassifierFactory | None:
        return self._factories.get(tag)

    def create(self, tag: str, options: Mapping[str, Any] | None = None) -> Classifier | None:
        """Instantiate the classifier registered under ``tag``, or ``None`` if unknown."""
        factory = self._factories.get(tag)
        if factory is None:
            return None
        return factory(**dict(options or {}))

    def get_all(self) -> dict[str, ClassifierFactory]:
        return dict(self._factories)

    def tags(self) -> list[str]:
        return list(self._factories)

    def __contains__(self, tag: object) -> bool:
        return tag in self._factories

    def __len__(self) -> int:
        return len(self._factories)


def build_default_registry() -> ClassifierRegistry:
    """Registry with the built-in classifiers under their difference type tags."""
    registry = ClassifierRegistry()
    registry.register(DifferenceType.CONTENT, ContentClassifier)
    registry.register(DifferenceType.STYLE, StyleClassifier)
    registry.register(DifferenceType.LAYOUT, LayoutClassifier)
    registry.register(DifferenceType.SIZE, SizeClassifier)
    registry.register(DifferenceType.STRUCTURAL, StructuralClassifier)
    registry.register(DifferenceType.NEW_ELEMENT, StructuralClassifier)
    registry.register(DifferenceType.REMOVED_ELEMENT, StructuralClassifier)
    return registry


def get_all_classifiers() -> list[Classifier]:
    """Fresh instances of the five built-in classifiers."""
    return [
        ContentClassifier(),
        StyleClassifier(),
        LayoutClassifier(),
        SizeClassifier(),
        StructuralClassifier(),
    ]
