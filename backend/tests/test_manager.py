"""
Tests for the classifier manager.

Tests cover:
- Priority dispatch and tie-breaking
- Confidence threshold gating and UNKNOWN fallback
- Batch aggregation, ordering and thread pools
- Summary text rendering
- Default manager construction
- classify_all
- Determinism and confidence bounds over arbitrary regions
"""

from __future__ import annotations

import json

import numpy as np
import pytest

from diffsense.classifiers import (
    ClassifierConfig,
    ClassifierManager,
    ContentClassifier,
    InvalidConfidenceError,
    classify_all,
    create_default_manager,
    get_all_classifiers,
)
from diffsense.classifiers.models import (
    AnalysisContext,
    ClassificationResult,
    DifferenceRegion,
    DifferenceType,
)
from diffsense.classifiers.registry import ClassifierRegistry


class StubClassifier:
    """Classifier returning a fixed result for regions above a difference threshold."""

    def __init__(
        self,
        name: str,
        priority: int,
        confidence: float | None = 0.8,
        difference_type: DifferenceType = DifferenceType.CONTENT,
        min_percentage: float = 0.0,
    ) -> None:
        self.name = name
        self.priority = priority
        self.confidence = confidence
        self.difference_type = difference_type
        self.min_percentage = min_percentage
        self.calls = 0

    def can_classify(self, region: DifferenceRegion, context: AnalysisContext) -> bool:
        return region.difference_percentage >= self.min_percentage

    def classify(
        self, region: DifferenceRegion, context: AnalysisContext
    ) -> ClassificationResult | None:
        self.calls += 1
        if self.confidence is None:
            return None
        return ClassificationResult(
            type=self.difference_type,
            confidence=self.confidence,
            sub_type=self.name,
        )


@pytest.fixture
def context(make_context, images) -> AnalysisContext:
    image = images.solid(20, 20, 128)
    return make_context(image, image)


class TestDispatch:
    """Tests for single region classification."""

    def test_priority_order(self, make_region, context) -> None:
        """Test that higher priority classifiers are consulted first."""
        manager = ClassifierManager()
        manager.register_classifier(StubClassifier("low", 1, difference_type=DifferenceType.SIZE))
        manager.register_classifier(StubClassifier("high", 10, difference_type=DifferenceType.STYLE))

        result = manager.classify_region(make_region(0, 0, 10, 10, 50.0), context)

        assert [c.name for c in manager.classifiers] == ["high", "low"]
        assert result.classifier == "high"
        assert result.classification.type == DifferenceType.STYLE

    def test_equal_priority_keeps_registration_order(self, make_region, context) -> None:
        """Test the tie-break between equal priorities."""
        manager = ClassifierManager()
        manager.register_classifier(StubClassifier("first", 5))
        manager.register_classifier(StubClassifier("second", 5))

        result = manager.classify_region(make_region(0, 0, 10, 10, 50.0), context)

        assert result.classifier == "first"

    def test_threshold_gates_results(self, make_region, context) -> None:
        """Test that results below the threshold fall back to UNKNOWN."""
        stub = StubClassifier("stub", 5, confidence=0.8)
        manager = ClassifierManager(min_confidence=0.9, classifiers=[stub])

        result = manager.classify_region(make_region(0, 0, 10, 10, 50.0), context)

        assert stub.calls == 1
        assert result.classifier == "none"
        assert result.classification.type == DifferenceType.UNKNOWN
        assert result.classification.confidence == 0.0
        assert result.classification.details == {
            "reason": "No classifier matched with sufficient confidence"
        }

    def test_falls_through_to_lower_priority(self, make_region, context) -> None:
        """Test that weak or missing results pass the region on."""
        manager = ClassifierManager(
            classifiers=[
                StubClassifier("weak", 9, confidence=0.2),
                StubClassifier("silent", 8, confidence=None),
                StubClassifier("strong", 1, confidence=0.7),
            ]
        )

        result = manager.classify_region(make_region(0, 0, 10, 10, 50.0), context)

        assert result.classifier == "strong"

    def test_can_classify_skips(self, make_region, context) -> None:
        """Test that inapplicable classifiers are never asked to classify."""
        picky = StubClassifier("picky", 9, min_percentage=90.0)
        manager = ClassifierManager(classifiers=[picky, StubClassifier("any", 1)])

        result = manager.classify_region(make_region(0, 0, 10, 10, 50.0), context)

        assert picky.calls == 0
        assert result.classifier == "any"

    def test_threshold_is_inclusive(self, make_region, context) -> None:
        """Test that a result exactly at the threshold is accepted."""
        manager = ClassifierManager(
            min_confidence=0.8, classifiers=[StubClassifier("exact", 1, confidence=0.8)]
        )

        result = manager.classify_region(make_region(0, 0, 10, 10, 50.0), context)

        assert result.classifier == "exact"

    def test_out_of_bounds_region_propagates(self, make_region, context) -> None:
        """Test that invalid bounds are not swallowed."""
        manager = ClassifierManager(classifiers=[ContentClassifier()])

        with pytest.raises(IndexError):
            manager.classify_region(make_region(15, 15, 10, 10, 50.0), context)


class TestConfiguration:
    """Tests for manager configuration."""

    def test_invalid_threshold(self) -> None:
        """Test that thresholds outside [0, 1] are rejected."""
        manager = ClassifierManager()

        with pytest.raises(InvalidConfidenceError, match="between 0 and 1"):
            manager.min_confidence = 1.5
        with pytest.raises(ValueError):
            manager.min_confidence = -0.1
        assert manager.min_confidence == 0.5

    def test_invalid_threshold_at_construction(self) -> None:
        """Test constructor validation."""
        with pytest.raises(InvalidConfidenceError):
            ClassifierManager(min_confidence=2.0)

    def test_threshold_update(self, make_region, context) -> None:
        """Test that threshold changes apply to later classifications."""
        manager = ClassifierManager(classifiers=[StubClassifier("stub", 1, confidence=0.6)])
        region = make_region(0, 0, 10, 10, 50.0)

        assert manager.classify_region(region, context).classifier == "stub"
        manager.min_confidence = 0.7
        assert manager.classify_region(region, context).classifier == "none"

    def test_unregister(self) -> None:
        """Test removing classifiers by name."""
        manager = ClassifierManager(
            classifiers=[StubClassifier("a", 1), StubClassifier("b", 2)]
        )

        assert manager.unregister_classifier("a")
        assert not manager.unregister_classifier("a")
        assert [c.name for c in manager.classifiers] == ["b"]


class TestBatch:
    """Tests for classify_regions."""

    def regions(self, make_region) -> list[DifferenceRegion]:
        return [
            make_region(0, 0, 10, 10, 60.0, region_id=1),
            make_region(0, 0, 10, 10, 70.0, region_id=2),
            make_region(0, 0, 10, 10, 10.0, region_id=3),
        ]

    def manager(self) -> ClassifierManager:
        return ClassifierManager(
            classifiers=[StubClassifier("stub", 1, confidence=0.8, min_percentage=50.0)]
        )

    def test_aggregation(self, make_region, context) -> None:
        """Test counts and confidence statistics."""
        summary = self.manager().classify_regions(self.regions(make_region), context)

        assert summary.total_regions == 3
        assert summary.classified_regions == 2
        assert summary.unclassified_regions == 1
        assert summary.by_type[DifferenceType.CONTENT] == 2
        assert summary.by_type[DifferenceType.UNKNOWN] == 1
        assert summary.by_type[DifferenceType.LAYOUT] == 0
        assert summary.confidence.min == 0.0
        assert summary.confidence.max == pytest.approx(0.8)
        assert summary.confidence.avg == pytest.approx(1.6 / 3)

    def test_empty_batch(self, context) -> None:
        """Test the summary of an empty batch."""
        summary = self.manager().classify_regions([], context)

        assert summary.total_regions == 0
        assert summary.confidence.min == 0.0
        assert summary.confidence.avg == 0.0
        assert summary.confidence.max == 0.0
        assert summary.regions == []

    def test_thread_pool_preserves_order(self, make_region, context) -> None:
        """Test that parallel classification keeps input order."""
        regions = [make_region(0, 0, 10, 10, 60.0, region_id=i) for i in range(20)]
        summary = self.manager().classify_regions(regions, context, max_workers=4)

        assert [r.region.id for r in summary.regions] == list(range(20))
        assert summary.classified_regions == 20

    def test_summary_text(self, make_region, context) -> None:
        """Test the human-readable breakdown."""
        manager = self.manager()
        text = manager.generate_summary_text(
            manager.classify_regions(self.regions(make_region), context)
        )

        assert text.splitlines() == [
            "Analyzed 3 difference regions:",
            "- Successfully classified: 2 (66.7%)",
            "- Unknown: 1",
            "",
            "Classification breakdown:",
            "- content: 2 regions (66.7%)",
            "- unknown: 1 regions (33.3%)",
            "",
            "Confidence: min=0.00, avg=0.53, max=0.80",
        ]

    def test_summary_text_empty_batch(self, context) -> None:
        """Test that empty batches render without dividing by zero."""
        manager = self.manager()
        text = manager.generate_summary_text(manager.classify_regions([], context))

        assert "- Successfully classified: 0 (0.0%)" in text


class TestDefaultManager:
    """Tests for create_default_manager."""

    def test_aliases_deduplicated(self) -> None:
        """Test that the five built-in classifiers are registered once each."""
        manager = create_default_manager()

        assert [c.name for c in manager.classifiers] == [
            "StructuralClassifier",
            "LayoutClassifier",
            "ContentClassifier",
            "StyleClassifier",
            "SizeClassifier",
        ]
        assert manager.min_confidence == 0.5

    def test_disabled_classifiers(self) -> None:
        """Test that disabled tags are skipped."""
        config = ClassifierConfig(
            min_confidence=0.6,
            disabled_classifiers=[DifferenceType.SIZE, DifferenceType.STRUCTURAL],
        )
        manager = create_default_manager(config)

        assert [c.name for c in manager.classifiers] == [
            "LayoutClassifier",
            "ContentClassifier",
            "StyleClassifier",
        ]
        assert manager.min_confidence == 0.6

    def test_custom_registry(self) -> None:
        """Test building from a caller supplied registry."""
        registry = ClassifierRegistry({"content": ContentClassifier})
        manager = create_default_manager(registry=registry)

        assert [c.name for c in manager.classifiers] == ["ContentClassifier"]

    def test_layout_shift_end_to_end(self, make_region, shifted_box_context) -> None:
        """Test that a moved box is explained as a layout shift."""
        manager = create_default_manager()
        result = manager.classify_region(
            make_region(20, 20, 40, 40, 30.0), shifted_box_context
        )

        assert result.classifier == "LayoutClassifier"
        assert result.classification.type == DifferenceType.LAYOUT
        assert result.classification.sub_type == "horizontal-shift"

    def test_block_addition_end_to_end(self, make_region, added_block_context) -> None:
        """Test that an added block is explained as a structural change."""
        manager = create_default_manager()
        summary = manager.classify_regions(
            [make_region(15, 15, 50, 50, 60.0)], added_block_context
        )

        assert summary.classified_regions == 1
        assert summary.by_type[DifferenceType.STRUCTURAL] == 1
        assert summary.regions[0].classification.sub_type == "new-block-addition"
        assert summary.to_dict()["byType"]["structural"] == 1


class TestClassifyAll:
    """Tests for classify_all."""

    def test_collects_every_result(self, make_region, context) -> None:
        """Test that no threshold or short-circuit is applied."""
        results = classify_all(
            make_region(0, 0, 10, 10, 50.0),
            context,
            classifiers=[
                StubClassifier("low", 1, confidence=0.1, difference_type=DifferenceType.SIZE),
                StubClassifier("none", 5, confidence=None),
                StubClassifier("high", 9, confidence=0.9, difference_type=DifferenceType.STYLE),
            ],
        )

        assert [r.sub_type for r in results] == ["high", "low"]

    def test_default_classifiers(self, make_region, shifted_box_context) -> None:
        """Test the built-in classifiers in priority order."""
        results = classify_all(make_region(20, 20, 40, 40, 30.0), shifted_box_context)

        assert results
        assert results[0].type == DifferenceType.LAYOUT
        assert all(r.type != DifferenceType.UNKNOWN for r in results)


GEOMETRIES = [
    (0, 0, 0, 0),
    (0, 0, 1, 1),
    (0, 0, 1, 40),
    (0, 0, 40, 1),
    (39, 39, 1, 1),
    (0, 0, 40, 40),
    (5, 5, 20, 10),
    (10, 0, 30, 40),
]
PERCENTAGES = [0.0, 5.0, 15.0, 30.0, 50.0, 65.0, 80.0, 100.0]


@pytest.fixture(params=["random", "flat-to-random"])
def noisy_context(request: pytest.FixtureRequest) -> AnalysisContext:
    rng = np.random.default_rng(7)
    compared = rng.integers(0, 256, size=(40, 40, 4), dtype=np.uint8)
    if request.param == "random":
        original = rng.integers(0, 256, size=(40, 40, 4), dtype=np.uint8)
    else:
        original = np.full((40, 40, 4), 240, dtype=np.uint8)
    return AnalysisContext.from_images(original, compared)


def as_json(results: list[ClassificationResult]) -> str:
    return json.dumps([r.to_dict() for r in results], default=str)


def all_regions(make_region) -> list[DifferenceRegion]:
    cases = [(geometry, percentage) for geometry in GEOMETRIES for percentage in PERCENTAGES]
    return [
        make_region(*geometry, percentage, region_id=index)
        for index, (geometry, percentage) in enumerate(cases)
    ]


class TestInvariants:
    """Tests for properties that hold for arbitrary regions and images."""

    def test_confidence_within_unit_interval(self, make_region, noisy_context) -> None:
        """Test that every classifier reports confidence in [0, 1]."""
        for region in all_regions(make_region):
            for classifier in get_all_classifiers():
                if not classifier.can_classify(region, noisy_context):
                    continue
                result = classifier.classify(region, noisy_context)
                if result is not None:
                    assert 0.0 <= result.confidence <= 1.0, (classifier.name, region)

    def test_summary_accounts_for_every_region(self, make_region, noisy_context) -> None:
        """Test batch totals and confidence bounds with a thread pool."""
        regions = all_regions(make_region)
        summary = create_default_manager().classify_regions(
            regions, noisy_context, max_workers=2
        )

        assert summary.total_regions == len(regions)
        assert sum(summary.by_type.values()) == len(regions)
        assert summary.classified_regions + summary.unclassified_regions == len(regions)
        assert 0.0 <= summary.confidence.min <= summary.confidence.avg
        assert summary.confidence.avg <= summary.confidence.max <= 1.0

    def test_repeated_classification_is_deterministic(
        self, make_region, noisy_context
    ) -> None:
        """Test that the same regions and images always classify identically."""
        manager = create_default_manager()
        regions = all_regions(make_region)

        first = manager.classify_regions(regions, noisy_context)
        second = manager.classify_regions(regions, noisy_context, max_workers=4)

        assert [r.classifier for r in first.regions] == [r.classifier for r in second.regions]
        assert first.to_json() == second.to_json()
        for region in regions[:16]:
            assert as_json(classify_all(region, noisy_context)) == as_json(
                classify_all(region, noisy_context)
            )
