"""
Data models for the difference classification engine.

Provides the region, image and result types exchanged between the upstream
diff segmentation step, the classifiers and downstream reporting. Wire
serialization uses camelCase keys to match the JSON consumed by report and
refinement tooling.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import numpy as np
from PIL import Image

type PixelData = bytes | bytearray | memoryview | np.ndarray[Any, np.dtype[np.uint8]]
type ImageSource = Image.Image | np.ndarray[Any, np.dtype[np.uint8]]


class DifferenceType(StrEnum):
    """Semantic categories a difference region can be classified into."""

    CONTENT = "content"
    STYLE = "style"
    LAYOUT = "layout"
    SIZE = "size"
    STRUCTURAL = "structural"
    NEW_ELEMENT = "new_element"
    REMOVED_ELEMENT = "removed_element"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class Bounds:
    """Rectangular area in image pixel coordinates."""

    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Bounds:
        return cls(
            x=int(data.get("x", 0)),
            y=int(data.get("y", 0)),
            width=int(data.get("width", 0)),
            height=int(data.get("height", 0)),
        )


@dataclass(frozen=True, slots=True)
class DifferenceRegion:
    """
    A rectangular area flagged by upstream diffing as containing changes.

    ``difference_percentage`` is the percentage form of
    ``difference_pixels / pixel_count`` and lies in ``[0, 100]``.
    """

    id: int
    bounds: Bounds
    pixel_count: int
    difference_pixels: int
    difference_percentage: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to wire format."""
        return {
            "id": self.id,
            "bounds": self.bounds.to_dict(),
            "pixelCount": self.pixel_count,
            "differencePixels": self.difference_pixels,
            "differencePercentage": self.difference_percentage,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DifferenceRegion:
        """Create DifferenceRegion from wire format."""
        return cls(
            id=int(data.get("id", 0)),
            bounds=Bounds.from_dict(data.get("bounds", {})),
            pixel_count=int(data.get("pixelCount", 0)),
            difference_pixels=int(data.get("differencePixels", 0)),
            difference_percentage=float(data.get("differencePercentage", 0.0)),
        )


@dataclass(frozen=True, slots=True)
class ImageBuffer:
    """Packed RGBA pixel buffer, 8 bits per channel."""

    data: PixelData
    width: int
    height: int

    def __post_init__(self) -> None:
        expected = self.width * self.height * 4
        actual = self.data.size if isinstance(self.data, np.ndarray) else len(self.data)
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Image dimensions must be non-negative, got {self.width}x{self.height}")
        if actual != expected:
            raise ValueError(
                f"RGBA buffer length {actual} does not match {self.width}x{self.height}x4 = {expected}"
            )

    def as_array(self) -> np.ndarray[Any, np.dtype[np.uint8]]:
        """View the buffer as an ``(height, width, 4)`` uint8 array."""
        if isinstance(self.data, np.ndarray):
            flat = np.ascontiguousarray(self.data, dtype=np.uint8).reshape(-1)
        else:
            flat = np.frombuffer(self.data, dtype=np.uint8)
        return flat.reshape(self.height, self.width, 4)

    @classmethod
    def from_image(cls, image: ImageSource) -> ImageBuffer:
        """
        Build a buffer from an in-memory PIL image or numpy array.

        Arrays may be ``(h, w, 3)`` RGB or ``(h, w, 4)`` RGBA; RGB input gets
        an opaque alpha channel.
        """
        if isinstance(image, Image.Image):
            arr = np.asarray(image.convert("RGBA"), dtype=np.uint8)
        elif isinstance(image, np.ndarray):
            if image.ndim != 3 or image.shape[2] not in (3, 4):
                raise ValueError(f"Expected (h, w, 3|4) array, got shape {image.shape}")
            arr = image.astype(np.uint8, copy=False)
            if arr.shape[2] == 3:
                alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
                arr = np.concatenate([arr, alpha], axis=2)
        else:
            raise TypeError(f"Unsupported image type: {type(image)}")

        height, width = arr.shape[:2]
        return cls(data=np.ascontiguousarray(arr).reshape(-1), width=width, height=height)


@dataclass(frozen=True, slots=True)
class AnalysisContext:
    """Paired original/compared pixel buffers shared by one comparison run."""

    original_image: ImageBuffer
    compared_image: ImageBuffer
    diff_mask: PixelData | None = None

    def __post_init__(self) -> None:
        original, compared = self.original_image, self.compared_image
        if (original.width, original.height) != (compared.width, compared.height):
            raise ValueError(
                "Images must be aligned to the same size: "
                f"{original.width}x{original.height} vs {compared.width}x{compared.height}"
            )

    @property
    def width(self) -> int:
        return self.original_image.width

    @property
    def height(self) -> int:
        return self.original_image.height

    @classmethod
    def from_images(cls, original: ImageSource, compared: ImageSource) -> AnalysisContext:
        """Create a context from two already aligned in-memory images."""
        return cls(
            original_image=ImageBuffer.from_image(original),
            compared_image=ImageBuffer.from_image(compared),
        )


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    """Typed, confidence-scored explanation of one region."""

    type: DifferenceType
    confidence: float
    sub_type: str | None = None
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": str(self.type), "confidence": self.confidence}
        if self.sub_type is not None:
            data["subType"] = self.sub_type
        if self.details is not None:
            data["details"] = self.details
        return data


@dataclass(frozen=True, slots=True)
class RegionClassification:
    """A region paired with its winning result and the classifier that produced it."""

    region: DifferenceRegion
    classification: ClassificationResult
    classifier: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "region": self.region.to_dict(),
            "classification": self.classification.to_dict(),
            "classifier": self.classifier,
        }


@dataclass(frozen=True, slots=True)
class ConfidenceStats:
    """Confidence extrema and average over a batch."""

    min: float = 0.0
    avg: float = 0.0
    max: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"min": self.min, "avg": self.avg, "max": self.max}


def empty_type_counts() -> dict[DifferenceType, int]:
    """Zeroed per-type counter covering every category."""
    return {difference_type: 0 for difference_type in DifferenceType}


@dataclass(slots=True)
class ClassificationSummary:
    """Aggregate result of classifying a batch of regions."""

    total_regions: int
    classified_regions: int
    unclassified_regions: int
    by_type: dict[DifferenceType, int] = field(default_factory=empty_type_counts)
    confidence: ConfidenceStats = field(default_factory=ConfidenceStats)
    regions: list[RegionClassification] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire format consumed by reporting tools."""
        return {
            "totalRegions": self.total_regions,
            "classifiedRegions": self.classified_regions,
            "unclassifiedRegions": self.unclassified_regions,
            "byType": {str(t): count for t, count in self.by_type.items()},
            "confidence": self.confidence.to_dict(),
            "regions": [r.to_dict() for r in self.regions],
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=_json_default)


def _json_default(value: Any) -> Any:
    """Serialize numpy scalars that leak into result details."""
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return value.tolist()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
