"""
Detection models: raw model rows, letterbox context and screen-space detections.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class ScalingContext:
    """
    Letterbox parameters used to build the tensor for one frame.

    The coordinate mapper must receive the context that was produced for the
    exact frame the model output belongs to.

    Attributes:
        scale: Source-to-tensor scale factor (> 0).
        padding_left: Horizontal padding in tensor pixels.
        padding_top: Vertical padding in tensor pixels.
    """
    scale: float
    padding_left: int = 0
    padding_top: int = 0

    def __post_init__(self) -> None:
        if not self.scale > 0:
            raise ValueError(f"scale must be > 0, got {self.scale}")
        if self.padding_left < 0 or self.padding_top < 0:
            raise ValueError("padding must be non-negative")

    @classmethod
    def identity(cls) -> "ScalingContext":
        return cls(scale=1.0, padding_left=0, padding_top=0)


@dataclass(frozen=True)
class RawDetectionRow:
    """
    One candidate decoded from the model output, in normalized model space.

    Attributes:
        x_center: Box centre x in [0, 1].
        y_center: Box centre y in [0, 1].
        width: Box width in [0, 1].
        height: Box height in [0, 1].
        class_scores: Per-class scores in class order.
        index: Position of the candidate in the output tensor.
    """
    x_center: float
    y_center: float
    width: float
    height: float
    class_scores: Tuple[float, ...]
    index: int = 0

    @property
    def class_id(self) -> int:
        """Index of the highest class score (first one wins on ties)."""
        best = 0
        for i, score in enumerate(self.class_scores):
            if score > self.class_scores[best]:
                best = i
        return best

    @property
    def confidence(self) -> float:
        return max(self.class_scores) if self.class_scores else 0.0

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height > 0 else 0.0


@dataclass(frozen=True)
class BoundingBox:
    """
    A bounding box in integer display pixels.

    Attributes:
        x1: Left edge.
        y1: Top edge.
        x2: Right edge.
        y2: Bottom edge.
    """
    x1: int
    y1: int
    x2: int
    y2: int

    @property
    def width(self) -> int:
        return self.x2 - self.x1

    @property
    def height(self) -> int:
        return self.y2 - self.y1

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    @property
    def area(self) -> int:
        return self.width * self.height

    def as_tuple(self) -> Tuple[int, int, int, int]:
        """Return as (x1, y1, x2, y2) tuple."""
        return (self.x1, self.y1, self.x2, self.y2)


@dataclass(frozen=True)
class Detection:
    """
    A labeled detection positioned in display pixels.

    Created by the coordinate mapper, enriched by the fusion policy and
    consumed by UI/persistence collaborators.

    Attributes:
        bbox: Box in display pixels.
        confidence: Vision model confidence (0-1).
        class_id: Class index from the model.
        class_name: Human-readable class label.
        recognized_brand_name: Brand name read by OCR, if any.
        expiry_date: Expiry date read by OCR, if any.
        adjusted_confidence: Confidence after OCR fusion (None before fusion).
    """
    bbox: BoundingBox
    confidence: float
    class_id: int
    class_name: str = "unknown"
    recognized_brand_name: Optional[str] = None
    expiry_date: Optional[str] = None
    adjusted_confidence: Optional[float] = field(default=None, compare=False)

    @property
    def x1(self) -> int:
        return self.bbox.x1

    @property
    def y1(self) -> int:
        return self.bbox.y1

    @property
    def x2(self) -> int:
        return self.bbox.x2

    @property
    def y2(self) -> int:
        return self.bbox.y2

    @property
    def effective_confidence(self) -> float:
        """Adjusted confidence when fused, raw confidence otherwise."""
        if self.adjusted_confidence is None:
            return self.confidence
        return self.adjusted_confidence

    def with_updates(self, **changes: Any) -> "Detection":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_xyxy(
        cls,
        x1: int,
        y1: int,
        x2: int,
        y2: int,
        confidence: float,
        class_id: int,
        class_name: str = "unknown",
    ) -> "Detection":
        """Create Detection from x1, y1, x2, y2 coordinates."""
        return cls(
            bbox=BoundingBox(x1=x1, y1=y1, x2=x2, y2=y2),
            confidence=confidence,
            class_id=class_id,
            class_name=class_name,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "box": list(self.bbox.as_tuple()),
            "confidence": self.confidence,
            "adjusted_confidence": self.adjusted_confidence,
            "class_id": self.class_id,
            "class_name": self.class_name,
            "recognized_brand_name": self.recognized_brand_name,
            "expiry_date": self.expiry_date,
        }
