"""
Coordinate mapper: normalized model-space boxes to display pixels.

Three ordered steps:
1. Undo the letterbox (padding and scale) to get source-image coordinates.
2. Convert centre/size to clamped corner coordinates.
3. Fit the source image into the on-screen viewport (cover fit, centred)
   and convert to integer pixels.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from models.detection import BoundingBox, Detection, RawDetectionRow, ScalingContext
from preprocess.letterbox import round_half_up


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class Viewport:
    """
    Screen rectangle the camera preview is drawn into.

    Attributes:
        width: Viewport width in pixels.
        height: Viewport height in pixels.
        left: X offset of the viewport on screen.
        top: Y offset of the viewport on screen.
    """
    width: int
    height: int
    left: int = 0
    top: int = 0

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"viewport must be non-empty, got {self.width}x{self.height}")

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height


@dataclass(frozen=True)
class PreviewPlacement:
    """Scaled size and offset of the source image inside the viewport."""
    scaled_width: float
    scaled_height: float
    offset_x: float
    offset_y: float


def fit_preview(source_size: Tuple[int, int], viewport: Viewport) -> PreviewPlacement:
    """
    Place a source image of the given size inside the viewport.

    A source wider than the viewport is fitted by height and centred
    horizontally; otherwise it is fitted by width and centred vertically.
    """
    source_width, source_height = source_size
    if source_width <= 0 or source_height <= 0:
        raise ValueError(f"source size must be positive, got {source_width}x{source_height}")

    preview_aspect = source_width / source_height
    offset_x = 0.0
    offset_y = 0.0
    if preview_aspect > viewport.aspect_ratio:
        scaled_height = float(viewport.height)
        scaled_width = scaled_height * preview_aspect
        offset_x = (viewport.width - scaled_width) / 2
    else:
        scaled_width = float(viewport.width)
        scaled_height = scaled_width / preview_aspect
        offset_y = (viewport.height - scaled_height) / 2
    return PreviewPlacement(scaled_width, scaled_height, offset_x, offset_y)


def undo_letterbox(
    row: RawDetectionRow,
    context: ScalingContext,
    tensor_size: int,
) -> Tuple[float, float, float, float]:
    """
    Step 1: remove padding and scale from a model-space row.

    Returns:
        (x_center, y_center, width, height) in source space, centres clamped
        to [0, 1].
    """
    denominator = context.scale * tensor_size
    x = (row.x_center * tensor_size - context.padding_left) / denominator
    y = (row.y_center * tensor_size - context.padding_top) / denominator
    width = row.width / context.scale
    height = row.height / context.scale
    return _clamp(x, 0.0, 1.0), _clamp(y, 0.0, 1.0), width, height


def center_to_corners(
    x: float,
    y: float,
    width: float,
    height: float,
) -> Tuple[float, float, float, float]:
    """Step 2: centre/size to (x_min, y_min, x_max, y_max), each clamped to [0, 1]."""
    return (
        _clamp(x - width / 2, 0.0, 1.0),
        _clamp(y - height / 2, 0.0, 1.0),
        _clamp(x + width / 2, 0.0, 1.0),
        _clamp(y + height / 2, 0.0, 1.0),
    )


class CoordinateMapper:
    """
    Map decoded rows into display-space Detection candidates.

    The mapped candidates are then handed to the suppression engine.
    """

    def __init__(
        self,
        tensor_size: int,
        viewport: Viewport,
        conf_threshold: float,
        class_names: Optional[Sequence[str]] = None,
        max_candidates: int = 10,
        min_aspect: float = 0.2,
        max_aspect: float = 5.0,
    ) -> None:
        """
        Args:
            tensor_size: Side of the square model input.
            viewport: Where the preview is drawn on screen.
            conf_threshold: Final confidence threshold; rows at or below it are not mapped.
            class_names: Labels indexed by class id.
            max_candidates: Only the top rows by confidence are mapped.
            min_aspect: Minimum accepted width/height ratio.
            max_aspect: Maximum accepted width/height ratio.
        """
        self.tensor_size = tensor_size
        self.viewport = viewport
        self.conf_threshold = conf_threshold
        self.class_names = list(class_names or [])
        self.max_candidates = max_candidates
        self.min_aspect = min_aspect
        self.max_aspect = max_aspect

    def _aspect_ok(self, aspect: float) -> bool:
        return self.min_aspect <= aspect <= self.max_aspect

    def class_name(self, class_id: int) -> str:
        if 0 <= class_id < len(self.class_names):
            return self.class_names[class_id]
        return "unknown"

    def to_viewport(
        self,
        corners: Tuple[float, float, float, float],
        source_size: Tuple[int, int],
    ) -> BoundingBox:
        """Step 3: normalized source corners to integer viewport pixels."""
        placement = fit_preview(source_size, self.viewport)
        vp = self.viewport
        x_min, y_min, x_max, y_max = corners

        def px(offset: float, value: float, extent: float, origin: int, low: int, high: int) -> int:
            pixel = round_half_up(origin + offset + value * extent)
            return int(_clamp(pixel, low, high))

        return BoundingBox(
            x1=px(placement.offset_x, x_min, placement.scaled_width, vp.left, vp.left, vp.right),
            y1=px(placement.offset_y, y_min, placement.scaled_height, vp.top, vp.top, vp.bottom),
            x2=px(placement.offset_x, x_max, placement.scaled_width, vp.left, vp.left, vp.right),
            y2=px(placement.offset_y, y_max, placement.scaled_height, vp.top, vp.top, vp.bottom),
        )

    def map_row(
        self,
        row: RawDetectionRow,
        context: ScalingContext,
        source_size: Tuple[int, int],
    ) -> Optional[Detection]:
        """
        Map one row, or return None if it is rejected.

        The aspect ratio is checked on the model-space size and again on the
        final pixel box. Boxes that end up empty after clamping to the
        viewport (the cropped-off part of a cover-fit preview) are dropped.
        """
        aspect = row.aspect_ratio
        if not self._aspect_ok(aspect):
            logging.debug(f"Skipping detection with extreme aspect ratio: {aspect:.3f}")
            return None

        x, y, width, height = undo_letterbox(row, context, self.tensor_size)
        corners = center_to_corners(x, y, width, height)
        bbox = self.to_viewport(corners, source_size)
        if bbox.width <= 0 or bbox.height <= 0:
            logging.debug(f"Skipping candidate {row.index} outside the viewport: {bbox.as_tuple()}")
            return None
        if not self._aspect_ok(bbox.width / bbox.height):
            logging.debug(
                f"Skipping candidate {row.index} with extreme pixel aspect ratio: "
                f"{bbox.width}x{bbox.height}"
            )
            return None

        logging.debug(
            f"Mapped candidate {row.index}: center=({row.x_center:.3f}, {row.y_center:.3f}) "
            f"-> ({x:.3f}, {y:.3f}), box={bbox.as_tuple()}"
        )
        return Detection(
            bbox=bbox,
            confidence=row.confidence,
            class_id=row.class_id,
            class_name=self.class_name(row.class_id),
        )

    def map_rows(
        self,
        rows: Sequence[RawDetectionRow],
        context: ScalingContext,
        source_size: Tuple[int, int],
    ) -> List[Detection]:
        """
        Map the strongest rows above the final threshold.

        Args:
            rows: Decoder output, sorted by descending confidence.
            context: Letterbox parameters of the frame the rows came from.
            source_size: (width, height) of the preview image.
        """
        detections: List[Detection] = []
        for row in list(rows)[: self.max_candidates]:
            if row.confidence <= self.conf_threshold:
                continue
            detection = self.map_row(row, context, source_size)
            if detection is not None:
                detections.append(detection)
        return detections
