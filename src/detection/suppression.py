"""
Class-aware non-maximum suppression over display-space detections.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from models.detection import BoundingBox, Detection


def intersection_area(a: BoundingBox, b: BoundingBox) -> int:
    """Overlap area of two integer pixel rectangles."""
    width = max(0, min(a.x2, b.x2) - max(a.x1, b.x1))
    height = max(0, min(a.y2, b.y2) - max(a.y1, b.y1))
    return width * height


def iou(a: BoundingBox, b: BoundingBox) -> float:
    """
    Intersection over Union of two boxes.

    Returns 0.0 when the union is empty.
    """
    intersection = intersection_area(a, b)
    union = a.area + b.area - intersection
    if union <= 0:
        return 0.0
    return intersection / union


class SuppressionEngine:
    """
    Remove duplicate detections of the same class.

    Detections of different classes never suppress each other. Running the
    engine on its own output returns the same list.
    """

    def __init__(self, iou_threshold: float, conf_threshold: float, max_kept: int) -> None:
        """
        Args:
            iou_threshold: A later box is suppressed when its IoU with a kept
                box of the same class exceeds this value.
            conf_threshold: Detections below this confidence are never kept.
            max_kept: Maximum number of detections returned.
        """
        self.iou_threshold = iou_threshold
        self.conf_threshold = conf_threshold
        self.max_kept = max_kept

    def suppress(self, detections: Sequence[Detection]) -> List[Detection]:
        """
        Run NMS and return the kept detections in descending confidence order.
        """
        if not detections:
            return []

        ordered = sorted(detections, key=lambda d: -d.confidence)
        suppressed = [False] * len(ordered)
        kept: List[Detection] = []

        for i, current in enumerate(ordered):
            if suppressed[i] or current.confidence < self.conf_threshold:
                continue
            kept.append(current)

            for j in range(i + 1, len(ordered)):
                if suppressed[j]:
                    continue
                other = ordered[j]
                if other.class_id != current.class_id:
                    continue
                overlap = iou(current.bbox, other.bbox)
                if overlap > self.iou_threshold:
                    suppressed[j] = True
                    logging.debug(
                        f"NMS: removed duplicate {other.class_name} with IoU {overlap:.3f} "
                        f"and confidence {other.confidence:.3f}"
                    )

        logging.debug(f"NMS: kept {len(kept)} out of {len(ordered)} detections")
        return kept[: self.max_kept]
