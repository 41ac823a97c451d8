"""
Detection decoder: flat model output vector to candidate rows.

YOLOv8-style heads emit N candidates with D = 4 + C values each
(x_center, y_center, width, height, class scores...). The flat vector is laid
out either channel-major ([1, D, N]: one run of N values per attribute) or
box-major ([1, N, D]: one run of D values per candidate). The layout is
decided once when the model is loaded and passed in explicitly.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from models.detection import RawDetectionRow
from models.errors import ShapeMismatchError


class OutputLayout(str, Enum):
    """Memory layout of the detection output tensor."""
    CHANNEL_MAJOR = "channel_major"
    BOX_MAJOR = "box_major"

    @classmethod
    def parse(cls, value: "str | OutputLayout") -> "OutputLayout":
        if isinstance(value, OutputLayout):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(
                f"Unknown output layout '{value}', expected one of: "
                f"{', '.join(m.value for m in cls)}"
            ) from None


def resolve_layout(
    shape: Optional[Sequence[int]],
    num_boxes: int,
    dimensions: int,
    fallback: OutputLayout = OutputLayout.CHANNEL_MAJOR,
) -> OutputLayout:
    """
    Decide the output layout from the model's declared output shape.

    Args:
        shape: Output tensor shape reported by the inference backend.
        num_boxes: Expected candidate count N.
        dimensions: Expected values per candidate D.
        fallback: Layout to use when the shape is ambiguous or unknown.
    """
    dims = [int(d) for d in shape] if shape else []
    if len(dims) == 3:
        if dims[1] == dimensions and dims[2] == num_boxes:
            logging.info(f"Detected output format: [1, {dimensions}, {num_boxes}] (channel-major)")
            return OutputLayout.CHANNEL_MAJOR
        if dims[1] == num_boxes and dims[2] == dimensions:
            logging.info(f"Detected output format: [1, {num_boxes}, {dimensions}] (box-major)")
            return OutputLayout.BOX_MAJOR
    logging.warning(
        f"Unexpected output shape {dims}; using configured layout {fallback.value}"
    )
    return fallback


class DetectionDecoder:
    """
    Parse a flat output vector into candidate rows sorted by confidence.

    Candidates are filtered with a coarse pre-threshold (normally 0.75x the
    final confidence threshold) and a sanity check on the box size.
    """

    def __init__(
        self,
        layout: OutputLayout,
        num_boxes: int,
        num_classes: int,
        prefilter_threshold: float,
        min_box_size: float = 0.01,
        max_box_size: float = 0.9,
    ) -> None:
        """
        Args:
            layout: Output layout, fixed for the lifetime of the model.
            num_boxes: Candidate count N.
            num_classes: Class count C.
            prefilter_threshold: Candidates below this confidence are dropped.
            min_box_size: Minimum normalized width/height.
            max_box_size: Maximum normalized width/height.
        """
        if num_boxes <= 0 or num_classes <= 0:
            raise ValueError("num_boxes and num_classes must be positive")
        self.layout = OutputLayout.parse(layout)
        self.num_boxes = num_boxes
        self.num_classes = num_classes
        self.prefilter_threshold = prefilter_threshold
        self.min_box_size = min_box_size
        self.max_box_size = max_box_size

    @property
    def dimensions(self) -> int:
        return 4 + self.num_classes

    @property
    def expected_length(self) -> int:
        return self.num_boxes * self.dimensions

    def check_shape(self, values: Sequence[float]) -> None:
        """
        Raises:
            ShapeMismatchError: If the vector length differs from N x D.
        """
        if len(values) != self.expected_length:
            raise ShapeMismatchError(
                f"Output length {len(values)} does not match declared shape "
                f"N={self.num_boxes} x D={self.dimensions} ({self.expected_length})"
            )

    def _candidate_matrix(self, data: np.ndarray) -> np.ndarray:
        """Return an (available, D) matrix of the candidates fully inside the vector."""
        n, d = self.num_boxes, self.dimensions
        length = data.shape[0]
        if self.layout == OutputLayout.BOX_MAJOR:
            available = max(0, min(n, length // d))
            return data[: available * d].reshape(available, d)
        # Channel-major: candidate i needs i + (D - 1) * N < length.
        available = max(0, min(n, length - (d - 1) * n))
        return np.stack([data[c * n : c * n + available] for c in range(d)], axis=1)

    def decode(self, values: Sequence[float]) -> List[RawDetectionRow]:
        """
        Decode candidates from a flat output vector.

        Every index is bounds-checked; candidates whose values fall outside the
        vector are skipped rather than failing the frame.

        Returns:
            Rows sorted by descending confidence, ties kept in output order.
        """
        data = np.asarray(values, dtype=np.float64).ravel()
        matrix = self._candidate_matrix(data)
        skipped = self.num_boxes - matrix.shape[0]
        if skipped:
            logging.debug(
                f"Decoder skipped {skipped} out-of-range candidates (length={data.shape[0]})"
            )
        if matrix.shape[0] == 0:
            return []

        boxes = matrix[:, :4]
        scores = matrix[:, 4:]
        confidences = scores.max(axis=1)
        widths = boxes[:, 2]
        heights = boxes[:, 3]

        keep = confidences >= self.prefilter_threshold
        keep &= (widths >= self.min_box_size) & (widths <= self.max_box_size)
        keep &= (heights >= self.min_box_size) & (heights <= self.max_box_size)

        kept = np.flatnonzero(keep)
        # Stable sort: equal confidences keep their output order.
        order = kept[np.argsort(-confidences[kept], kind="stable")]

        rows = [
            RawDetectionRow(
                x_center=float(boxes[i, 0]),
                y_center=float(boxes[i, 1]),
                width=float(boxes[i, 2]),
                height=float(boxes[i, 3]),
                class_scores=tuple(float(s) for s in scores[i]),
                index=int(i),
            )
            for i in order
        ]
        logging.debug(f"Decoded {len(rows)} candidates above {self.prefilter_threshold:.3f}")
        return rows
