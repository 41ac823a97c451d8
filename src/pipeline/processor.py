"""
Per-frame processing: transform, infer, decode, map, suppress, fuse.

FrameProcessor is synchronous and holds no threads; the engine decides when
and on which thread it runs.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from detection.decoder import DetectionDecoder, OutputLayout, resolve_layout
from detection.mapper import CoordinateMapper, Viewport
from detection.suppression import SuppressionEngine
from fusion.policy import FusionPolicy
from inference.backend import InferenceBackend
from models.config import Config
from models.detection import Detection
from models.errors import InferenceError, PerceptionError, ShapeMismatchError
from models.frame import Frame, RegionOfInterest
from models.recognition import RecognitionResult
from preprocess.transformer import FrameTransformer


class FrameStatus(str, Enum):
    OK = "ok"
    FORMAT_UNSUPPORTED = "format_unsupported"
    INFERENCE_FAILURE = "inference_failure"
    SHAPE_MISMATCH = "shape_mismatch"

    @classmethod
    def from_error(cls, error: PerceptionError) -> "FrameStatus":
        try:
            return cls(error.kind)
        except ValueError:
            return cls.INFERENCE_FAILURE


@dataclass(frozen=True)
class FrameOutcome:
    """
    Result of processing one frame.

    Attributes:
        frame_index: Index of the processed frame.
        timestamp: Capture time of the frame.
        status: OK, or the error kind that skipped the frame.
        detections: Fused detections kept after NMS (empty when skipped).
        notification: Detection confirmed and due for notification, if any.
        latency: Processing time in seconds.
        error: Error message for skipped frames.
    """
    frame_index: int
    timestamp: float
    status: FrameStatus
    detections: List[Detection] = field(default_factory=list)
    notification: Optional[Detection] = None
    latency: float = 0.0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == FrameStatus.OK

    @property
    def replaces_display(self) -> bool:
        """
        Whether the displayed detections should be replaced by this outcome.

        Inference and shape failures keep the previous display; an
        unsupported frame shows nothing.
        """
        return self.status in (FrameStatus.OK, FrameStatus.FORMAT_UNSUPPORTED)

    def to_dict(self):
        return {
            "frame_index": self.frame_index,
            "timestamp": self.timestamp,
            "status": self.status.value,
            "detections": [d.to_dict() for d in self.detections],
            "notification": self.notification.to_dict() if self.notification else None,
            "latency": self.latency,
            "error": self.error,
        }


class FrameProcessor:
    """Runs the detection path for one frame at a time."""

    def __init__(
        self,
        transformer: FrameTransformer,
        backend: InferenceBackend,
        decoder: DetectionDecoder,
        mapper: CoordinateMapper,
        suppressor: SuppressionEngine,
        fusion: FusionPolicy,
        preview_size: Optional[Tuple[int, int]] = None,
        roi: Optional[RegionOfInterest] = None,
    ):
        self.transformer = transformer
        self.backend = backend
        self.decoder = decoder
        self.mapper = mapper
        self.suppressor = suppressor
        self.fusion = fusion
        self.preview_size = preview_size
        self.roi = roi

    def _source_size(self, frame: Frame) -> Tuple[int, int]:
        if self.preview_size is not None:
            return self.preview_size
        if self.roi is not None:
            return (self.roi.width, self.roi.height)
        return frame.size

    def detect(self, frame: Frame) -> List[Detection]:
        """
        Run the detection path without fusion.

        Raises:
            PerceptionError: If the frame has to be skipped.
        """
        result = self.transformer.transform(frame, self.roi)
        if result.error is not None:
            raise result.error

        try:
            output = self.backend.run(result.tensor)
        except PerceptionError:
            raise
        except Exception as e:
            raise InferenceError(f"Inference failed: {e}") from e

        self.decoder.check_shape(output.values)
        rows = self.decoder.decode(output.values)
        candidates = self.mapper.map_rows(rows, result.context, self._source_size(frame))
        return self.suppressor.suppress(candidates)

    def process(
        self,
        frame: Frame,
        recognition: Optional[RecognitionResult] = None,
        now: Optional[float] = None,
    ) -> FrameOutcome:
        """
        Process one frame into a FrameOutcome. Never raises for frame-scoped
        errors; they are reported through the outcome status.
        """
        started = time.perf_counter()
        try:
            kept = self.detect(frame)
        except PerceptionError as e:
            status = FrameStatus.from_error(e)
            if isinstance(e, ShapeMismatchError):
                logging.warning(f"Frame {frame.frame_index} skipped: {e}")
            else:
                logging.debug(f"Frame {frame.frame_index} skipped ({status.value}): {e}")
            return FrameOutcome(
                frame_index=frame.frame_index,
                timestamp=frame.timestamp,
                status=status,
                latency=time.perf_counter() - started,
                error=str(e),
            )

        fused = self.fusion.fuse(kept, recognition)
        notification = self.fusion.select_notification(
            fused, now if now is not None else time.time(), recognition
        )
        return FrameOutcome(
            frame_index=frame.frame_index,
            timestamp=frame.timestamp,
            status=FrameStatus.OK,
            detections=fused,
            notification=notification,
            latency=time.perf_counter() - started,
        )


def create_processor_from_config(config: Config, backend: InferenceBackend) -> FrameProcessor:
    """
    Build a FrameProcessor from the typed application config.

    The output layout is resolved once here from the backend's declared
    output shape, falling back to the configured layout.
    """
    model_cfg = config.model
    det_cfg = config.detection
    display_cfg = config.display

    layout = resolve_layout(
        backend.output_shape,
        model_cfg.num_boxes,
        model_cfg.dimensions,
        fallback=OutputLayout.parse(model_cfg.output_layout),
    )
    preview_size = None
    if display_cfg.preview_width and display_cfg.preview_height:
        preview_size = (display_cfg.preview_width, display_cfg.preview_height)

    return FrameProcessor(
        transformer=FrameTransformer(model_cfg.input_size, letterbox=model_cfg.letterbox),
        backend=backend,
        decoder=DetectionDecoder(
            layout,
            num_boxes=model_cfg.num_boxes,
            num_classes=model_cfg.num_classes,
            prefilter_threshold=det_cfg.prefilter_threshold,
            min_box_size=det_cfg.min_box_size,
            max_box_size=det_cfg.max_box_size,
        ),
        mapper=CoordinateMapper(
            tensor_size=model_cfg.input_size,
            viewport=Viewport(
                display_cfg.viewport_width,
                display_cfg.viewport_height,
                display_cfg.viewport_left,
                display_cfg.viewport_top,
            ),
            conf_threshold=det_cfg.conf_threshold,
            class_names=model_cfg.class_names,
            max_candidates=det_cfg.max_candidates,
            min_aspect=det_cfg.min_aspect,
            max_aspect=det_cfg.max_aspect,
        ),
        suppressor=SuppressionEngine(
            iou_threshold=det_cfg.iou_threshold,
            conf_threshold=det_cfg.conf_threshold,
            max_kept=det_cfg.max_display,
        ),
        fusion=FusionPolicy(
            config.fusion.class_keywords,
            high_confidence_threshold=config.fusion.high_confidence_threshold,
            confidence_boost=config.fusion.confidence_boost,
            debounce_seconds=config.fusion.debounce_seconds,
        ),
        preview_size=preview_size,
    )
