"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


def _default_class_names() -> List[str]:
    return ["biogesic-para", "ritemed-para"]


def _default_class_keywords() -> Dict[str, List[str]]:
    return {
        "biogesic-para": ["biogesic", "paracetamol"],
        "ritemed-para": ["ritemed", "paracetamol"],
    }


@dataclass
class ModelConfig:
    """Detection model input/output description."""
    model_path: str = "assets/best_float32.onnx"
    labels_path: Optional[str] = None
    class_names: List[str] = field(default_factory=_default_class_names)
    input_size: int = 640
    channels: int = 3
    num_classes: int = 2
    num_boxes: int = 8400
    output_layout: str = "channel_major"
    letterbox: bool = True

    @property
    def dimensions(self) -> int:
        """Values per candidate: 4 box coordinates plus class scores."""
        return 4 + self.num_classes

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ModelConfig":
        return cls(
            model_path=d.get("model_path", "assets/best_float32.onnx"),
            labels_path=d.get("labels_path"),
            class_names=list(d.get("class_names") or _default_class_names()),
            input_size=d.get("input_size", 640),
            channels=d.get("channels", 3),
            num_classes=d.get("num_classes", 2),
            num_boxes=d.get("num_boxes", 8400),
            output_layout=d.get("output_layout", "channel_major"),
            letterbox=d.get("letterbox", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "model_path": self.model_path,
            "class_names": self.class_names,
            "input_size": self.input_size,
            "channels": self.channels,
            "num_classes": self.num_classes,
            "num_boxes": self.num_boxes,
            "output_layout": self.output_layout,
            "letterbox": self.letterbox,
        }
        if self.labels_path is not None:
            d["labels_path"] = self.labels_path
        return d


@dataclass
class DetectionConfig:
    """Post-processing thresholds."""
    conf_threshold: float = 0.80
    iou_threshold: float = 0.65
    prefilter_ratio: float = 0.75
    max_candidates: int = 10
    max_display: int = 1
    min_box_size: float = 0.01
    max_box_size: float = 0.9
    min_aspect: float = 0.2
    max_aspect: float = 5.0

    @property
    def prefilter_threshold(self) -> float:
        return self.conf_threshold * self.prefilter_ratio

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        return cls(
            conf_threshold=d.get("conf_threshold", 0.80),
            iou_threshold=d.get("iou_threshold", 0.65),
            prefilter_ratio=d.get("prefilter_ratio", 0.75),
            max_candidates=d.get("max_candidates", 10),
            max_display=d.get("max_display", 1),
            min_box_size=d.get("min_box_size", 0.01),
            max_box_size=d.get("max_box_size", 0.9),
            min_aspect=d.get("min_aspect", 0.2),
            max_aspect=d.get("max_aspect", 5.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conf_threshold": self.conf_threshold,
            "iou_threshold": self.iou_threshold,
            "prefilter_ratio": self.prefilter_ratio,
            "max_candidates": self.max_candidates,
            "max_display": self.max_display,
            "min_box_size": self.min_box_size,
            "max_box_size": self.max_box_size,
            "min_aspect": self.min_aspect,
            "max_aspect": self.max_aspect,
        }


@dataclass
class FusionConfig:
    """OCR cross-validation and notification debounce."""
    class_keywords: Dict[str, List[str]] = field(default_factory=_default_class_keywords)
    high_confidence_threshold: float = 0.85
    confidence_boost: float = 0.05
    debounce_seconds: float = 3.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FusionConfig":
        keywords = d.get("class_keywords")
        return cls(
            class_keywords=dict(keywords) if keywords is not None else _default_class_keywords(),
            high_confidence_threshold=d.get("high_confidence_threshold", 0.85),
            confidence_boost=d.get("confidence_boost", 0.05),
            debounce_seconds=d.get("debounce_seconds", 3.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "class_keywords": self.class_keywords,
            "high_confidence_threshold": self.high_confidence_threshold,
            "confidence_boost": self.confidence_boost,
            "debounce_seconds": self.debounce_seconds,
        }


@dataclass
class ScheduleConfig:
    """Worker cadence for the detection and OCR paths."""
    min_frame_interval: float = 0.3
    ocr_interval: float = 1.0
    systemic_failure_threshold: int = 30

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ScheduleConfig":
        return cls(
            min_frame_interval=d.get("min_frame_interval", 0.3),
            ocr_interval=d.get("ocr_interval", 1.0),
            systemic_failure_threshold=d.get("systemic_failure_threshold", 30),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_frame_interval": self.min_frame_interval,
            "ocr_interval": self.ocr_interval,
            "systemic_failure_threshold": self.systemic_failure_threshold,
        }


@dataclass
class DisplayConfig:
    """
    On-screen placement of the camera preview.

    viewport_* describe the screen rectangle the preview is drawn into;
    preview_* the size of the preview image. None means "same as the frame".
    """
    viewport_width: int = 1080
    viewport_height: int = 1920
    viewport_left: int = 0
    viewport_top: int = 0
    preview_width: Optional[int] = None
    preview_height: Optional[int] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DisplayConfig":
        return cls(
            viewport_width=d.get("viewport_width", 1080),
            viewport_height=d.get("viewport_height", 1920),
            viewport_left=d.get("viewport_left", 0),
            viewport_top=d.get("viewport_top", 0),
            preview_width=d.get("preview_width"),
            preview_height=d.get("preview_height"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "viewport_width": self.viewport_width,
            "viewport_height": self.viewport_height,
            "viewport_left": self.viewport_left,
            "viewport_top": self.viewport_top,
        }
        if self.preview_width is not None:
            d["preview_width"] = self.preview_width
        if self.preview_height is not None:
            d["preview_height"] = self.preview_height
        return d


@dataclass
class CameraConfig:
    """Camera configuration."""
    device_id: Union[int, str] = 0
    resolution: List[int] = field(default_factory=lambda: [1280, 720])
    fps: int = 30
    pixel_format: str = "bgra8888"
    rotate: int = 0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        return cls(
            device_id=d.get("device_id", 0),
            resolution=d.get("resolution", [1280, 720]),
            fps=d.get("fps", 30),
            pixel_format=d.get("pixel_format", "bgra8888"),
            rotate=d.get("rotate", 0) or 0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "resolution": self.resolution,
            "fps": self.fps,
            "pixel_format": self.pixel_format,
            "rotate": self.rotate,
        }


@dataclass
class StorageConfig:
    """Storage configuration."""
    local_database_path: str = "data/pillscan.sqlite"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StorageConfig":
        return cls(
            local_database_path=d.get("local_database_path", "data/pillscan.sqlite"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"local_database_path": self.local_database_path}


@dataclass
class WebConfig:
    """Status API configuration."""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", True),
            host=d.get("host", "0.0.0.0"),
            port=d.get("port", 5000),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "host": self.host, "port": self.port}


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    fusion: FusionConfig = field(default_factory=FusionConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/pillscan.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            model=ModelConfig.from_dict(d.get("model", {}) or {}),
            detection=DetectionConfig.from_dict(d.get("detection", {}) or {}),
            fusion=FusionConfig.from_dict(d.get("fusion", {}) or {}),
            schedule=ScheduleConfig.from_dict(d.get("schedule", {}) or {}),
            display=DisplayConfig.from_dict(d.get("display", {}) or {}),
            camera=CameraConfig.from_dict(d.get("camera", {}) or {}),
            storage=StorageConfig.from_dict(d.get("storage", {}) or {}),
            web=WebConfig.from_dict(d.get("web", {}) or {}),
            log_path=d.get("log_path", "logs/pillscan.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "model": self.model.to_dict(),
            "detection": self.detection.to_dict(),
            "fusion": self.fusion.to_dict(),
            "schedule": self.schedule.to_dict(),
            "display": self.display.to_dict(),
            "camera": self.camera.to_dict(),
            "storage": self.storage.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
