"""
Typed models for the pill-scan perception pipeline.

Explicit record types replace the loosely typed maps that used to carry
detections and configuration between stages.
"""

from .frame import Frame, Plane, PixelFormat, RegionOfInterest
from .detection import BoundingBox, Detection, RawDetectionRow, ScalingContext
from .recognition import RecognitionResult
from .medicine import Medicine, ScanRecord
from .config import (
    Config,
    CameraConfig,
    DetectionConfig,
    DisplayConfig,
    FusionConfig,
    ModelConfig,
    ScheduleConfig,
    StorageConfig,
    WebConfig,
)

__all__ = [
    # Frame
    "Frame",
    "Plane",
    "PixelFormat",
    "RegionOfInterest",
    # Detection
    "BoundingBox",
    "Detection",
    "RawDetectionRow",
    "ScalingContext",
    # OCR
    "RecognitionResult",
    # Persistence
    "Medicine",
    "ScanRecord",
    # Config
    "Config",
    "CameraConfig",
    "DetectionConfig",
    "DisplayConfig",
    "FusionConfig",
    "ModelConfig",
    "ScheduleConfig",
    "StorageConfig",
    "WebConfig",
]
