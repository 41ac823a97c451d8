"""
Frame sources. Each source implements FrameSource and returns raw Frames.
"""

from .base import FrameSource, SourceConfig
from .frames import frame_from_bgr, frame_from_bgra, frame_from_i420
from .opencv_source import OpenCVSource, OpenCVSourceConfig

__all__ = [
    "FrameSource",
    "OpenCVSource",
    "OpenCVSourceConfig",
    "SourceConfig",
    "frame_from_bgr",
    "frame_from_bgra",
    "frame_from_i420",
]
