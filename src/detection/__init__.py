"""
Detection post-processing: output decoding, coordinate mapping and NMS.
"""

from .decoder import DetectionDecoder, OutputLayout, resolve_layout
from .mapper import CoordinateMapper, Viewport, fit_preview
from .suppression import SuppressionEngine, iou

__all__ = [
    "CoordinateMapper",
    "DetectionDecoder",
    "OutputLayout",
    "SuppressionEngine",
    "Viewport",
    "fit_preview",
    "iou",
    "resolve_layout",
]
