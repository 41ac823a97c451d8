"""
Pre-processing: raw frames to letterboxed model input tensors.
"""

from .letterbox import compute_letterbox, forward_point, round_half_up, scaled_size
from .transformer import FrameTransformer, TransformResult, frame_to_rgb, sample_rgb

__all__ = [
    "FrameTransformer",
    "TransformResult",
    "compute_letterbox",
    "forward_point",
    "frame_to_rgb",
    "round_half_up",
    "sample_rgb",
    "scaled_size",
]
