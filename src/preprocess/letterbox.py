"""
Letterbox geometry shared by the frame transformer and the coordinate mapper.
"""

from __future__ import annotations

import math
from typing import Tuple

from models.detection import ScalingContext


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if value >= 0:
        return int(math.floor(value + 0.5))
    return -int(math.floor(-value + 0.5))


def compute_letterbox(source_width: int, source_height: int, size: int) -> ScalingContext:
    """
    Compute the aspect-preserving scale and centred padding for a square target.

    Landscape sources are fitted by width and padded top/bottom; portrait and
    square sources are fitted by height and padded left/right.

    Args:
        source_width: Width of the source rectangle in pixels.
        source_height: Height of the source rectangle in pixels.
        size: Side of the square model input.

    Returns:
        ScalingContext with the scale and the left/top padding halves.
    """
    if source_width <= 0 or source_height <= 0:
        raise ValueError(
            f"source dimensions must be positive, got {source_width}x{source_height}"
        )
    if size <= 0:
        raise ValueError(f"tensor size must be positive, got {size}")

    padding_left = 0
    padding_top = 0
    if source_width / source_height > 1:
        scale = size / source_width
        padding_top = round_half_up((size - round_half_up(source_height * scale)) / 2)
    else:
        scale = size / source_height
        padding_left = round_half_up((size - round_half_up(source_width * scale)) / 2)

    return ScalingContext(scale=scale, padding_left=padding_left, padding_top=padding_top)


def scaled_size(source_width: int, source_height: int, context: ScalingContext) -> Tuple[int, int]:
    """Return the (width, height) the source occupies inside the tensor."""
    return (
        round_half_up(source_width * context.scale),
        round_half_up(source_height * context.scale),
    )


def forward_point(
    x: float,
    y: float,
    context: ScalingContext,
    size: int,
) -> Tuple[float, float]:
    """
    Map a normalized source-image point into normalized tensor space.

    Source coordinates are normalized by the fitted side (size / scale), the
    same convention the coordinate mapper uses when it undoes the letterbox.
    This is the inverse of the mapper's first step and is mainly useful for
    tests and calibration tools.
    """
    tx = (x * context.scale * size + context.padding_left) / size
    ty = (y * context.scale * size + context.padding_top) / size
    return tx, ty
