"""
Frame model for raw sensor frames delivered by the camera.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class PixelFormat(str, Enum):
    """Pixel layout tag of a raw frame."""
    YUV420 = "yuv420"
    BGRA8888 = "bgra8888"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Plane:
    """
    One plane of pixel data.

    Attributes:
        data: Raw bytes of the plane.
        row_stride: Bytes between the starts of two consecutive rows.
        pixel_stride: Bytes between two horizontally adjacent samples.
    """
    data: bytes
    row_stride: int
    pixel_stride: int = 1


@dataclass(frozen=True)
class RegionOfInterest:
    """Sub-rectangle of a frame in source pixels."""
    left: int
    top: int
    width: int
    height: int

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.left, self.top, self.width, self.height)


@dataclass(frozen=True)
class Frame:
    """
    A raw camera frame.

    Lives for a single sensor callback; it is discarded once the tensor
    (and, on the OCR cadence, the RGB bitmap) has been extracted.

    Attributes:
        planes: Y, U, V planes for YUV420 or a single interleaved plane for BGRA8888.
        width: Frame width in pixels.
        height: Frame height in pixels.
        pixel_format: Layout of the plane data.
        timestamp: Capture time (seconds).
        frame_index: Sequential frame number since the source was opened.
    """
    planes: Tuple[Plane, ...]
    width: int
    height: int
    pixel_format: PixelFormat
    timestamp: float = 0.0
    frame_index: int = 0
    source: Optional[str] = field(default=None, compare=False)

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)
