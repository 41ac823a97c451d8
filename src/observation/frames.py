"""
Build raw Frames from numpy images.

Used by the OpenCV source and by tests to produce the two pixel layouts a
camera stream delivers.
"""

from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from models.frame import Frame, PixelFormat, Plane


def frame_from_bgra(
    image: np.ndarray,
    timestamp: float = 0.0,
    frame_index: int = 0,
    source: Optional[str] = None,
) -> Frame:
    """Wrap an (H, W, 4) uint8 BGRA image as a packed BGRA8888 frame."""
    if image.ndim != 3 or image.shape[2] != 4:
        raise ValueError(f"expected (H, W, 4) BGRA image, got shape {image.shape}")
    height, width = image.shape[:2]
    data = np.ascontiguousarray(image, dtype=np.uint8)
    return Frame(
        planes=(Plane(data.tobytes(), row_stride=width * 4, pixel_stride=4),),
        width=width,
        height=height,
        pixel_format=PixelFormat.BGRA8888,
        timestamp=timestamp,
        frame_index=frame_index,
        source=source,
    )


def frame_from_bgr(
    image: np.ndarray,
    timestamp: float = 0.0,
    frame_index: int = 0,
    source: Optional[str] = None,
) -> Frame:
    """Convert an OpenCV BGR image to a packed BGRA8888 frame."""
    bgra = cv2.cvtColor(image, cv2.COLOR_BGR2BGRA)
    return frame_from_bgra(bgra, timestamp, frame_index, source)


def frame_from_i420(
    image: np.ndarray,
    timestamp: float = 0.0,
    frame_index: int = 0,
    source: Optional[str] = None,
) -> Frame:
    """
    Convert an OpenCV BGR image to a three-plane YUV420 frame.

    Width and height must be even.
    """
    height, width = image.shape[:2]
    if width % 2 or height % 2:
        raise ValueError(f"I420 needs even dimensions, got {width}x{height}")

    yuv = cv2.cvtColor(image, cv2.COLOR_BGR2YUV_I420).ravel()
    y_size = width * height
    c_size = y_size // 4
    y_plane = yuv[:y_size].tobytes()
    u_plane = yuv[y_size : y_size + c_size].tobytes()
    v_plane = yuv[y_size + c_size : y_size + 2 * c_size].tobytes()

    return Frame(
        planes=(
            Plane(y_plane, row_stride=width, pixel_stride=1),
            Plane(u_plane, row_stride=width // 2, pixel_stride=1),
            Plane(v_plane, row_stride=width // 2, pixel_stride=1),
        ),
        width=width,
        height=height,
        pixel_format=PixelFormat.YUV420,
        timestamp=timestamp,
        frame_index=frame_index,
        source=source,
    )
