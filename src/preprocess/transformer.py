"""
Frame transformer: raw camera frame to normalized, letterboxed model input.

Supported layouts:
- YUV420 planar (Y, U, V planes with their own row/pixel strides, 2x2 chroma)
- BGRA8888 packed (single interleaved plane)

Sampling is nearest-neighbour through inverse mapping from tensor pixels to
source pixels, vectorised with numpy index arithmetic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from models.detection import ScalingContext
from models.errors import FormatUnsupportedError, PerceptionError
from models.frame import Frame, PixelFormat, RegionOfInterest
from .letterbox import compute_letterbox, scaled_size


@dataclass(frozen=True)
class TransformResult:
    """
    Output of one frame transformation.

    Attributes:
        tensor: (S, S, 3) float32 RGB tensor with values in [0, 1].
        context: Letterbox parameters used to build the tensor.
        error: Non-fatal error for this frame (tensor is all zeros when set).
    """
    tensor: np.ndarray
    context: ScalingContext
    error: Optional[PerceptionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _round_half_away(values: np.ndarray) -> np.ndarray:
    return np.sign(values) * np.floor(np.abs(values) + 0.5)


def _yuv_to_rgb(y: np.ndarray, u: np.ndarray, v: np.ndarray) -> np.ndarray:
    """BT.601 full-range conversion; returns uint8 (..., 3) RGB."""
    y = y.astype(np.float32)
    u = u.astype(np.float32) - 128.0
    v = v.astype(np.float32) - 128.0
    r = y + 1.402 * v
    g = y - 0.344136 * u - 0.714136 * v
    b = y + 1.772 * u
    rgb = np.stack([r, g, b], axis=-1)
    return np.clip(_round_half_away(rgb), 0, 255).astype(np.uint8)


def _gather(buffer: np.ndarray, index: np.ndarray, valid: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Read buffer[index] where valid and in range; returns (values, mask)."""
    in_range = valid & (index >= 0) & (index < buffer.size)
    safe = np.where(in_range, index, 0)
    if buffer.size == 0:
        return np.zeros(index.shape, dtype=np.uint8), np.zeros(index.shape, dtype=bool)
    return buffer[safe], in_range


def sample_rgb(
    frame: Frame,
    src_x: np.ndarray,
    src_y: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sample RGB values at a grid of source coordinates.

    Args:
        frame: Source frame.
        src_x: 1-D array of source columns.
        src_y: 1-D array of source rows.

    Returns:
        (rgb, mask): uint8 array of shape (len(src_y), len(src_x), 3) and a
        boolean mask of the cells that could be read. Unreadable cells are 0.

    Raises:
        FormatUnsupportedError: If the pixel format is not decodable.
    """
    cols = src_x[np.newaxis, :].astype(np.int64)
    rows = src_y[:, np.newaxis].astype(np.int64)
    valid = (cols >= 0) & (cols < frame.width) & (rows >= 0) & (rows < frame.height)

    if frame.pixel_format == PixelFormat.YUV420:
        if len(frame.planes) < 3:
            raise FormatUnsupportedError(
                f"YUV420 frame needs 3 planes, got {len(frame.planes)}"
            )
        y_plane, u_plane, v_plane = frame.planes[:3]
        y_buf = np.frombuffer(y_plane.data, dtype=np.uint8)
        u_buf = np.frombuffer(u_plane.data, dtype=np.uint8)
        v_buf = np.frombuffer(v_plane.data, dtype=np.uint8)

        y_idx = rows * y_plane.row_stride + cols * y_plane.pixel_stride
        u_idx = (rows // 2) * u_plane.row_stride + (cols // 2) * u_plane.pixel_stride
        v_idx = (rows // 2) * v_plane.row_stride + (cols // 2) * v_plane.pixel_stride

        y_val, y_ok = _gather(y_buf, y_idx, valid)
        u_val, u_ok = _gather(u_buf, u_idx, valid)
        v_val, v_ok = _gather(v_buf, v_idx, valid)
        mask = y_ok & u_ok & v_ok
        rgb = _yuv_to_rgb(y_val, u_val, v_val)

    elif frame.pixel_format == PixelFormat.BGRA8888:
        if not frame.planes:
            raise FormatUnsupportedError("BGRA8888 frame has no plane data")
        plane = frame.planes[0]
        buf = np.frombuffer(plane.data, dtype=np.uint8)
        pixel_stride = plane.pixel_stride or 4
        base = rows * plane.row_stride + cols * pixel_stride

        # Only the red byte (base + 2) has to be in range; alpha is never read.
        _, mask = _gather(buf, base + 2, valid)
        b_val, _ = _gather(buf, base, mask)
        g_val, _ = _gather(buf, base + 1, mask)
        r_val, _ = _gather(buf, base + 2, mask)
        rgb = np.stack([r_val, g_val, b_val], axis=-1).astype(np.uint8)

    else:
        raise FormatUnsupportedError(f"Unsupported pixel format: {frame.pixel_format}")

    rgb[~mask] = 0
    return rgb, mask


def frame_to_rgb(frame: Frame) -> np.ndarray:
    """
    Decode a whole frame to an (H, W, 3) uint8 RGB bitmap for OCR.

    Raises:
        FormatUnsupportedError: If the pixel format is not decodable.
    """
    rgb, _ = sample_rgb(frame, np.arange(frame.width), np.arange(frame.height))
    return rgb


class FrameTransformer:
    """
    Convert raw frames into (S, S, 3) RGB float tensors for the detector.

    Example:
        transformer = FrameTransformer(size=640)
        result = transformer.transform(frame)
        if result.ok:
            output = backend.run(result.tensor)
    """

    def __init__(self, size: int = 640, letterbox: bool = True) -> None:
        """
        Args:
            size: Side of the square model input.
            letterbox: Preserve aspect ratio with zero padding. When False the
                source rectangle is stretched to fill the tensor.
        """
        if size <= 0:
            raise ValueError(f"tensor size must be positive, got {size}")
        self.size = size
        self.letterbox = letterbox

    def empty_tensor(self) -> np.ndarray:
        return np.zeros((self.size, self.size, 3), dtype=np.float32)

    def transform(self, frame: Frame, roi: Optional[RegionOfInterest] = None) -> TransformResult:
        """
        Build the model input tensor for a frame.

        Args:
            frame: Raw camera frame.
            roi: Optional sub-rectangle of the frame to use as the source.

        Returns:
            TransformResult. For an unsupported pixel format the tensor is all
            zeros and `error` holds a FormatUnsupportedError.
        """
        left = roi.left if roi is not None else 0
        top = roi.top if roi is not None else 0
        source_width = roi.width if roi is not None else frame.width
        source_height = roi.height if roi is not None else frame.height

        tensor = self.empty_tensor()

        if self.letterbox:
            context = compute_letterbox(source_width, source_height, self.size)
            target_width, target_height = scaled_size(source_width, source_height, context)
            scale_x = scale_y = context.scale
        else:
            if source_width <= 0 or source_height <= 0:
                raise ValueError(
                    f"source dimensions must be positive, got {source_width}x{source_height}"
                )
            # Stretched input needs no inverse correction downstream.
            context = ScalingContext.identity()
            target_width = target_height = self.size
            scale_x = self.size / source_width
            scale_y = self.size / source_height

        xs = np.arange(target_width)
        ys = np.arange(target_height)
        src_x = left + np.floor(xs / scale_x).astype(np.int64)
        src_y = top + np.floor(ys / scale_y).astype(np.int64)
        dst_x = context.padding_left + xs
        dst_y = context.padding_top + ys

        try:
            rgb, mask = sample_rgb(frame, src_x, src_y)
        except FormatUnsupportedError as e:
            logging.warning(f"Frame {frame.frame_index}: {e}")
            return TransformResult(tensor=tensor, context=context, error=e)

        mask &= ((dst_x >= 0) & (dst_x < self.size))[np.newaxis, :]
        mask &= ((dst_y >= 0) & (dst_y < self.size))[:, np.newaxis]

        grid_y = np.broadcast_to(dst_y[:, np.newaxis], mask.shape)[mask]
        grid_x = np.broadcast_to(dst_x[np.newaxis, :], mask.shape)[mask]
        tensor[grid_y, grid_x] = rgb[mask].astype(np.float32) / 255.0

        logging.debug(
            f"Letterbox: scale={context.scale:.4f}, padding left={context.padding_left}, "
            f"top={context.padding_top}, target={target_width}x{target_height}"
        )
        return TransformResult(tensor=tensor, context=context)


__all__ = [
    "FrameTransformer",
    "TransformResult",
    "frame_to_rgb",
    "sample_rgb",
]
