"""
OpenCV camera source.

Reads BGR images from a webcam index or a video file with cv2.VideoCapture
and delivers them as raw Frames in the configured pixel layout: packed BGRA
(as iOS cameras deliver) or three-plane YUV420 (as Android cameras deliver).
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import cv2
import numpy as np

from models.frame import Frame, PixelFormat
from .base import FrameSource, SourceConfig
from .frames import frame_from_bgr, frame_from_i420


@dataclass
class OpenCVSourceConfig(SourceConfig):
    """
    Attributes:
        device_id: Camera index (int) or video file path (str).
        pixel_format: Layout of the delivered frames.
        max_retries: Attempts to open the device before giving up.
        rotate: Rotation in degrees (0, 90, 180, 270), for portrait preview.
    """
    device_id: Union[int, str] = 0
    pixel_format: PixelFormat = PixelFormat.BGRA8888
    max_retries: int = 3
    rotate: int = 0

    @classmethod
    def from_camera_config(cls, camera_cfg: Dict[str, Any], source_id: str = "camera") -> "OpenCVSourceConfig":
        resolution = camera_cfg.get("resolution")
        return cls(
            source_id=source_id,
            resolution=tuple(resolution) if resolution else None,
            fps=camera_cfg.get("fps"),
            device_id=camera_cfg.get("device_id", 0),
            pixel_format=PixelFormat(camera_cfg.get("pixel_format", PixelFormat.BGRA8888.value)),
            max_retries=camera_cfg.get("max_retries", 3),
            rotate=camera_cfg.get("rotate", 0) or 0,
        )


_ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


class OpenCVSource(FrameSource):
    """
    Example:
        config = OpenCVSourceConfig(device_id=0, resolution=(1280, 720))
        with OpenCVSource(config) as source:
            for frame in source:
                engine.submit(frame)
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None

    @property
    def device_id(self) -> Union[int, str]:
        return self._opencv_config.device_id

    @property
    def is_file(self) -> bool:
        return isinstance(self.device_id, str) and os.path.exists(self.device_id)

    def open(self) -> None:
        if self._is_open:
            return
        self._initialize()
        self._is_open = True
        self._frame_index = 0
        logging.info(
            f"OpenCVSource opened: source_id={self.source_id}, device={self.device_id}, "
            f"resolution={self._opencv_config.resolution}, "
            f"format={self._opencv_config.pixel_format.value}"
        )

    def _initialize(self) -> None:
        cfg = self._opencv_config
        for attempt in range(cfg.max_retries):
            if attempt > 0:
                wait_time = min(2 ** attempt, 10)
                logging.info(f"Retrying camera open ({attempt + 1}/{cfg.max_retries}) after {wait_time}s")
                time.sleep(wait_time)

            self._cap = cv2.VideoCapture(self.device_id)
            if self._cap.isOpened():
                break
            self._cap.release()
            self._cap = None
            logging.warning(f"Failed to open device {self.device_id}")
        else:
            raise RuntimeError(
                f"Failed to open device {self.device_id} after {cfg.max_retries} attempts"
            )

        if isinstance(self.device_id, int) and cfg.resolution:
            w, h = cfg.resolution
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            if cfg.fps:
                self._cap.set(cv2.CAP_PROP_FPS, cfg.fps)
            logging.info(
                f"Camera actual settings - Resolution: "
                f"({self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)}x{self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)}), "
                f"FPS: {self._cap.get(cv2.CAP_PROP_FPS)}"
            )

    def read(self) -> Optional[Frame]:
        if not self._is_open or self._cap is None:
            return None

        ret, image = self._cap.read()
        if not ret or image is None:
            if self.is_file:
                logging.info("End of video file reached")
            else:
                logging.warning("Failed to read frame from camera")
            return None

        rotation = _ROTATIONS.get(self._opencv_config.rotate)
        if rotation is not None:
            image = cv2.rotate(image, rotation)

        self._frame_index += 1
        return self._to_frame(image, time.time())

    def _to_frame(self, image: np.ndarray, timestamp: float) -> Frame:
        if self._opencv_config.pixel_format == PixelFormat.YUV420:
            # I420 needs even dimensions.
            h, w = image.shape[:2]
            image = image[: h - h % 2, : w - w % 2]
            return frame_from_i420(image, timestamp, self._frame_index, self.source_id)
        return frame_from_bgr(image, timestamp, self._frame_index, self.source_id)

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        if self._is_open:
            logging.info(f"OpenCVSource closed: source_id={self.source_id}")
        self._is_open = False
