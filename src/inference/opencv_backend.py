"""
OpenCV DNN inference backend.

Loads an ONNX detection model with cv2.dnn and runs it on the CPU. The input
tensor arrives as NHWC float32 in [0, 1] and is transposed to NCHW for the net.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np

from models.errors import InferenceError

from .backend import InferenceBackend, InferenceOutput


@dataclass(frozen=True)
class OpenCVDnnConfig:
    model_path: str
    input_size: int = 640
    # Declared output shape; used when the net cannot report it before a first run.
    output_shape: Optional[Tuple[int, ...]] = None


class OpenCVDnnBackend(InferenceBackend):
    def __init__(self, cfg: OpenCVDnnConfig):
        self.cfg = cfg
        path = Path(cfg.model_path)
        if not path.exists():
            raise FileNotFoundError(f"Model file not found: {path}")

        try:
            self._net = cv2.dnn.readNetFromONNX(str(path))
        except cv2.error as e:
            raise InferenceError(f"Failed to load model {path}: {e}") from e

        self._output_shape: Optional[Tuple[int, ...]] = cfg.output_shape
        logging.info(f"Loaded ONNX model {path} (input {cfg.input_size}x{cfg.input_size})")

    @property
    def output_shape(self) -> Optional[Tuple[int, ...]]:
        return self._output_shape

    def run(self, tensor: np.ndarray) -> InferenceOutput:
        """
        Run one forward pass.

        Raises:
            InferenceError: If the tensor has the wrong shape or the net fails.
        """
        size = self.cfg.input_size
        if tensor.ndim == 3:
            tensor = tensor[np.newaxis]
        if tensor.shape != (1, size, size, 3):
            raise InferenceError(
                f"Expected input tensor (1, {size}, {size}, 3), got {tuple(tensor.shape)}"
            )

        blob = np.ascontiguousarray(tensor.transpose(0, 3, 1, 2), dtype=np.float32)
        try:
            self._net.setInput(blob)
            out = self._net.forward()
        except cv2.error as e:
            raise InferenceError(f"Model inference failed: {e}") from e

        out = np.asarray(out, dtype=np.float32)
        shape = tuple(int(d) for d in out.shape)
        if self._output_shape is None:
            self._output_shape = shape
            logging.info(f"Model output shape: {list(shape)}")
        return InferenceOutput(values=out.ravel(), shape=shape)
