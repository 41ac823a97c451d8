"""
Inference backend interface.

Backends take a letterboxed HWC (or batched NHWC) float tensor and return
the raw flat output vector plus its declared shape. Decoding happens in
detection.decoder.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

import numpy as np


@dataclass(frozen=True)
class InferenceOutput:
    values: np.ndarray
    shape: Tuple[int, ...]

    def __len__(self) -> int:
        return int(self.values.shape[0])


class InferenceBackend(Protocol):
    @property
    def output_shape(self) -> Optional[Tuple[int, ...]]:
        ...

    def run(self, tensor: np.ndarray) -> InferenceOutput:
        ...
