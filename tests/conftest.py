"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.frame import Frame, PixelFormat, Plane  # noqa: E402


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
model:
  model_path: "assets/model.onnx"
  input_size: 640
  num_classes: 2
  num_boxes: 8400

detection:
  conf_threshold: 0.80
  iou_threshold: 0.65

camera:
  device_id: 0
  resolution: [640, 480]
  fps: 30

storage:
  local_database_path: "data/test.sqlite"

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "model": {
            "model_path": "assets/model.onnx",
            "class_names": ["biogesic-para", "ritemed-para"],
            "input_size": 640,
            "num_classes": 2,
            "num_boxes": 8400,
            "output_layout": "channel_major",
        },
        "detection": {
            "conf_threshold": 0.80,
            "iou_threshold": 0.65,
            "max_candidates": 10,
            "max_display": 1,
        },
        "fusion": {
            "high_confidence_threshold": 0.85,
            "confidence_boost": 0.05,
            "debounce_seconds": 3.0,
        },
        "camera": {
            "device_id": 0,
            "resolution": [1280, 720],
            "fps": 30,
        },
        "storage": {
            "local_database_path": "data/test.sqlite",
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def make_output():
    """
    Build a flat detector output vector.

    Call with a list of (index, [x, y, w, h, score0, score1, ...]) pairs; all
    other candidates are zero.
    """
    def _make(candidates, num_boxes=8400, num_classes=2, layout="channel_major"):
        dims = 4 + num_classes
        if layout == "channel_major":
            out = np.zeros((dims, num_boxes), dtype=np.float32)
            for index, values in candidates:
                out[:, index] = values
        else:
            out = np.zeros((num_boxes, dims), dtype=np.float32)
            for index, values in candidates:
                out[index, :] = values
        return out.ravel()

    return _make


@pytest.fixture
def bgra_frame():
    """Build a solid-colour packed BGRA frame: bgra_frame(width, height, (b, g, r))."""
    def _make(width, height, bgr=(0, 0, 0), frame_index=0):
        image = np.zeros((height, width, 4), dtype=np.uint8)
        image[..., 0] = bgr[0]
        image[..., 1] = bgr[1]
        image[..., 2] = bgr[2]
        image[..., 3] = 255
        return Frame(
            planes=(Plane(image.tobytes(), row_stride=width * 4, pixel_stride=4),),
            width=width,
            height=height,
            pixel_format=PixelFormat.BGRA8888,
            frame_index=frame_index,
        )

    return _make
