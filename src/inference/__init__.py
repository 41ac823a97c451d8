from .backend import InferenceBackend, InferenceOutput
from .opencv_backend import OpenCVDnnBackend, OpenCVDnnConfig

__all__ = ["InferenceBackend", "InferenceOutput", "OpenCVDnnBackend", "OpenCVDnnConfig"]
