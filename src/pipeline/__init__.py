"""
Pipeline: per-frame processing and the threaded perception engine.
"""

from .engine import EngineStats, PerceptionEngine, RecognitionStore
from .processor import FrameOutcome, FrameProcessor, FrameStatus, create_processor_from_config

__all__ = [
    "EngineStats",
    "FrameOutcome",
    "FrameProcessor",
    "FrameStatus",
    "PerceptionEngine",
    "RecognitionStore",
    "create_processor_from_config",
]
