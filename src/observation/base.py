"""
FrameSource interface for pluggable camera sources.

A source delivers raw Frames (YUV420 or packed BGRA planes) the same way a
phone camera stream does, so the pipeline sees one frame type regardless of
where the pixels came from.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from models.frame import Frame


@dataclass
class SourceConfig:
    """
    Base configuration for frame sources.

    Attributes:
        source_id: Identifier attached to every frame.
        resolution: Requested (width, height). None = source default.
        fps: Requested frames per second. None = source default.
    """
    source_id: str = "default"
    resolution: Optional[Tuple[int, int]] = None
    fps: Optional[int] = None


class FrameSource(ABC):
    """
    Abstract base class for frame sources.

    Lifecycle: open(), read() until None, close(). Also usable as a context
    manager and as an iterator:

        with OpenCVSource(config) as source:
            for frame in source:
                engine.submit(frame)
    """

    def __init__(self, config: SourceConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Number of frames read since open."""
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """
        Raises:
            RuntimeError: If the source cannot be opened.
        """

    @abstractmethod
    def read(self) -> Optional[Frame]:
        """Return the next frame, or None when no frame is available."""

    @abstractmethod
    def close(self) -> None:
        """Release the source. Safe to call multiple times."""

    def __enter__(self) -> "FrameSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[Frame]:
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")
        while True:
            frame = self.read()
            if frame is None:
                break
            yield frame
