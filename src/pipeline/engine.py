"""
Perception engine: schedules the detection and OCR paths.

Frames are handed over through a capacity-1 slot. While a frame is pending or
being processed, newly submitted frames are dropped, so the detector always
works on a recent frame and never queues up a backlog. OCR runs on its own
slower cadence over the latest submitted frame and publishes an immutable
RecognitionResult snapshot that the detection path reads.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

from models.config import ScheduleConfig
from models.frame import Frame
from models.recognition import RecognitionResult
from ocr.recognizer import RecognitionService
from pipeline.processor import FrameOutcome, FrameProcessor, FrameStatus


class RecognitionStore:
    """Holds the latest RecognitionResult; replaced as a whole, never mutated."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current: Optional[RecognitionResult] = None

    def get(self) -> Optional[RecognitionResult]:
        with self._lock:
            return self._current

    def publish(self, result: RecognitionResult) -> None:
        with self._lock:
            self._current = result

    def clear(self) -> None:
        with self._lock:
            self._current = None


@dataclass
class EngineStats:
    """Runtime statistics for the engine."""
    frames_submitted: int = 0
    frames_processed: int = 0
    frames_dropped: int = 0
    frames_throttled: int = 0
    frames_skipped: int = 0
    frames_discarded: int = 0
    ocr_runs: int = 0
    ocr_failures: int = 0
    last_latency: float = 0.0
    last_frame_time: Optional[float] = None
    start_time: float = field(default_factory=time.time)
    consecutive_failures: int = 0
    last_failure_kind: Optional[str] = None
    systemic_failure: bool = False
    systemic_failure_kind: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


OutcomeListener = Callable[[FrameOutcome], None]


class PerceptionEngine:
    """
    Runs FrameProcessor on a worker thread and RecognitionService on an OCR
    thread.

    Example:
        engine = PerceptionEngine(processor, recognition_service, schedule)
        engine.add_listener(on_outcome)
        engine.start()
        for frame in source:
            engine.submit(frame)
        engine.stop()

    step() and ocr_step() run one unit of work on the calling thread; the
    worker threads are loops around them.
    """

    def __init__(
        self,
        processor: FrameProcessor,
        recognition_service: Optional[RecognitionService] = None,
        schedule: Optional[ScheduleConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.processor = processor
        self.recognition_service = recognition_service
        self.schedule = schedule or ScheduleConfig()
        self.recognition = RecognitionStore()
        self.stats = EngineStats()

        self._clock = clock
        self._lock = threading.Lock()
        self._frame_ready = threading.Condition(self._lock)
        self._pending: Optional[Frame] = None
        self._busy = False
        self._latest: Optional[Frame] = None
        self._last_accepted: Optional[float] = None
        self._ocr_busy = False
        self._last_outcome: Optional[FrameOutcome] = None

        self._listeners: List[OutcomeListener] = []
        self._stop_event = threading.Event()
        self._discard = False
        self._threads: List[threading.Thread] = []

    def add_listener(self, listener: OutcomeListener) -> None:
        """
        Add a listener called with each applied FrameOutcome.

        Listeners run on the worker thread; exceptions are logged.
        """
        self._listeners.append(listener)

    @property
    def running(self) -> bool:
        return bool(self._threads) and not self._stop_event.is_set()

    @property
    def last_outcome(self) -> Optional[FrameOutcome]:
        with self._lock:
            return self._last_outcome

    def stats_snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return self.stats.to_dict()

    # Detection path

    def submit(self, frame: Frame) -> bool:
        """
        Offer a frame to the detection path.

        Returns:
            True if the frame was accepted, False if it was throttled,
            dropped because a frame is already pending or in flight, or the
            engine is stopping.
        """
        now = self._clock()
        with self._lock:
            self.stats.frames_submitted += 1
            if self._discard:
                return False
            self._latest = frame

            if (
                self._last_accepted is not None
                and now - self._last_accepted < self.schedule.min_frame_interval
            ):
                self.stats.frames_throttled += 1
                return False

            if self._pending is not None or self._busy:
                self.stats.frames_dropped += 1
                return False

            self._pending = frame
            self._last_accepted = now
            self._frame_ready.notify()
            return True

    def step(self, timeout: Optional[float] = 0.0) -> Optional[FrameOutcome]:
        """
        Process the pending frame, if any.

        Args:
            timeout: Seconds to wait for a frame (None waits indefinitely).

        Returns:
            The applied outcome, or None if there was no frame or the result
            was discarded because the engine is stopping.
        """
        with self._lock:
            if self._pending is None and timeout != 0.0:
                self._frame_ready.wait(timeout)
            frame = self._pending
            if frame is None:
                return None
            self._pending = None
            self._busy = True

        try:
            outcome = self.processor.process(
                frame, self.recognition.get(), now=time.time()
            )
        except Exception as e:
            logging.error(f"Unexpected error processing frame {frame.frame_index}: {e}")
            outcome = FrameOutcome(
                frame_index=frame.frame_index,
                timestamp=frame.timestamp,
                status=FrameStatus.INFERENCE_FAILURE,
                error=str(e),
            )

        with self._lock:
            self._busy = False
            if self._discard:
                self.stats.frames_discarded += 1
                return None
            self._record_outcome(outcome)

        for listener in self._listeners:
            try:
                listener(outcome)
            except Exception as e:
                logging.warning(f"Listener error: {e}")
        return outcome

    def _record_outcome(self, outcome: FrameOutcome) -> None:
        stats = self.stats
        stats.frames_processed += 1
        stats.last_latency = outcome.latency
        stats.last_frame_time = time.time()
        self._last_outcome = outcome

        if outcome.ok:
            stats.consecutive_failures = 0
            stats.last_failure_kind = None
            return

        stats.frames_skipped += 1
        kind = outcome.status.value
        if kind == stats.last_failure_kind:
            stats.consecutive_failures += 1
        else:
            stats.consecutive_failures = 1
            stats.last_failure_kind = kind

        if (
            not stats.systemic_failure
            and stats.consecutive_failures >= self.schedule.systemic_failure_threshold
        ):
            stats.systemic_failure = True
            stats.systemic_failure_kind = kind
            logging.error(
                f"Systemic failure: {stats.consecutive_failures} consecutive frames "
                f"failed with {kind} ({outcome.error})"
            )

    def reset_failure_state(self) -> None:
        """Clear the sticky systemic-failure flag."""
        with self._lock:
            self.stats.systemic_failure = False
            self.stats.systemic_failure_kind = None
            self.stats.consecutive_failures = 0
            self.stats.last_failure_kind = None
        logging.info("Systemic failure state reset")

    # OCR path

    def ocr_step(self) -> Optional[RecognitionResult]:
        """
        Run one OCR pass over the latest submitted frame.

        Skipped (returns None) when no service is configured, no frame has
        been seen yet, a pass is already running, or the engine is stopping.
        """
        if self.recognition_service is None:
            return None
        with self._lock:
            if self._ocr_busy or self._discard or self._latest is None:
                return None
            frame = self._latest
            self._ocr_busy = True

        try:
            result = self.recognition_service.recognize_frame(frame)
        finally:
            with self._lock:
                self._ocr_busy = False

        with self._lock:
            if self._discard:
                return None
            self.stats.ocr_runs += 1
            if not result.success:
                self.stats.ocr_failures += 1
        self.recognition.publish(result)
        return result

    # Lifecycle

    def start(self) -> None:
        if self._threads:
            return
        self._stop_event.clear()
        with self._lock:
            self._discard = False
        self.stats = EngineStats()

        worker = threading.Thread(target=self._worker_loop, name="perception-worker", daemon=True)
        self._threads.append(worker)
        if self.recognition_service is not None:
            ocr = threading.Thread(target=self._ocr_loop, name="perception-ocr", daemon=True)
            self._threads.append(ocr)
        for thread in self._threads:
            thread.start()
        logging.info(
            f"Perception engine started: min_frame_interval={self.schedule.min_frame_interval}s, "
            f"ocr_interval={self.schedule.ocr_interval}s"
        )

    def stop(self, timeout: float = 5.0) -> None:
        """
        Stop the engine. Results still in flight are discarded, not applied.
        """
        with self._lock:
            self._discard = True
            self._pending = None
            self._frame_ready.notify_all()
        self._stop_event.set()

        for thread in self._threads:
            thread.join(timeout=timeout)
            if thread.is_alive():
                logging.warning(f"Thread {thread.name} did not stop within {timeout}s")
        self._threads = []
        logging.info(
            f"Perception engine stopped: processed={self.stats.frames_processed}, "
            f"dropped={self.stats.frames_dropped}, skipped={self.stats.frames_skipped}"
        )

    def _worker_loop(self) -> None:
        while not self._stop_event.is_set():
            self.step(timeout=0.1)

    def _ocr_loop(self) -> None:
        while not self._stop_event.wait(self.schedule.ocr_interval):
            try:
                self.ocr_step()
            except Exception as e:
                logging.error(f"OCR loop error: {e}")

    def __enter__(self) -> "PerceptionEngine":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
