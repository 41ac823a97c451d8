"""
Fusion policy: cross-validate detections with OCR text and debounce
confirmations.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Mapping, Optional, Sequence

from models.detection import Detection
from models.recognition import RecognitionResult


class FusionPolicy:
    """
    Combine the current frame's detections with the latest OCR snapshot.

    A detection gets a fixed confidence boost when the recognized text
    mentions one of its class keywords. A detection is confirmed when its
    adjusted confidence exceeds the high-confidence threshold, and a confirmed
    detection triggers a notification at most once per debounce interval.

    OCR brand name and expiry date are attached to every detection in the
    frame; no spatial matching between text and boxes is attempted.
    """

    def __init__(
        self,
        class_keywords: Mapping[str, Sequence[str]],
        high_confidence_threshold: float = 0.85,
        confidence_boost: float = 0.05,
        debounce_seconds: float = 3.0,
    ):
        self.class_keywords: Dict[str, List[str]] = {
            str(k): [w.lower() for w in v] for k, v in class_keywords.items()
        }
        self.high_confidence_threshold = high_confidence_threshold
        self.confidence_boost = confidence_boost
        self.debounce_seconds = debounce_seconds

        self._lock = threading.Lock()
        self._last_notified: Optional[float] = None

    @property
    def last_notified(self) -> Optional[float]:
        with self._lock:
            return self._last_notified

    def keywords_for(self, detection: Detection) -> List[str]:
        keywords = self.class_keywords.get(detection.class_name)
        if keywords is None:
            keywords = self.class_keywords.get(str(detection.class_id), [])
        return keywords

    def text_matches(self, detection: Detection, recognition: Optional[RecognitionResult]) -> bool:
        if recognition is None or not recognition.success or not recognition.recognized_text:
            return False
        text = recognition.recognized_text.lower()
        return any(keyword in text for keyword in self.keywords_for(detection))

    def adjusted_confidence(
        self,
        detection: Detection,
        recognition: Optional[RecognitionResult] = None,
    ) -> float:
        boost = self.confidence_boost if self.text_matches(detection, recognition) else 0.0
        return max(0.0, min(1.0, detection.confidence + boost))

    def is_confirmed(
        self,
        detection: Detection,
        recognition: Optional[RecognitionResult] = None,
    ) -> bool:
        """
        Without a recognition snapshot an already fused detection is judged
        by its stored adjusted confidence.
        """
        if recognition is None:
            confidence = detection.effective_confidence
        else:
            confidence = self.adjusted_confidence(detection, recognition)
        return confidence > self.high_confidence_threshold

    def fuse(
        self,
        detections: Sequence[Detection],
        recognition: Optional[RecognitionResult] = None,
    ) -> List[Detection]:
        """
        Attach OCR fields and adjusted confidence to each detection.

        Returns new Detection objects; the inputs are not modified.
        """
        brand_name = None
        expiry_date = None
        if recognition is not None and recognition.success:
            brand_name = recognition.brand_name
            expiry_date = recognition.expiry_date

        fused = []
        for detection in detections:
            changes = {"adjusted_confidence": self.adjusted_confidence(detection, recognition)}
            if brand_name:
                changes["recognized_brand_name"] = brand_name
            if expiry_date:
                changes["expiry_date"] = expiry_date
            fused.append(detection.with_updates(**changes))
        return fused

    def debounce_elapsed(self, now: float) -> bool:
        with self._lock:
            last = self._last_notified
        return last is None or (now - last) > self.debounce_seconds

    def should_notify(
        self,
        detection: Detection,
        now: float,
        recognition: Optional[RecognitionResult] = None,
    ) -> bool:
        return self.is_confirmed(detection, recognition) and self.debounce_elapsed(now)

    def record_notified(self, now: float) -> None:
        with self._lock:
            self._last_notified = now

    def select_notification(
        self,
        detections: Sequence[Detection],
        now: float,
        recognition: Optional[RecognitionResult] = None,
    ) -> Optional[Detection]:
        """
        Pick the detection to notify about for this frame, at most one.

        Records the notification time when a detection is returned.
        """
        for detection in detections:
            if self.should_notify(detection, now, recognition):
                self.record_notified(now)
                logging.info(
                    f"Confirmed {detection.class_name} "
                    f"(confidence {detection.effective_confidence:.2f})"
                )
                return detection
        return None
