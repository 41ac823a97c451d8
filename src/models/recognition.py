"""
RecognitionResult model for one OCR pass.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class RecognitionResult:
    """
    Outcome of one OCR pass over a frame.

    Published as an immutable snapshot; readers never see a partially
    written result.

    Attributes:
        success: Whether OCR completed.
        recognized_text: Full recognized text with line breaks preserved.
        brand_name: Brand name extracted from the text.
        expiry_date: Expiry date extracted from the text (raw matched string).
        error_message: Failure description when success is False.
        timestamp: When the pass finished.
    """
    success: bool
    recognized_text: Optional[str] = None
    brand_name: Optional[str] = None
    expiry_date: Optional[str] = None
    error_message: Optional[str] = None
    timestamp: float = 0.0

    @classmethod
    def failure(cls, message: str, timestamp: float = 0.0) -> "RecognitionResult":
        return cls(success=False, error_message=message, timestamp=timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "recognized_text": self.recognized_text,
            "brand_name": self.brand_name,
            "expiry_date": self.expiry_date,
            "error_message": self.error_message,
            "timestamp": self.timestamp,
        }
