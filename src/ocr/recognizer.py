"""
OCR capability and the recognition service around it.

The service is what the engine's OCR thread calls: it decodes a frame to RGB,
runs the recognizer and extracts brand/expiry. It never raises; every failure
becomes a RecognitionResult with success=False.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol

import numpy as np

from models.errors import OCRError, PerceptionError
from models.frame import Frame
from models.recognition import RecognitionResult
from preprocess.transformer import frame_to_rgb

from .extractor import TextExtractor


class TextRecognizer(Protocol):
    def recognize(self, rgb: np.ndarray) -> str:
        ...


@dataclass(frozen=True)
class TesseractConfig:
    language: str = "eng"
    # Page segmentation mode 6: a single uniform block of text.
    psm: int = 6
    tesseract_cmd: Optional[str] = None


class TesseractRecognizer(TextRecognizer):
    def __init__(self, cfg: Optional[TesseractConfig] = None):
        self.cfg = cfg or TesseractConfig()
        try:
            import pytesseract  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "pytesseract is not installed. Install with `pip install pytesseract` "
                "(and the tesseract binary) or run without OCR."
            ) from e

        if self.cfg.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.cfg.tesseract_cmd
        self._tesseract = pytesseract

    def recognize(self, rgb: np.ndarray) -> str:
        """
        Raises:
            OCRError: If tesseract fails.
        """
        try:
            return self._tesseract.image_to_string(
                rgb,
                lang=self.cfg.language,
                config=f"--psm {self.cfg.psm}",
            )
        except Exception as e:
            raise OCRError(f"Tesseract failed: {e}") from e


class RecognitionService:
    """Frame in, RecognitionResult out."""

    def __init__(self, recognizer: TextRecognizer, extractor: Optional[TextExtractor] = None):
        self.recognizer = recognizer
        self.extractor = extractor or TextExtractor()

    def recognize_frame(self, frame: Frame) -> RecognitionResult:
        try:
            rgb = frame_to_rgb(frame)
            text = self.recognizer.recognize(rgb)
        except PerceptionError as e:
            logging.warning(f"Text recognition failed on frame {frame.frame_index}: {e}")
            return RecognitionResult.failure(f"Error in text recognition: {e}", time.time())
        except Exception as e:
            logging.error(f"Unexpected text recognition error on frame {frame.frame_index}: {e}")
            return RecognitionResult.failure(f"Error in text recognition: {e}", time.time())

        result = self.extractor.extract(text, timestamp=time.time())
        logging.debug(
            f"Recognized text on frame {frame.frame_index}: brand={result.brand_name!r} "
            f"expiry={result.expiry_date!r}"
        )
        return result
