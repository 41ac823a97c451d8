"""
OCR: text recognition and brand/expiry extraction.
"""

from .extractor import TextExtractor, extract_brand_name, extract_expiry_date
from .recognizer import RecognitionService, TesseractConfig, TesseractRecognizer, TextRecognizer

__all__ = [
    "RecognitionService",
    "TesseractConfig",
    "TesseractRecognizer",
    "TextExtractor",
    "TextRecognizer",
    "extract_brand_name",
    "extract_expiry_date",
]
