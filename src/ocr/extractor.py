"""
Text extractor: brand name and expiry date heuristics over OCR text.

Pure text functions; the OCR call itself lives in ocr.recognizer.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Optional

from models.recognition import RecognitionResult

# Month tokens as printed on blister packs, including numeric months and the
# letters OCR commonly produces for a leading "1".
_MONTH_PATTERN = (
    r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec|"
    r"january|february|march|april|may|june|july|august|september|october|november|december|"
    r"01|02|03|04|05|06|07|08|09|10|11|12|"
    r"1|2|3|4|5|6|7|8|9|i|j)"
)

EXPIRY_LABELS = ("EXP", "EXPIRY", "EXPIRATION", "USE BY", "BEST BEFORE")
LABEL_WINDOW = 20

# Label followed by a numeric date or a day + month + year.
EXPIRY_DATE_PATTERN = re.compile(
    r"(exp\.?|expiry|exp date|expiration|valid until|best before|use by)[\s.:-]*"
    r"(\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}|\d{1,2}[\s.:-]?" + _MONTH_PATTERN + r"[.:\s-]*\d{2,4})",
    re.IGNORECASE,
)
EXP_NUMBER_PATTERN = re.compile(
    r"(?:EXP|EXPIRY|EXPIRES?)[\s.:-]*(\d{1,2}[\s/.-]*\d{2,4})",
    re.IGNORECASE,
)
SIMPLE_DATE_PATTERN = re.compile(r"(\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4})")
# A month/year pair that is not the tail of a full date.
MONTH_YEAR_PATTERN = re.compile(r"(?<![\d/.-])(\d{1,2}[/.-]\d{4})(?!\d)")
# Unlabeled steps only accept spelled-out months; digit months belong to the
# numeric patterns.
TEXT_MONTH_YEAR_PATTERN = re.compile(
    r"\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?[\s:-]*\d{2,4}\b",
    re.IGNORECASE,
)

_WINDOW_DATE_PATTERN = re.compile(r"\d{1,2}[\s/.-]+(?:\d{1,2}[\s/.-]+)?\d{2,4}")
_WINDOW_MONTH_PATTERN = re.compile(
    r"(?:JAN|FEB|MAR|APR|MAY|JUN|JUL|AUG|SEP|OCT|NOV|DEC)[\s.:-]*\d{2,4}",
    re.IGNORECASE,
)

FORBIDDEN_BRAND_TOKENS = ("MG", "TABLET", "CAPSULE")
MAX_BRAND_WORDS = 3
MAX_BRAND_LENGTH = 25
MIN_LINE_LENGTH = 3


def _is_capitalized(line: str) -> bool:
    if line == line.upper():
        return True
    return all(word and word[0] == word[0].upper() for word in line.split(" "))


def extract_brand_name(text: str) -> Optional[str]:
    """
    Return the first line that looks like a brand name.

    Brand names are short, capitalized lines near the top of the package that
    carry no dosage or dosage-form token.
    """
    if not text:
        return None

    for line in text.split("\n"):
        candidate = line.strip()
        if len(candidate) < MIN_LINE_LENGTH:
            continue
        if EXPIRY_DATE_PATTERN.search(candidate):
            continue
        if not _is_capitalized(candidate):
            continue
        upper = candidate.upper()
        if any(token in upper for token in FORBIDDEN_BRAND_TOKENS):
            continue
        if len(candidate.split(" ")) <= MAX_BRAND_WORDS and len(candidate) <= MAX_BRAND_LENGTH:
            return candidate
    return None


def _from_label_window(text: str) -> Optional[str]:
    upper = text.upper()
    for label in EXPIRY_LABELS:
        pos = upper.find(label)
        if pos < 0:
            continue
        start = pos + len(label)
        window = upper[start : start + LABEL_WINDOW]

        match = _WINDOW_DATE_PATTERN.search(window)
        if match:
            return match.group(0)
        match = _WINDOW_MONTH_PATTERN.search(window)
        if match:
            return match.group(0)
    return None


def _plausible_full_date(value: str, today: date) -> Optional[str]:
    """
    Validate a full numeric date by its year.

    Two-digit years are read as 20xx. Returns the raw string when the year is
    not in the past, or when the year cannot be parsed at all.
    """
    parts = re.split(r"[/.-]", value)
    if len(parts) != 3:
        return None
    try:
        year = int(parts[2])
    except ValueError:
        logging.debug(f"Could not parse year from date '{value}', keeping raw text")
        return value
    if year < 100:
        year += 2000
    if year >= today.year:
        return value
    return None


def _from_lines(text: str, today: date) -> Optional[str]:
    for line in text.split("\n"):
        candidate = line.strip()
        if len(candidate) < MIN_LINE_LENGTH:
            continue

        match = TEXT_MONTH_YEAR_PATTERN.search(candidate)
        if match:
            return match.group(0).strip()

        match = MONTH_YEAR_PATTERN.search(candidate)
        if match:
            return match.group(0).strip()

        match = SIMPLE_DATE_PATTERN.search(candidate)
        if match:
            result = _plausible_full_date(match.group(0).strip(), today)
            if result is not None:
                return result
    return None


def extract_expiry_date(text: str, today: Optional[date] = None) -> Optional[str]:
    """
    Find an expiry date in OCR text.

    Tries, in order, and returns the first hit:
      a. a date within a short window after an expiry label,
      b. an EXP/EXPIRY/EXPIRES label directly followed by digits,
      c. the combined label + date pattern over the whole text,
      d. unlabeled per-line patterns (text month + year, month/year,
         full numeric date with a year check).

    Args:
        text: Recognized text.
        today: Reference date for the year check (defaults to today).

    Returns:
        The matched substring, not a normalized date.
    """
    if not text:
        return None

    found = _from_label_window(text)
    if found:
        return found

    match = EXP_NUMBER_PATTERN.search(text)
    if match:
        return match.group(1).strip()

    match = EXPIRY_DATE_PATTERN.search(text)
    if match:
        return match.group(2).strip()

    return _from_lines(text, today or date.today())


class TextExtractor:
    """Turns recognized text into a RecognitionResult."""

    def __init__(self, today: Optional[date] = None):
        self._today = today

    def extract(self, text: str, timestamp: float = 0.0) -> RecognitionResult:
        brand_name = extract_brand_name(text)
        expiry_date = extract_expiry_date(text, self._today)
        logging.debug(f"Extracted brand={brand_name!r} expiry={expiry_date!r}")
        return RecognitionResult(
            success=True,
            recognized_text=text,
            brand_name=brand_name,
            expiry_date=expiry_date,
            timestamp=timestamp,
        )
