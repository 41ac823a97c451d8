"""
Error taxonomy for the perception pipeline.

Every error here is scoped to a single frame or a single call; none of them
is fatal to the running pipeline.
"""

from __future__ import annotations


class PerceptionError(Exception):
    """Base class for frame- or call-scoped pipeline failures."""

    kind = "error"


class FormatUnsupportedError(PerceptionError):
    """The frame uses a pixel layout the transformer cannot decode."""

    kind = "format_unsupported"


class InferenceError(PerceptionError):
    """The inference capability failed for this frame."""

    kind = "inference_failure"


class ShapeMismatchError(PerceptionError):
    """Model output length does not match the declared output shape."""

    kind = "shape_mismatch"


class OCRError(PerceptionError):
    """The OCR capability failed for this pass."""

    kind = "ocr_failure"
