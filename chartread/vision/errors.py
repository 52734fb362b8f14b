"""Failure taxonomy for chart reads and annotation."""

from __future__ import annotations

from typing import Optional


class ChartReadError(Exception):
    """Base class. ``kind`` is the tag surfaced in failed results."""

    kind = "error"


class ConfigurationError(ChartReadError):
    """No model client is configured (missing API key)."""

    kind = "configuration"


class ModelError(ChartReadError):
    """Transport or provider failure while calling the model."""

    kind = "model"


class EmptyResponseError(ChartReadError):
    """Model answered with no text."""

    kind = "empty_response"


class ParseError(ChartReadError):
    """Model text is not valid JSON."""

    kind = "parse"

    def __init__(self, message: str, raw_text: str):
        self.raw_text = raw_text
        super().__init__(message)


class ValidationError(ChartReadError):
    """Well-formed JSON that fails a schema or invariant check."""

    kind = "validation"

    def __init__(self, reason: str, field: Optional[str] = None):
        self.reason = reason
        self.field = field
        super().__init__(f"Validation failed: {reason}")


class ImageLoadError(ChartReadError):
    """Source image could not be decoded by the overlay renderer."""

    kind = "image_load"
