"""
Exception hierarchy for catalog composition.

Every failure inside a composition ends up as an error status on the
affected record; these types let the processor report what went wrong.
"""

from typing import Optional, Dict, Any


class CatalogError(Exception):
    """Base exception for all catalog composer errors"""

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.context = context or {}

    def __str__(self):
        parts = [self.message]
        if self.cause:
            parts.append(f" (caused by: {type(self.cause).__name__}: {str(self.cause)})")
        return "".join(parts)


class DecodeFailure(CatalogError):
    """Template or photo bytes could not be decoded as an image"""
    pass


class MeasurementUnavailable(CatalogError):
    """No font backend is available to measure text"""
    pass


class InvalidTransition(CatalogError):
    """A record status change not allowed by the lifecycle"""
    pass


class RecordBusy(CatalogError):
    """The record has a composition in flight"""
    pass


class TemplateMissing(CatalogError):
    """Composition was requested before a template was loaded"""
    pass
