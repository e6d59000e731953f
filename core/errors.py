from __future__ import annotations

from typing import Optional


class PivotError(Exception):
    """Base class for pivot pipeline errors."""


class ConfigurationError(PivotError):
    """A required parameter is missing or names something unknown."""


class DataUnavailable(PivotError):
    """Raw data could not be fetched from its source."""


class TransformFailure(PivotError):
    """A calculated-field transform raised while computing one field."""

    def __init__(self, alias: str, cause: Optional[BaseException] = None):
        super().__init__(f"transform for {alias!r} failed: {cause!r}")
        self.alias = alias
        self.cause = cause
