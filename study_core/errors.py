"""
Errors raised by the scheduling core.

All of them are local and recoverable: callers retry or report, they never
need to crash the hosting process.
"""

from __future__ import annotations
from typing import Any, Optional


class StudyCoreError(Exception):
    """Base error for the scheduling core."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(StudyCoreError):
    """Malformed card, out-of-range rating, or negative duration."""


class NotFoundError(StudyCoreError):
    """A referenced entity (e.g. a question) does not exist."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found: {identifier}",
            {"resource": resource, "id": identifier},
        )


class ConcurrencyConflictError(StudyCoreError):
    """
    Another writer updated the same card first.

    Transient: retrying against a freshly read card is expected to succeed.
    """
    transient = True
