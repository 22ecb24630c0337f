"""
Exception types raised by rowbinder.

Faults are reserved for contract violations by the calling code. Data-dependent
failures (no rows, store errors, access denial) are reported through sentinel
return values (-1, empty collections, False) and never raise.
"""

from __future__ import annotations

from typing import Any, Optional


class RowBinderError(Exception):
    """Base exception for record-mapping faults."""

    def __init__(self, message: str, table_name: Optional[str] = None):
        self.table_name = table_name
        super().__init__(message)


class ChangeSetError(RowBinderError, ValueError):
    """Raised when previous changes are discarded without providing new ones."""


class IdentityConflictError(RowBinderError, ValueError):
    """Raised when a pending id differs from the id of the loaded record."""

    def __init__(self, message: str, table_name: Optional[str] = None, expected: Any = None, received: Any = None):
        self.expected = expected
        self.received = received
        super().__init__(message, table_name=table_name)


class RevisionUnavailableError(RowBinderError, NotImplementedError):
    """Raised when a temporal record cannot be loaded at a past revision."""


class TemplateNotFoundError(RowBinderError, KeyError):
    """Raised when neither the module nor the built-in set provides a template."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


__all__ = [
    "RowBinderError",
    "ChangeSetError",
    "IdentityConflictError",
    "RevisionUnavailableError",
    "TemplateNotFoundError",
]
