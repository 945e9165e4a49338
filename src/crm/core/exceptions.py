"""Error types raised by the CRM core.

- ValidationError: bad input shape or a required field missing
- NotFoundError: the target record of an operation does not exist
- StoreError: the record store backend failed (I/O, driver, connection)

Callers receive these unchanged; the core never retries.
"""

from __future__ import annotations


class CRMError(Exception):
    """Base class for all CRM core errors."""


class ValidationError(CRMError, ValueError):
    """Raised when input fails validation.

    Carries one message per offending field so a form can show them all.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        summary = "; ".join(f"{field}: {msg}" for field, msg in self.errors.items())
        super().__init__(f"Validation failed: {summary}")


class NotFoundError(CRMError, LookupError):
    """Raised when an operation targets a record id that does not resolve."""

    def __init__(self, kind: str, record_id: int) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class StoreError(CRMError):
    """Raised when the record store backend fails."""
