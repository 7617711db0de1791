"""Error taxonomy shared by the ledger services."""
from __future__ import annotations


class LedgerError(RuntimeError):
    """Base exception for target ledger errors."""


class ValidationError(LedgerError):
    """Raised for malformed or out-of-range input."""


class AuthorizationError(LedgerError):
    """Raised when the acting identity may not perform the operation."""


class ConflictError(LedgerError):
    """Raised when the request conflicts with the current ledger state."""


class NotFoundError(LedgerError):
    """Raised when an identifier does not resolve to a row."""


class TransientStoreError(LedgerError):
    """Raised on store connectivity problems; the operation may be retried."""


class NonFatalSideEffectError(LedgerError):
    """Wraps a failed post-commit side effect. Logged, never surfaced."""

    def __init__(self, hook: str, cause: BaseException) -> None:
        super().__init__(f"post-commit hook '{hook}' failed: {cause}")
        self.hook = hook
        self.cause = cause


__all__ = [
    "AuthorizationError",
    "ConflictError",
    "LedgerError",
    "NonFatalSideEffectError",
    "NotFoundError",
    "TransientStoreError",
    "ValidationError",
]
