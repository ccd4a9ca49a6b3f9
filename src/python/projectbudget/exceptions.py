"""Custom exception types for ProjectBudget."""

from __future__ import annotations

from typing import Any


class ProjectBudgetError(Exception):
    """Base class for all ledger errors."""


class NotFoundError(ProjectBudgetError):
    """Raised when a requested record does not exist."""


class InvalidAmountError(ProjectBudgetError, ValueError):
    """Raised when an amount is zero, negative, or not a decimal.

    Bad input; the caller must fix it before retrying.
    """


class UnknownStatusError(ProjectBudgetError, ValueError):
    """Raised when a status label is outside the record kind's vocabulary."""

    def __init__(self, kind: str, status: str) -> None:
        super().__init__(f"Unknown {kind} status: {status!r}")
        self.kind = kind
        self.status = status


class ReconciliationError(ProjectBudgetError):
    """Raised when a transition cannot be reconciled against an account.

    No transaction is started for this error, so nothing was written.
    """


class ConstraintError(ProjectBudgetError):
    """Raised when the storage layer rejects a write (e.g. foreign key)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class PersistenceError(ProjectBudgetError):
    """Raised on infrastructure failures; the operation was rolled back.

    Safe to retry the whole create or update call.
    """


class StalePlanError(PersistenceError):
    """Raised when a record changed between resolution and application."""
