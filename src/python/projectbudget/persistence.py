"""Persistence interfaces for ProjectBudget storage backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal
from pathlib import Path
from typing import Any

from projectbudget.models import AccountRecord, LedgerRecord, RecordState


class PersistenceBackend(ABC):
    """Abstract interface for repository backends."""

    @abstractmethod
    def __init__(self, db_path: str | Path) -> None:
        """Initialize the backend with a storage path."""

    @abstractmethod
    def connect(self) -> None:
        """Establish a backend connection."""

    @abstractmethod
    def close(self) -> None:
        """Close the backend connection."""

    @abstractmethod
    def begin_transaction(self) -> None:
        """Start a write transaction holding the balance write lock."""

    @abstractmethod
    def commit(self) -> None:
        """Commit the active transaction."""

    @abstractmethod
    def rollback(self) -> None:
        """Rollback the active transaction."""

    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        """Whether a transaction is currently open."""

    @abstractmethod
    def get_account(self, key: int) -> AccountRecord:
        """Return one account, active or not."""

    @abstractmethod
    def get_primary(self) -> AccountRecord | None:
        """Return the active primary account, if any."""

    @abstractmethod
    def adjust_balance(self, key: int, amount: Decimal) -> Decimal:
        """Apply a signed delta inside the open transaction; return the new balance."""

    @abstractmethod
    def set_primary(self, key: int) -> AccountRecord:
        """Make the account the only primary account."""

    @abstractmethod
    def soft_delete(self, key: int) -> AccountRecord:
        """Mark the account inactive without touching its balance."""

    @abstractmethod
    def get_record(self, kind: str, key: int) -> LedgerRecord:
        """Return one expense or income record."""

    @abstractmethod
    def get_record_state(self, kind: str, key: int) -> RecordState:
        """Return the reconciliation-relevant state of one record."""

    @abstractmethod
    def list_records(self, kind: str, project_code: str | None = None) -> list[LedgerRecord]:
        """Return records of one kind, optionally for one project."""

    @abstractmethod
    def insert_record(self, kind: str, fields: dict[str, Any]) -> LedgerRecord:
        """Insert a record row built from column values."""

    @abstractmethod
    def update_record(self, kind: str, key: int, fields: dict[str, Any]) -> LedgerRecord:
        """Update the given columns of a record."""

    @abstractmethod
    def delete_record(self, kind: str, key: int) -> None:
        """Delete a record and its attachments."""
