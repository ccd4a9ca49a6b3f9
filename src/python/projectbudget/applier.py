"""Atomic application of a record mutation and its balance deltas."""

from __future__ import annotations

from contextlib import contextmanager
import logging
import sqlite3
from typing import Callable, Iterator, TypeVar

from projectbudget.exceptions import ConstraintError, PersistenceError, StalePlanError
from projectbudget.models import DeltaPlan, LedgerRecord
from projectbudget.persistence import PersistenceBackend
from projectbudget.resolver import APPLY

T = TypeVar("T")

logger = logging.getLogger(__name__)


@contextmanager
def storage_errors() -> Iterator[None]:
    """Translate sqlite3 errors into the ledger error taxonomy."""
    try:
        yield
    except sqlite3.IntegrityError as exc:
        raise ConstraintError(str(exc), {"sqlite_error": type(exc).__name__}) from exc
    except sqlite3.Error as exc:
        raise PersistenceError(str(exc)) from exc


def run_transaction(repository: PersistenceBackend, action: Callable[[], T]) -> T:
    """Run repository work inside one transaction.

    Any failure rolls the whole unit back before the error propagates.
    """
    with storage_errors():
        repository.begin_transaction()
        try:
            result = action()
            repository.commit()
            return result
        except Exception:
            logger.warning("Rolling back transaction after failure")
            repository.rollback()
            raise


class AtomicApplier:
    """Persist a record mutation and its DeltaPlan as a single transaction."""

    def __init__(self, repository: PersistenceBackend) -> None:
        self.repository = repository

    def apply(
        self,
        plan: DeltaPlan,
        mutation: Callable[[DeltaPlan], LedgerRecord | None],
        record_key: int | None = None,
    ) -> LedgerRecord | None:
        """Apply the plan's deltas and the record mutation, or neither.

        Args:
            plan: Resolved adjustments plus the state the record must end in
            mutation: Writes the record change; receives the plan
            record_key: Key of an existing record, checked against
                ``plan.previous`` under the write lock

        Raises:
            StalePlanError: The record or a target account changed since resolution
            ConstraintError: Storage rejected a write
            PersistenceError: Any other storage failure
        """

        def action() -> LedgerRecord | None:
            if plan.previous is not None and record_key is not None:
                current = self.repository.get_record_state(plan.previous.kind, record_key)
                if current != plan.previous:
                    raise StalePlanError(
                        f"{plan.previous.kind.capitalize()} {record_key} changed during reconciliation"
                    )
            for entry in plan.entries:
                if entry.reason == APPLY and not self.repository.get_account(entry.account_key).is_active:
                    raise StalePlanError(f"Account {entry.account_key} deactivated during reconciliation")
            record = mutation(plan)
            for entry in plan.entries:
                self.repository.adjust_balance(entry.account_key, entry.amount)
            return record

        record = run_transaction(self.repository, action)
        if plan.entries:
            logger.debug(
                f"Applied {len(plan.entries)} balance adjustment(s): "
                f"{[(entry.account_key, str(entry.amount), entry.reason) for entry in plan.entries]}"
            )
        return record
