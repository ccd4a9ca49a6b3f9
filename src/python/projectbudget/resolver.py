"""Transition resolution: derive balance deltas from record status changes."""

from __future__ import annotations

from decimal import Decimal
import logging

from projectbudget.exceptions import InvalidAmountError, NotFoundError, ReconciliationError
from projectbudget.models import ZERO, DeltaEntry, DeltaPlan, RecordChanges, RecordState
from projectbudget.persistence import PersistenceBackend
from projectbudget.statuses import StatusVocabulary

logger = logging.getLogger(__name__)

# Income raises the linked balance, expense lowers it.
BALANCE_DIRECTION = {
    "income": Decimal("1"),
    "expense": Decimal("-1"),
}

APPLY = "apply"
REVERSE = "reverse"


class TransitionResolver:
    """Compute the balance adjustments a record transition requires.

    The resolver never writes. It reads the account store only to resolve the
    target account of a new application (explicit account, else the primary).
    """

    def __init__(self, vocabularies: dict[str, StatusVocabulary]) -> None:
        self.vocabularies = vocabularies

    def vocabulary(self, kind: str) -> StatusVocabulary:
        try:
            return self.vocabularies[kind]
        except KeyError:
            raise ValueError(f"Unsupported record kind: {kind}") from None

    def is_affecting(self, kind: str, status: str | None) -> bool:
        return self.vocabulary(kind).is_affecting(status)

    def resolve(
        self,
        kind: str,
        previous: RecordState | None,
        changes: RecordChanges,
        accounts: PersistenceBackend,
    ) -> DeltaPlan:
        """Resolve a create (``previous`` is None) or an update into a DeltaPlan.

        Raises:
            UnknownStatusError: The requested status is not in the vocabulary
            InvalidAmountError: Non-positive amount on create, or on an edit that
                leaves the record balance-affecting
            ReconciliationError: An application has no usable target account
        """
        vocabulary = self.vocabulary(kind)
        direction = BALANCE_DIRECTION[kind]

        if previous is None:
            if changes.amount is None or changes.amount <= ZERO:
                raise InvalidAmountError("Amount must be greater than zero")
            status = changes.status if changes.status is not None else vocabulary.initial
        else:
            status = changes.status if changes.status is not None else previous.status
        vocabulary.validate(status)

        amount = changes.amount if changes.amount is not None else previous.amount
        account_key = (
            changes.account_key
            if changes.account_key is not None
            else (previous.account_key if previous is not None else None)
        )
        was_affecting = previous is not None and vocabulary.is_affecting(previous.status)
        will_be_affecting = vocabulary.is_affecting(status)

        if will_be_affecting and amount <= ZERO:
            raise InvalidAmountError(
                f"A {status!r} {kind} must have an amount greater than zero"
            )

        entries: list[DeltaEntry] = []
        if not was_affecting and will_be_affecting:
            account_key = self._resolve_target(account_key, accounts)
            entries.append(DeltaEntry(account_key, direction * amount, APPLY))
        elif was_affecting and not will_be_affecting:
            if previous.account_key is not None:
                entries.append(
                    DeltaEntry(previous.account_key, -direction * previous.amount, REVERSE)
                )
        elif was_affecting and will_be_affecting:
            if amount != previous.amount or account_key != previous.account_key:
                target = self._resolve_target(account_key, accounts)
                if previous.account_key is not None:
                    entries.append(
                        DeltaEntry(previous.account_key, -direction * previous.amount, REVERSE)
                    )
                entries.append(DeltaEntry(target, direction * amount, APPLY))
                account_key = target

        plan = DeltaPlan(
            previous=previous,
            new_state=RecordState(
                kind=kind,
                status=status,
                amount=amount,
                account_key=account_key,
            ),
            entries=tuple(entries),
        )
        logger.debug(
            f"Resolved {kind} {previous.status if previous else None!r} -> {status!r}: "
            f"{[(entry.account_key, str(entry.amount)) for entry in plan.entries]}"
        )
        return plan

    def resolve_delete(self, kind: str, previous: RecordState) -> DeltaPlan:
        """Resolve removal of a record: reverse its delta if one is applied."""
        vocabulary = self.vocabulary(kind)
        entries: tuple[DeltaEntry, ...] = ()
        if vocabulary.is_affecting(previous.status) and previous.account_key is not None:
            entries = (
                DeltaEntry(
                    previous.account_key,
                    -BALANCE_DIRECTION[kind] * previous.amount,
                    REVERSE,
                ),
            )
        return DeltaPlan(previous=previous, new_state=None, entries=entries)

    @staticmethod
    def _resolve_target(account_key: int | None, accounts: PersistenceBackend) -> int:
        """Explicit account if given, else the unique primary account."""
        if account_key is not None:
            try:
                account = accounts.get_account(account_key)
            except NotFoundError as exc:
                raise ReconciliationError(f"Account {account_key} does not exist") from exc
            if not account.is_active:
                raise ReconciliationError(f"Account {account_key} is inactive")
            return account.key
        primary = accounts.get_primary()
        if primary is None:
            raise ReconciliationError(
                "No account linked and no primary account configured"
            )
        return primary.key
