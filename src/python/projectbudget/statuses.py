"""Closed status vocabularies for expense and income records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from projectbudget.exceptions import UnknownStatusError

DEFAULT_EXPENSE_STATUSES = (
    "draft",
    "submitted",
    "reviewed",
    "approved",
    "paid",
    "closed",
    "rejected",
)
DEFAULT_EXPENSE_AFFECTING = ("paid", "closed")
DEFAULT_EXPENSE_REJECTED = "rejected"

DEFAULT_INCOME_STATUSES = ("pending", "invoiced", "received")
DEFAULT_INCOME_AFFECTING = ("received",)


@dataclass(frozen=True)
class StatusVocabulary:
    """Ordered workflow labels for one record kind.

    Attributes:
        kind: Record kind the vocabulary applies to ("expense" or "income")
        labels: Every valid status, in workflow order
        affecting: Labels whose amount is reflected in the linked account balance
        initial: Status assigned when a record is created without one
        rejected: Label that carries a rejection reason, if the kind has one
    """
    kind: str
    labels: tuple[str, ...]
    affecting: frozenset[str]
    initial: str
    rejected: str | None = None

    def __post_init__(self) -> None:
        if not self.labels:
            raise ValueError(f"{self.kind} vocabulary must define at least one status")
        if len(set(self.labels)) != len(self.labels):
            raise ValueError(f"{self.kind} vocabulary has duplicate statuses")
        unknown = set(self.affecting) - set(self.labels)
        if unknown:
            raise ValueError(
                f"{self.kind} affecting statuses not in vocabulary: {sorted(unknown)}"
            )
        if self.initial not in self.labels:
            raise ValueError(f"{self.kind} initial status not in vocabulary")
        if self.initial in self.affecting:
            raise ValueError(f"{self.kind} initial status must not affect balances")
        if self.rejected is not None:
            if self.rejected not in self.labels:
                raise ValueError(f"{self.kind} rejected status not in vocabulary")
            if self.rejected in self.affecting:
                raise ValueError(f"{self.kind} rejected status must not affect balances")

    def validate(self, status: str) -> str:
        """Return the status if known, else raise UnknownStatusError."""
        if status not in self.labels:
            raise UnknownStatusError(self.kind, status)
        return status

    def is_affecting(self, status: str | None) -> bool:
        """Whether a record in this status is reflected in its account balance."""
        if status is None:
            return False
        return self.validate(status) in self.affecting

    def is_rejected(self, status: str) -> bool:
        return self.rejected is not None and status == self.rejected

    def is_pending(self, status: str) -> bool:
        """Neither applied to a balance nor rejected."""
        return status not in self.affecting and not self.is_rejected(status)


def _build_vocabulary(
    kind: str,
    section: dict[str, Any],
    default_labels: tuple[str, ...],
    default_affecting: tuple[str, ...],
    default_rejected: str | None,
) -> StatusVocabulary:
    labels = tuple(section.get("labels") or default_labels)
    affecting = frozenset(section.get("affecting") or default_affecting)
    initial = section.get("initial") or labels[0]
    rejected = section.get(
        "rejected", default_rejected if default_rejected in labels else None
    )
    return StatusVocabulary(
        kind=kind,
        labels=labels,
        affecting=affecting,
        initial=initial,
        rejected=rejected,
    )


def load_vocabularies(config: dict[str, Any] | None = None) -> dict[str, StatusVocabulary]:
    """Build the expense and income vocabularies from a config mapping.

    The config may carry a ``statuses`` section with ``expense`` and ``income``
    entries overriding ``labels``, ``affecting``, ``initial`` and ``rejected``.
    """
    statuses = (config or {}).get("statuses") or {}
    return {
        "expense": _build_vocabulary(
            "expense",
            statuses.get("expense") or {},
            DEFAULT_EXPENSE_STATUSES,
            DEFAULT_EXPENSE_AFFECTING,
            DEFAULT_EXPENSE_REJECTED,
        ),
        "income": _build_vocabulary(
            "income",
            statuses.get("income") or {},
            DEFAULT_INCOME_STATUSES,
            DEFAULT_INCOME_AFFECTING,
            None,
        ),
    }
