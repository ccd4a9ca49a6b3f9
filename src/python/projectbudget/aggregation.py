"""Read-only rollups computed from record rows."""

from __future__ import annotations

from decimal import Decimal

from projectbudget.models import ZERO, LedgerSummary, ProjectTotals, RecordState
from projectbudget.repository import Repository
from projectbudget.statuses import StatusVocabulary


class AggregationReader:
    """Sum records directly on every read.

    Totals never come from account balances or applied deltas, so they agree
    with record data even while a reconciliation is in flight. Reads take no
    write lock.
    """

    def __init__(
        self,
        repository: Repository,
        vocabularies: dict[str, StatusVocabulary],
    ) -> None:
        self.repository = repository
        self.vocabularies = vocabularies

    def project_totals(self, project_code: str) -> ProjectTotals:
        """Income and expense totals for one project.

        Rejected expenses are excluded from the expense total.
        """
        expenses = self.repository.list_record_states("expense", project_code)
        incomes = self.repository.list_record_states("income", project_code)
        return ProjectTotals(
            project_code=project_code,
            income=self._sum(incomes),
            expense=self._sum(self._not_rejected(expenses)),
            pending_expense_count=self._count_pending(expenses),
            pending_income_count=self._count_pending(incomes),
        )

    def summary(self) -> LedgerSummary:
        """Totals across every project plus the sum of active account balances."""
        expenses = self.repository.list_record_states("expense")
        incomes = self.repository.list_record_states("income")
        balances = [account.balance for account in self.repository.list_accounts()]
        return LedgerSummary(
            total_income=self._sum(incomes),
            total_expense=self._sum(self._not_rejected(expenses)),
            expense_count=len(expenses),
            pending_expense_count=self._count_pending(expenses),
            pending_income_count=self._count_pending(incomes),
            total_balance=sum(balances, ZERO),
        )

    def _not_rejected(self, states: list[RecordState]) -> list[RecordState]:
        return [
            state
            for state in states
            if not self.vocabularies[state.kind].is_rejected(state.status)
        ]

    def _count_pending(self, states: list[RecordState]) -> int:
        return sum(
            1 for state in states if self.vocabularies[state.kind].is_pending(state.status)
        )

    @staticmethod
    def _sum(states: list[RecordState]) -> Decimal:
        return sum((state.amount for state in states), ZERO)
