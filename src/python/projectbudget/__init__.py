"""Public ProjectBudget package exports."""

from __future__ import annotations

from projectbudget.__version__ import __version__
from projectbudget.client import ProjectBudgetClient
from projectbudget.exceptions import (
    ConstraintError,
    InvalidAmountError,
    NotFoundError,
    PersistenceError,
    ProjectBudgetError,
    ReconciliationError,
    StalePlanError,
    UnknownStatusError,
)
from projectbudget.models import (
    AccountDTO,
    AccountRecord,
    AttachmentDTO,
    AttachmentRecord,
    ExpenseDTO,
    ExpenseRecord,
    IncomeDTO,
    IncomeRecord,
    LedgerSummary,
    ProjectTotals,
)
from projectbudget.persistence import PersistenceBackend
from projectbudget.repository import Repository

__all__ = [
    "__version__",
    "ProjectBudgetClient",
    "ProjectBudgetError",
    "ConstraintError",
    "InvalidAmountError",
    "NotFoundError",
    "PersistenceError",
    "ReconciliationError",
    "StalePlanError",
    "UnknownStatusError",
    "AccountDTO",
    "AccountRecord",
    "AttachmentDTO",
    "AttachmentRecord",
    "ExpenseDTO",
    "ExpenseRecord",
    "IncomeDTO",
    "IncomeRecord",
    "LedgerSummary",
    "ProjectTotals",
    "PersistenceBackend",
    "Repository",
]
