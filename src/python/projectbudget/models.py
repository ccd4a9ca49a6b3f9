"""Domain models and data transfer objects."""

from __future__ import annotations

from dataclasses import dataclass, field
import datetime as dt
from decimal import Decimal, InvalidOperation
from typing import Union

from projectbudget.exceptions import InvalidAmountError
from projectbudget.schema import ATTACHMENT_SOURCES, DEFAULT_ACCOUNT_TYPE, DEFAULT_ATTACHMENT_SOURCE

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def _ensure_date(value: dt.date | dt.datetime | str | None) -> dt.date | None:
    """Normalize a date, datetime or ISO string to a date."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        try:
            return dt.date.fromisoformat(value)
        except ValueError as exc:
            raise ValueError(f"Invalid ISO date: {value!r}") from exc
    raise ValueError("Date must be a datetime.date")


def _ensure_non_empty(value: str, field_name: str) -> str:
    """Validate required text fields."""
    if not value or not str(value).strip():
        raise ValueError(f"{field_name} is required")
    return str(value).strip()


def to_decimal(value: Decimal | str | int | float, field_name: str) -> Decimal:
    """Parse a monetary value into a two-place Decimal.

    Values are never rounded: sub-cent input is rejected, as is anything too
    large to hold at cent precision.
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidAmountError(f"{field_name} must be a decimal") from exc
    if not amount.is_finite():
        raise InvalidAmountError(f"{field_name} must be a finite decimal")
    try:
        quantized = amount.quantize(CENTS)
    except InvalidOperation as exc:
        raise InvalidAmountError(f"{field_name} is too large") from exc
    if quantized != amount:
        raise InvalidAmountError(f"{field_name} must not have more than two decimal places")
    return quantized


def _ensure_positive(value: Decimal | str | int | float, field_name: str) -> Decimal:
    """Parse and validate positive decimal values."""
    amount = to_decimal(value, field_name)
    if amount <= ZERO:
        raise InvalidAmountError(f"{field_name} must be greater than zero")
    return amount


def effective_expense_amount(amount: Decimal, net_amount: Decimal | None) -> Decimal:
    """Net amount when present and non-zero, otherwise the base amount."""
    if net_amount is not None and net_amount != ZERO:
        return net_amount
    return amount


@dataclass(frozen=True)
class AccountDTO:
    """Validated account input for persistence."""
    name: str
    account_type: str = DEFAULT_ACCOUNT_TYPE
    bank_name: str | None = None
    account_number: str | None = None
    balance: Decimal = ZERO
    is_primary: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", _ensure_non_empty(self.name, "Name"))
        object.__setattr__(
            self, "account_type", _ensure_non_empty(self.account_type, "Account type")
        )
        object.__setattr__(self, "balance", to_decimal(self.balance, "Balance"))


@dataclass(frozen=True)
class AccountRecord:
    """Persisted financial account.

    Attributes:
        key: Internal database key for the account
        name: Display name of the account
        account_type: Type of account (Bank, Cash, Credit, etc.)
        bank_name: Bank holding the account, if any
        account_number: Bank account number, if any
        balance: Current balance as an exact decimal
        is_primary: Whether this is the default account for unlinked records
        is_active: False once the account has been soft deleted
    """
    key: int
    name: str
    account_type: str
    bank_name: str | None
    account_number: str | None
    balance: Decimal
    is_primary: bool
    is_active: bool
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class AttachmentRecord:
    """File metadata linked to an expense or income. No reconciliation role."""
    key: int
    record_kind: str
    record_key: int
    file_name: str
    file_path: str
    source: str
    created_at: str


@dataclass(frozen=True)
class AttachmentDTO:
    """Validated attachment metadata input."""
    file_name: str
    file_path: str
    source: str = DEFAULT_ATTACHMENT_SOURCE

    def __post_init__(self) -> None:
        object.__setattr__(self, "file_name", _ensure_non_empty(self.file_name, "File name"))
        object.__setattr__(self, "file_path", _ensure_non_empty(self.file_path, "File path"))
        if self.source not in ATTACHMENT_SOURCES:
            raise ValueError(f"Attachment source must be one of {sorted(ATTACHMENT_SOURCES)}")


@dataclass(frozen=True)
class ExpenseDTO:
    """Validated expense input for persistence.

    ``status`` is checked against the configured vocabulary by the client, since
    the label set is deploy-time configuration.
    """
    project_code: str
    account_code: str
    amount: Decimal
    net_amount: Decimal | None = None
    description: str | None = None
    status: str | None = None
    account_key: int | None = None
    issue_date: dt.date | None = None
    due_date: dt.date | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "project_code", _ensure_non_empty(self.project_code, "Project code")
        )
        object.__setattr__(
            self, "account_code", _ensure_non_empty(self.account_code, "Account code")
        )
        object.__setattr__(self, "amount", _ensure_positive(self.amount, "Amount"))
        if self.net_amount is not None:
            net_amount = to_decimal(self.net_amount, "Net amount")
            if net_amount < ZERO:
                raise InvalidAmountError("Net amount must not be negative")
            object.__setattr__(self, "net_amount", net_amount)
        object.__setattr__(self, "issue_date", _ensure_date(self.issue_date))
        object.__setattr__(self, "due_date", _ensure_date(self.due_date))

    @property
    def effective_amount(self) -> Decimal:
        return effective_expense_amount(self.amount, self.net_amount)


@dataclass(frozen=True)
class ExpenseRecord:
    """Persisted expense record from storage."""
    key: int
    project_code: str
    account_code: str
    description: str | None
    amount: Decimal
    net_amount: Decimal | None
    status: str
    account_key: int | None
    approved_by: str | None
    approved_at: str | None
    rejected_by: str | None
    rejected_at: str | None
    reject_reason: str | None
    payment_date: dt.date | None
    issue_date: dt.date | None
    due_date: dt.date | None
    created_at: str
    updated_at: str
    attachments: tuple[AttachmentRecord, ...] = ()

    kind = "expense"

    @property
    def effective_amount(self) -> Decimal:
        return effective_expense_amount(self.amount, self.net_amount)

    @property
    def state(self) -> RecordState:
        return RecordState(
            kind=self.kind,
            status=self.status,
            amount=self.effective_amount,
            account_key=self.account_key,
        )


@dataclass(frozen=True)
class IncomeDTO:
    """Validated income input for persistence."""
    project_code: str
    amount: Decimal
    description: str | None = None
    invoice_no: str | None = None
    due_date: dt.date | None = None
    status: str | None = None
    account_key: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "project_code", _ensure_non_empty(self.project_code, "Project code")
        )
        object.__setattr__(self, "amount", _ensure_positive(self.amount, "Amount"))
        object.__setattr__(self, "due_date", _ensure_date(self.due_date))

    @property
    def effective_amount(self) -> Decimal:
        return self.amount


@dataclass(frozen=True)
class IncomeRecord:
    """Persisted income record from storage."""
    key: int
    project_code: str
    description: str | None
    invoice_no: str | None
    amount: Decimal
    due_date: dt.date | None
    status: str
    account_key: int | None
    created_at: str
    updated_at: str
    attachments: tuple[AttachmentRecord, ...] = ()

    kind = "income"

    @property
    def effective_amount(self) -> Decimal:
        return self.amount

    @property
    def state(self) -> RecordState:
        return RecordState(
            kind=self.kind,
            status=self.status,
            amount=self.amount,
            account_key=self.account_key,
        )


LedgerRecord = Union[ExpenseRecord, IncomeRecord]


@dataclass(frozen=True)
class RecordState:
    """The part of a record that determines its balance effect."""
    kind: str
    status: str
    amount: Decimal
    account_key: int | None


@dataclass(frozen=True)
class RecordChanges:
    """Caller-supplied partial update; ``None`` means the field is absent."""
    status: str | None = None
    amount: Decimal | None = None
    account_key: int | None = None


@dataclass(frozen=True)
class DeltaEntry:
    """Signed adjustment to one account balance."""
    account_key: int
    amount: Decimal
    reason: str


@dataclass(frozen=True)
class DeltaPlan:
    """Balance adjustments derived from one record transition.

    Attributes:
        previous: Persisted state the plan was resolved against, None on create
        new_state: State to persist with any resolved account filled in, None on delete
        entries: Ordered adjustments; at most one reversal and one application
    """
    previous: RecordState | None
    new_state: RecordState | None
    entries: tuple[DeltaEntry, ...] = field(default_factory=tuple)

    @property
    def is_noop(self) -> bool:
        return not self.entries


@dataclass(frozen=True)
class AccountTransactionRecord:
    """A record currently linked to an account, for account history views."""
    kind: str
    key: int
    project_code: str
    description: str | None
    amount: Decimal
    status: str
    created_at: str


@dataclass(frozen=True)
class ProjectTotals:
    """Live rollup of one project's records."""
    project_code: str
    income: Decimal
    expense: Decimal
    pending_expense_count: int
    pending_income_count: int

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


@dataclass(frozen=True)
class LedgerSummary:
    """Global rollup across all projects and active accounts."""
    total_income: Decimal
    total_expense: Decimal
    expense_count: int
    pending_expense_count: int
    pending_income_count: int
    total_balance: Decimal
