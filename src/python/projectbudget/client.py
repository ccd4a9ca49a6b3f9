"""Client orchestration layer for ProjectBudget."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable
import datetime as dt
from decimal import Decimal
import logging
import os

from projectbudget.aggregation import AggregationReader
from projectbudget.applier import AtomicApplier, run_transaction, storage_errors
from projectbudget.config import DEFAULT_MAX_RESOLVE_ATTEMPTS, load_config
from projectbudget.exceptions import InvalidAmountError, StalePlanError
from projectbudget.models import (
    AccountDTO,
    AccountRecord,
    AccountTransactionRecord,
    AttachmentDTO,
    AttachmentRecord,
    DeltaPlan,
    ExpenseDTO,
    ExpenseRecord,
    IncomeDTO,
    IncomeRecord,
    LedgerRecord,
    LedgerSummary,
    ProjectTotals,
    RecordChanges,
    effective_expense_amount,
    to_decimal,
    ZERO,
)
from projectbudget.repository import DEFAULT_BUSY_TIMEOUT_SECONDS, Repository
from projectbudget.resolver import TransitionResolver
from projectbudget.schema import DEFAULT_TRANSACTION_LIMIT, RECORD_KINDS, TIMESTAMP_FORMAT
from projectbudget.statuses import load_vocabularies

# Configure logging on the package logger so resolver and applier records share it
logger = logging.getLogger(__name__)
package_logger = logging.getLogger("projectbudget")
log_level = os.environ.get('LOGGING_LEVEL', 'INFO').upper()
package_logger.setLevel(getattr(logging, log_level, logging.INFO))
if not package_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter('%(levelname)s - %(name)s - %(message)s'))
    package_logger.addHandler(handler)

# Editable fields per kind, mapped to their columns.
EDITABLE_FIELDS = {
    "expense": {
        "project_code": "projectCode",
        "account_code": "accountCode",
        "description": "description",
        "amount": "amount",
        "net_amount": "netAmount",
        "status": "status",
        "account_key": "accountKey",
        "issue_date": "issueDate",
        "due_date": "dueDate",
        "payment_date": "paymentDate",
    },
    "income": {
        "project_code": "projectCode",
        "description": "description",
        "invoice_no": "invoiceNo",
        "amount": "amount",
        "status": "status",
        "account_key": "accountKey",
        "due_date": "dueDate",
    },
}
DATE_FIELDS = {"issue_date", "due_date", "payment_date"}


def _timestamp() -> str:
    return dt.datetime.now().replace(microsecond=0).strftime(TIMESTAMP_FORMAT)


def _parse_date(value: dt.date | str | None, label: str) -> dt.date | None:
    if value is None or isinstance(value, dt.date):
        return value
    try:
        return dt.date.fromisoformat(str(value))
    except ValueError as exc:
        raise ValueError(f"{label} must be an ISO date") from exc


class ProjectBudgetClient:
    """Coordinate record mutations with account balance reconciliation."""

    def __init__(
        self,
        db_path: str | Path | None = None,
        repository: Repository | None = None,
        config_path: str | Path | None = None,
        busy_timeout: float | None = None,
        max_resolve_attempts: int | None = None,
    ) -> None:
        """Initialize the client with a repository backend.

        Args:
            db_path: Path to the SQLite ledger database
            repository: Optional custom repository
            config_path: Optional JSON config file overriding the default location
            busy_timeout: Seconds to wait for the database write lock
            max_resolve_attempts: Fresh resolve+apply cycles tried when a plan goes stale
        """
        self.config = load_config(config_path)
        self.db_path = self._resolve_db_path(db_path, repository)
        if busy_timeout is None:
            busy_timeout = float(
                self.config.get("busy_timeout_seconds", DEFAULT_BUSY_TIMEOUT_SECONDS)
            )
        self.repository = repository or Repository(self.db_path, busy_timeout=busy_timeout)
        self.max_resolve_attempts = max_resolve_attempts or int(
            self.config.get("max_resolve_attempts", DEFAULT_MAX_RESOLVE_ATTEMPTS)
        )
        self.vocabularies = load_vocabularies(self.config)
        self.resolver = TransitionResolver(self.vocabularies)
        self.applier = AtomicApplier(self.repository)
        self.aggregation = AggregationReader(self.repository, self.vocabularies)

    def __enter__(self) -> "ProjectBudgetClient":
        """Open the repository connection."""
        self.repository.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        """Close the repository connection."""
        self.close()

    def close(self) -> None:
        """Close the repository connection."""
        self.repository.close()

    def initialize(self) -> None:
        """Create the ledger tables when absent."""
        with storage_errors():
            self.repository.initialize_schema()

    def _resolve_db_path(
        self,
        db_path: str | Path | None,
        repository: Repository | None,
    ) -> Path:
        """Resolve the database path from arguments or config."""
        if repository is not None and db_path is None:
            return Path(repository.db_path)
        if db_path is not None:
            return Path(db_path)
        resolved = self.config.get("db_path")
        if not resolved:
            raise ValueError("db_path is required when the config file has none")
        return Path(resolved)

    def _run_transaction(self, action: Callable[[], Any]) -> Any:
        """Run administrative repository work inside a transaction."""
        return run_transaction(self.repository, action)

    # Accounts

    def add_account(self, account: AccountDTO) -> AccountRecord:
        """Add an account. A primary account replaces any existing primary."""
        record = self._run_transaction(lambda: self.repository.insert_account(account))
        logger.info(f"Added account {record.key} ({record.name})")
        return record

    def get_account(self, key: int) -> AccountRecord:
        with storage_errors():
            return self.repository.get_account(key)

    def list_accounts(self, include_inactive: bool = False) -> list[AccountRecord]:
        with storage_errors():
            return self.repository.list_accounts(include_inactive=include_inactive)

    def update_account(
        self,
        key: int,
        name: str | None = None,
        account_type: str | None = None,
        bank_name: str | None = None,
        account_number: str | None = None,
        is_primary: bool | None = None,
    ) -> AccountRecord:
        """Edit account details. Balance is never edited here."""
        fields: dict[str, object] = {}
        if name is not None:
            if not name.strip():
                raise ValueError("Name is required")
            fields["name"] = name.strip()
        if account_type is not None:
            fields["accountType"] = account_type
        if bank_name is not None:
            fields["bankName"] = bank_name
        if account_number is not None:
            fields["accountNumber"] = account_number

        def action() -> AccountRecord:
            record = self.repository.update_account(key, fields)
            if is_primary is True:
                record = self.repository.set_primary(key)
            elif is_primary is False and record.is_primary:
                record = self.repository.clear_primary(key)
            return record

        return self._run_transaction(action)

    def set_primary_account(self, key: int) -> AccountRecord:
        """Designate the default account; every other account loses the flag."""
        record = self._run_transaction(lambda: self.repository.set_primary(key))
        logger.info(f"Account {key} is now primary")
        return record

    def deactivate_account(self, key: int) -> AccountRecord:
        """Soft delete an account; its balance and linked records are kept."""
        record = self._run_transaction(lambda: self.repository.soft_delete(key))
        logger.info(f"Deactivated account {key}")
        return record

    def get_account_balance(self, key: int) -> Decimal:
        return self.get_account(key).balance

    def get_account_transactions(
        self,
        key: int,
        limit: int = DEFAULT_TRANSACTION_LIMIT,
    ) -> list[AccountTransactionRecord]:
        with storage_errors():
            return self.repository.get_account_transactions(key, limit=limit)

    # Records

    def create_record(
        self,
        kind: str,
        payload: ExpenseDTO | IncomeDTO | dict[str, Any],
    ) -> LedgerRecord:
        """Create an expense or income and apply its balance effect, if any.

        Raises:
            InvalidAmountError: Amount missing, zero or negative
            UnknownStatusError: Status outside the kind's vocabulary
            ReconciliationError: Created affecting with no usable account
            PersistenceError: Storage failure; nothing was written
        """
        self._check_kind(kind)
        dto = self._build_dto(kind, payload) if isinstance(payload, dict) else payload
        changes = RecordChanges(
            status=dto.status,
            amount=dto.effective_amount,
            account_key=dto.account_key,
        )

        def attempt() -> LedgerRecord:
            with storage_errors():
                plan = self.resolver.resolve(kind, None, changes, self.repository)

            def mutation(plan: DeltaPlan) -> LedgerRecord:
                return self.repository.insert_record(kind, self._insert_fields(dto, plan))

            return self.applier.apply(plan, mutation)

        record = self._with_fresh_resolution(attempt)
        logger.info(f"Created {kind} {record.key} with status {record.status!r}")
        return record

    def add_expense(self, expense: ExpenseDTO) -> ExpenseRecord:
        """Add an expense and return the created record."""
        return self.create_record("expense", expense)

    def add_income(self, income: IncomeDTO) -> IncomeRecord:
        """Add an income record and return the created record."""
        return self.create_record("income", income)

    def get_record(self, kind: str, key: int) -> LedgerRecord:
        self._check_kind(kind)
        with storage_errors():
            return self.repository.get_record(kind, key)

    def list_records(self, kind: str, project_code: str | None = None) -> list[LedgerRecord]:
        """List records of one kind, newest first."""
        self._check_kind(kind)
        with storage_errors():
            return self.repository.list_records(kind, project_code=project_code)

    def update_record_status(
        self,
        kind: str,
        key: int,
        status: str,
        approver: str | None = None,
        reject_reason: str | None = None,
        payment_date: dt.date | str | None = None,
    ) -> LedgerRecord:
        """Advance a record through its workflow.

        Re-sending the current status changes no balance.

        Raises:
            NotFoundError: No record with this key
            UnknownStatusError: Status outside the kind's vocabulary
            ReconciliationError: Becoming affecting with no usable account
            PersistenceError: Storage failure; nothing was written
        """
        self._check_kind(kind)
        vocabulary = self.resolver.vocabulary(kind)
        vocabulary.validate(status)
        if reject_reason is not None and not vocabulary.is_rejected(status):
            raise ValueError("reject_reason is only accepted with the rejected status")
        payment_date = _parse_date(payment_date, "payment_date")
        if kind == "income" and payment_date is not None:
            raise ValueError("payment_date applies to expenses only")

        def prepare(record: LedgerRecord) -> tuple[RecordChanges, dict[str, object]]:
            fields = self._workflow_fields(record, status, approver, reject_reason)
            if payment_date is not None:
                fields["paymentDate"] = payment_date
            return RecordChanges(status=status), fields

        return self._reconcile(kind, key, prepare)

    def update_record_full(self, kind: str, key: int, **changes: Any) -> LedgerRecord:
        """Edit any editable fields of a record, reconciling balance effects.

        A ``None`` value leaves the field unchanged, so a stored ``net_amount``
        cannot be cleared back to NULL. Setting it to ``0`` makes the expense
        reconcile on ``amount`` again.

        Raises:
            NotFoundError: No record with this key
            InvalidAmountError: Non-positive amount on a record left affecting,
                negative net amount, or an amount with sub-cent digits
            ReconciliationError: No usable account for the resulting state
            ConstraintError: Storage rejected the write (e.g. unknown account)
        """
        self._check_kind(kind)
        editable = EDITABLE_FIELDS[kind]
        unknown = set(changes) - set(editable)
        if unknown:
            raise ValueError(f"Fields not editable on {kind}: {sorted(unknown)}")
        values = {name: value for name, value in changes.items() if value is not None}
        for name in ("amount", "net_amount"):
            if name in values:
                values[name] = to_decimal(values[name], name)
        if values.get("net_amount") is not None and values["net_amount"] < ZERO:
            raise InvalidAmountError("net_amount must not be negative")
        for name in DATE_FIELDS & set(values):
            values[name] = _parse_date(values[name], name)
        if "status" in values:
            self.resolver.vocabulary(kind).validate(values["status"])

        def prepare(record: LedgerRecord) -> tuple[RecordChanges, dict[str, object]]:
            amount = None
            if "amount" in values or "net_amount" in values:
                if kind == "expense":
                    amount = effective_expense_amount(
                        values.get("amount", record.amount),
                        values.get("net_amount", record.net_amount),
                    )
                else:
                    amount = values["amount"]
            fields = {
                editable[name]: value
                for name, value in values.items()
                if name not in {"status", "account_key"}
            }
            if "status" in values:
                fields.update(self._workflow_fields(record, values["status"], None, None))
            return (
                RecordChanges(
                    status=values.get("status"),
                    amount=amount,
                    account_key=values.get("account_key"),
                ),
                fields,
            )

        return self._reconcile(kind, key, prepare)

    def delete_record(self, kind: str, key: int) -> bool:
        """Delete a record, reversing its applied delta first if it has one."""
        self._check_kind(kind)

        def attempt() -> bool:
            with storage_errors():
                record = self.repository.get_record(kind, key)
            plan = self.resolver.resolve_delete(kind, record.state)
            self.applier.apply(
                plan,
                lambda plan: self.repository.delete_record(kind, key),
                record_key=key,
            )
            return True

        deleted = self._with_fresh_resolution(attempt)
        logger.info(f"Deleted {kind} {key}")
        return deleted

    def add_attachment(self, kind: str, key: int, attachment: AttachmentDTO) -> AttachmentRecord:
        """Link file metadata to a record. Balances are unaffected."""
        self._check_kind(kind)
        return self._run_transaction(
            lambda: self.repository.insert_attachment(kind, key, attachment)
        )

    def list_attachments(self, kind: str, key: int) -> list[AttachmentRecord]:
        self._check_kind(kind)
        with storage_errors():
            return self.repository.list_attachments(kind, key)

    def delete_attachment(self, attachment_key: int) -> AttachmentRecord:
        return self._run_transaction(lambda: self.repository.delete_attachment(attachment_key))

    # Aggregation

    def project_totals(self, project_code: str) -> ProjectTotals:
        with storage_errors():
            return self.aggregation.project_totals(project_code)

    def summary(self) -> LedgerSummary:
        with storage_errors():
            return self.aggregation.summary()

    # Internals

    def _reconcile(
        self,
        kind: str,
        key: int,
        prepare: Callable[[LedgerRecord], tuple[RecordChanges, dict[str, object]]],
    ) -> LedgerRecord:
        """Read, resolve and apply an update to an existing record."""

        def attempt() -> LedgerRecord:
            with storage_errors():
                record = self.repository.get_record(kind, key)
                changes, fields = prepare(record)
                plan = self.resolver.resolve(kind, record.state, changes, self.repository)

            def mutation(plan: DeltaPlan) -> LedgerRecord:
                fields["status"] = plan.new_state.status
                fields["accountKey"] = plan.new_state.account_key
                return self.repository.update_record(kind, key, fields)

            return self.applier.apply(plan, mutation, record_key=key)

        return self._with_fresh_resolution(attempt)

    def _with_fresh_resolution(self, attempt: Callable[[], Any]) -> Any:
        """Retry a whole resolve+apply cycle when its plan went stale."""
        for attempt_number in range(1, self.max_resolve_attempts + 1):
            try:
                return attempt()
            except StalePlanError as exc:
                if attempt_number == self.max_resolve_attempts:
                    raise
                logger.warning(
                    f"Stale plan on attempt {attempt_number}, resolving again: {exc}"
                )
        raise StalePlanError("No resolve attempts configured")

    def _workflow_fields(
        self,
        record: LedgerRecord,
        status: str,
        approver: str | None,
        reject_reason: str | None,
    ) -> dict[str, object]:
        """Approval and rejection metadata implied by a status change."""
        if record.kind != "expense":
            return {}
        vocabulary = self.resolver.vocabulary("expense")
        fields: dict[str, object] = {}
        if vocabulary.is_rejected(status):
            if status != record.status or reject_reason is not None:
                fields["rejectReason"] = reject_reason
                fields["rejectedBy"] = approver
                fields["rejectedAt"] = _timestamp()
        else:
            if vocabulary.is_rejected(record.status):
                fields["rejectReason"] = None
                fields["rejectedBy"] = None
                fields["rejectedAt"] = None
            if approver is not None:
                fields["approvedBy"] = approver
                fields["approvedAt"] = _timestamp()
        return fields

    @staticmethod
    def _insert_fields(dto: ExpenseDTO | IncomeDTO, plan: DeltaPlan) -> dict[str, object]:
        if isinstance(dto, ExpenseDTO):
            return {
                "projectCode": dto.project_code,
                "accountCode": dto.account_code,
                "description": dto.description,
                "amount": dto.amount,
                "netAmount": dto.net_amount,
                "status": plan.new_state.status,
                "accountKey": plan.new_state.account_key,
                "issueDate": dto.issue_date,
                "dueDate": dto.due_date,
            }
        return {
            "projectCode": dto.project_code,
            "description": dto.description,
            "invoiceNo": dto.invoice_no,
            "amount": dto.amount,
            "dueDate": dto.due_date,
            "status": plan.new_state.status,
            "accountKey": plan.new_state.account_key,
        }

    @staticmethod
    def _build_dto(kind: str, payload: dict[str, Any]) -> ExpenseDTO | IncomeDTO:
        """Build a validated DTO from a plain payload mapping."""
        if kind == "expense":
            return ExpenseDTO(
                project_code=str(payload.get("project_code") or ""),
                account_code=str(payload.get("account_code") or ""),
                amount=payload.get("amount"),
                net_amount=payload.get("net_amount"),
                description=payload.get("description"),
                status=payload.get("status"),
                account_key=payload.get("account_key"),
                issue_date=payload.get("issue_date"),
                due_date=payload.get("due_date"),
            )
        return IncomeDTO(
            project_code=str(payload.get("project_code") or ""),
            amount=payload.get("amount"),
            description=payload.get("description"),
            invoice_no=payload.get("invoice_no"),
            due_date=payload.get("due_date"),
            status=payload.get("status"),
            account_key=payload.get("account_key"),
        )

    @staticmethod
    def _check_kind(kind: str) -> None:
        if kind not in RECORD_KINDS:
            raise ValueError(f"Unsupported record kind: {kind}")
