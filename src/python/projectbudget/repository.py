"""SQLite repository implementation for ProjectBudget."""

from __future__ import annotations

from pathlib import Path
import datetime as dt
from decimal import Decimal
import logging
import sqlite3
from typing import Any

from projectbudget.exceptions import ConstraintError, NotFoundError, ReconciliationError
from projectbudget.models import (
    AccountDTO,
    AccountRecord,
    AccountTransactionRecord,
    AttachmentDTO,
    AttachmentRecord,
    ExpenseRecord,
    IncomeRecord,
    LedgerRecord,
    RecordState,
    effective_expense_amount,
)
from projectbudget.persistence import PersistenceBackend
from projectbudget.schema import (
    DEFAULT_TRANSACTION_LIMIT,
    EXPENSE_COLUMNS,
    FLAG_N,
    FLAG_Y,
    INCOME_COLUMNS,
    RECORD_TABLES,
    SCHEMA_STATEMENTS,
    TIMESTAMP_FORMAT,
)

logger = logging.getLogger(__name__)

DEFAULT_BUSY_TIMEOUT_SECONDS = 30.0
WRITABLE_COLUMNS = {
    "expense": set(EXPENSE_COLUMNS) - {"key", "createdAt", "updatedAt"},
    "income": set(INCOME_COLUMNS) - {"key", "createdAt", "updatedAt"},
}
ACCOUNT_UPDATE_COLUMNS = {"name", "accountType", "bankName", "accountNumber"}


def _now() -> str:
    return dt.datetime.now().replace(microsecond=0).strftime(TIMESTAMP_FORMAT)


def _to_column_value(value: Any) -> Any:
    """Serialize Python values into their stored representation."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, bool):
        return FLAG_Y if value else FLAG_N
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return value


def _parse_date(value: str | None) -> dt.date | None:
    return dt.date.fromisoformat(value) if value else None


def _parse_decimal(value: str | None) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None


class Repository(PersistenceBackend):
    """SQLite-backed persistence implementation.

    The connection runs in autocommit mode; writes happen only between
    ``begin_transaction`` and ``commit``/``rollback``. ``BEGIN IMMEDIATE``
    takes the database write lock up-front, so concurrent balance
    read-modify-write cycles serialize instead of losing updates.
    """

    def __init__(
        self,
        db_path: str | Path,
        busy_timeout: float = DEFAULT_BUSY_TIMEOUT_SECONDS,
    ) -> None:
        """Create a repository for the given database path."""
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        self.connection: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Open the database connection."""
        if self.connection is None:
            self.connection = sqlite3.connect(
                self.db_path,
                timeout=self.busy_timeout,
                isolation_level=None,
            )
            self.connection.row_factory = sqlite3.Row
            self.connection.execute("PRAGMA foreign_keys = ON")

    def close(self) -> None:
        """Close the database connection."""
        if self.connection is not None:
            self.connection.close()
            self.connection = None

    def initialize_schema(self) -> None:
        """Create tables and indexes when absent."""
        self._ensure_connection()
        for statement in SCHEMA_STATEMENTS:
            self.connection.execute(statement)

    def begin_transaction(self) -> None:
        """Begin a write transaction, waiting for the write lock."""
        self._ensure_connection()
        self.connection.execute("BEGIN IMMEDIATE")

    def commit(self) -> None:
        """Commit the current transaction."""
        self._ensure_connection()
        self.connection.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self._ensure_connection()
        self.connection.rollback()

    @property
    def in_transaction(self) -> bool:
        return self.connection is not None and self.connection.in_transaction

    # Accounts

    def insert_account(self, account: AccountDTO) -> AccountRecord:
        """Insert a new account row and return the record."""
        self._ensure_transaction()
        timestamp = _now()
        cursor = self.connection.execute(
            """
            INSERT INTO Account (
                name,
                accountType,
                bankName,
                accountNumber,
                balance,
                isPrimary,
                isActive,
                createdAt,
                updatedAt
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                account.name,
                account.account_type,
                account.bank_name,
                account.account_number,
                str(account.balance),
                FLAG_N,
                FLAG_Y,
                timestamp,
                timestamp,
            ),
        )
        key = int(cursor.lastrowid)
        if account.is_primary:
            return self.set_primary(key)
        return self.get_account(key)

    def get_account(self, key: int) -> AccountRecord:
        """Fetch a single account by key."""
        self._ensure_connection()
        row = self.connection.execute(
            "SELECT * FROM Account WHERE key = ?",
            (key,),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Account {key} not found")
        return self._row_to_account(row)

    def list_accounts(self, include_inactive: bool = False) -> list[AccountRecord]:
        """Return accounts ordered by key."""
        self._ensure_connection()
        query = "SELECT * FROM Account"
        params: list[object] = []
        if not include_inactive:
            query += " WHERE isActive = ?"
            params.append(FLAG_Y)
        rows = self.connection.execute(query + " ORDER BY key", params).fetchall()
        return [self._row_to_account(row) for row in rows]

    def update_account(self, key: int, fields: dict[str, Any]) -> AccountRecord:
        """Update descriptive account columns and return the latest record."""
        self._ensure_transaction()
        unknown = set(fields) - ACCOUNT_UPDATE_COLUMNS
        if unknown:
            raise ValueError(f"Account columns not editable: {sorted(unknown)}")
        self.get_account(key)
        if not fields:
            return self.get_account(key)
        updates = [f"{column} = ?" for column in fields]
        params = [_to_column_value(value) for value in fields.values()]
        updates.append("updatedAt = ?")
        params.extend([_now(), key])
        self.connection.execute(
            f"UPDATE Account SET {', '.join(updates)} WHERE key = ?",
            params,
        )
        return self.get_account(key)

    def get_primary(self) -> AccountRecord | None:
        """Return the active primary account, if one is designated."""
        self._ensure_connection()
        row = self.connection.execute(
            "SELECT * FROM Account WHERE isPrimary = ? AND isActive = ? "
            "ORDER BY key LIMIT 1",
            (FLAG_Y, FLAG_Y),
        ).fetchone()
        return self._row_to_account(row) if row is not None else None

    def adjust_balance(self, key: int, amount: Decimal) -> Decimal:
        """Apply a signed delta to an account balance.

        Only callable inside an open transaction; the write lock taken by
        ``begin_transaction`` makes the read-modify-write below atomic.
        """
        self._ensure_transaction()
        row = self.connection.execute(
            "SELECT balance FROM Account WHERE key = ?",
            (key,),
        ).fetchone()
        if row is None:
            raise ConstraintError(
                "Balance adjustment references a missing account",
                {"account_key": key, "amount": str(amount)},
            )
        balance = Decimal(row["balance"]) + amount
        self.connection.execute(
            "UPDATE Account SET balance = ?, updatedAt = ? WHERE key = ?",
            (str(balance), _now(), key),
        )
        logger.debug(f"Adjusted account {key} by {amount}: balance now {balance}")
        return balance

    def set_primary(self, key: int) -> AccountRecord:
        """Make an account the only primary account.

        Clears the flag on every other account, however many held it.
        """
        self._ensure_transaction()
        account = self.get_account(key)
        if not account.is_active:
            raise ReconciliationError(f"Inactive account {key} cannot be primary")
        timestamp = _now()
        self.connection.execute(
            "UPDATE Account SET isPrimary = ?, updatedAt = ? WHERE isPrimary != ? AND key != ?",
            (FLAG_N, timestamp, FLAG_N, key),
        )
        self.connection.execute(
            "UPDATE Account SET isPrimary = ?, updatedAt = ? WHERE key = ?",
            (FLAG_Y, timestamp, key),
        )
        return self.get_account(key)

    def clear_primary(self, key: int) -> AccountRecord:
        """Remove the primary flag from one account, leaving none primary."""
        self._ensure_transaction()
        self.get_account(key)
        self.connection.execute(
            "UPDATE Account SET isPrimary = ?, updatedAt = ? WHERE key = ?",
            (FLAG_N, _now(), key),
        )
        return self.get_account(key)

    def soft_delete(self, key: int) -> AccountRecord:
        """Mark an account inactive. Balance and linked records are kept."""
        self._ensure_transaction()
        self.get_account(key)
        self.connection.execute(
            "UPDATE Account SET isActive = ?, isPrimary = ?, updatedAt = ? WHERE key = ?",
            (FLAG_N, FLAG_N, _now(), key),
        )
        return self.get_account(key)

    def get_account_transactions(
        self,
        key: int,
        limit: int = DEFAULT_TRANSACTION_LIMIT,
    ) -> list[AccountTransactionRecord]:
        """List records currently linked to an account, newest first."""
        self._ensure_connection()
        self.get_account(key)
        rows = self.connection.execute(
            """
            SELECT 'income' AS kind, key, projectCode, description, amount,
                   NULL AS netAmount, status, createdAt
            FROM Income
            WHERE accountKey = ?
            UNION ALL
            SELECT 'expense' AS kind, key, projectCode, description, amount,
                   netAmount, status, createdAt
            FROM Expense
            WHERE accountKey = ?
            ORDER BY createdAt DESC, key DESC
            LIMIT ?
            """,
            (key, key, limit),
        ).fetchall()
        return [
            AccountTransactionRecord(
                kind=row["kind"],
                key=row["key"],
                project_code=row["projectCode"],
                description=row["description"],
                amount=effective_expense_amount(
                    Decimal(row["amount"]), _parse_decimal(row["netAmount"])
                ),
                status=row["status"],
                created_at=row["createdAt"],
            )
            for row in rows
        ]

    # Records

    def insert_record(self, kind: str, fields: dict[str, Any]) -> LedgerRecord:
        """Insert an expense or income row from column values."""
        self._ensure_transaction()
        table = self._table(kind)
        self._check_columns(kind, fields)
        timestamp = _now()
        columns = list(fields) + ["createdAt", "updatedAt"]
        params = [_to_column_value(value) for value in fields.values()]
        params.extend([timestamp, timestamp])
        placeholders = ", ".join("?" for _ in columns)
        cursor = self.connection.execute(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
            params,
        )
        return self.get_record(kind, int(cursor.lastrowid))

    def get_record(self, kind: str, key: int) -> LedgerRecord:
        """Fetch a single expense or income record with its attachments."""
        self._ensure_connection()
        table = self._table(kind)
        row = self.connection.execute(
            f"SELECT * FROM {table} WHERE key = ?",
            (key,),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"{kind.capitalize()} {key} not found")
        return self._row_to_record(kind, row, tuple(self.list_attachments(kind, key)))

    def get_record_state(self, kind: str, key: int) -> RecordState:
        """Fetch the status, effective amount and linked account of a record."""
        return self.get_record(kind, key).state

    def list_records(
        self,
        kind: str,
        project_code: str | None = None,
        with_attachments: bool = True,
    ) -> list[LedgerRecord]:
        """List records of one kind, newest first, optionally for one project."""
        self._ensure_connection()
        table = self._table(kind)
        where_clause = ""
        params: list[object] = []
        if project_code is not None:
            where_clause = "WHERE projectCode = ?"
            params.append(project_code)
        rows = self.connection.execute(
            f"""
            SELECT * FROM {table}
            {where_clause}
            ORDER BY createdAt DESC, key DESC
            """,
            params,
        ).fetchall()
        return [
            self._row_to_record(
                kind,
                row,
                tuple(self.list_attachments(kind, row["key"])) if with_attachments else (),
            )
            for row in rows
        ]

    def list_record_states(
        self,
        kind: str,
        project_code: str | None = None,
    ) -> list[RecordState]:
        """Return the reconciliation state of every record of one kind."""
        return [
            record.state
            for record in self.list_records(kind, project_code, with_attachments=False)
        ]

    def update_record(self, kind: str, key: int, fields: dict[str, Any]) -> LedgerRecord:
        """Update record columns and return the latest record."""
        self._ensure_transaction()
        table = self._table(kind)
        self._check_columns(kind, fields)
        updates = [f"{column} = ?" for column in fields]
        params = [_to_column_value(value) for value in fields.values()]
        updates.append("updatedAt = ?")
        params.extend([_now(), key])
        cursor = self.connection.execute(
            f"UPDATE {table} SET {', '.join(updates)} WHERE key = ?",
            params,
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"{kind.capitalize()} {key} not found")
        return self.get_record(kind, key)

    def delete_record(self, kind: str, key: int) -> None:
        """Delete a record and its attachments."""
        self._ensure_transaction()
        table = self._table(kind)
        self.connection.execute(
            "DELETE FROM Attachment WHERE recordKind = ? AND recordKey = ?",
            (kind, key),
        )
        cursor = self.connection.execute(f"DELETE FROM {table} WHERE key = ?", (key,))
        if cursor.rowcount == 0:
            raise NotFoundError(f"{kind.capitalize()} {key} not found")

    # Attachments

    def insert_attachment(
        self,
        kind: str,
        key: int,
        attachment: AttachmentDTO,
    ) -> AttachmentRecord:
        """Link file metadata to a record."""
        self._ensure_transaction()
        self.get_record(kind, key)
        cursor = self.connection.execute(
            """
            INSERT INTO Attachment (
                recordKind,
                recordKey,
                fileName,
                filePath,
                source,
                createdAt
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (kind, key, attachment.file_name, attachment.file_path, attachment.source, _now()),
        )
        row = self.connection.execute(
            "SELECT * FROM Attachment WHERE key = ?",
            (int(cursor.lastrowid),),
        ).fetchone()
        return self._row_to_attachment(row)

    def list_attachments(self, kind: str, key: int) -> list[AttachmentRecord]:
        """Return attachments of a record ordered by key."""
        self._ensure_connection()
        rows = self.connection.execute(
            "SELECT * FROM Attachment WHERE recordKind = ? AND recordKey = ? ORDER BY key",
            (kind, key),
        ).fetchall()
        return [self._row_to_attachment(row) for row in rows]

    def delete_attachment(self, attachment_key: int) -> AttachmentRecord:
        """Delete an attachment and return what was removed."""
        self._ensure_transaction()
        row = self.connection.execute(
            "SELECT * FROM Attachment WHERE key = ?",
            (attachment_key,),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Attachment {attachment_key} not found")
        self.connection.execute("DELETE FROM Attachment WHERE key = ?", (attachment_key,))
        return self._row_to_attachment(row)

    # Helpers

    def _ensure_connection(self) -> None:
        """Ensure the connection is initialized before use."""
        if self.connection is None:
            raise RuntimeError("Repository connection is not initialized")

    def _ensure_transaction(self) -> None:
        """Ensure writes only happen inside an open transaction."""
        self._ensure_connection()
        if not self.connection.in_transaction:
            raise RuntimeError("Write attempted outside a transaction")

    @staticmethod
    def _table(kind: str) -> str:
        try:
            return RECORD_TABLES[kind]
        except KeyError:
            raise ValueError(f"Unsupported record kind: {kind}") from None

    @staticmethod
    def _check_columns(kind: str, fields: dict[str, Any]) -> None:
        unknown = set(fields) - WRITABLE_COLUMNS[kind]
        if unknown:
            raise ValueError(f"Unknown {kind} columns: {sorted(unknown)}")

    @staticmethod
    def _row_to_account(row: sqlite3.Row) -> AccountRecord:
        return AccountRecord(
            key=row["key"],
            name=row["name"],
            account_type=row["accountType"],
            bank_name=row["bankName"],
            account_number=row["accountNumber"],
            balance=Decimal(row["balance"]),
            is_primary=row["isPrimary"] == FLAG_Y,
            is_active=row["isActive"] == FLAG_Y,
            created_at=row["createdAt"],
            updated_at=row["updatedAt"],
        )

    @staticmethod
    def _row_to_attachment(row: sqlite3.Row) -> AttachmentRecord:
        return AttachmentRecord(
            key=row["key"],
            record_kind=row["recordKind"],
            record_key=row["recordKey"],
            file_name=row["fileName"],
            file_path=row["filePath"],
            source=row["source"],
            created_at=row["createdAt"],
        )

    @staticmethod
    def _row_to_record(
        kind: str,
        row: sqlite3.Row,
        attachments: tuple[AttachmentRecord, ...],
    ) -> LedgerRecord:
        if kind == "expense":
            return ExpenseRecord(
                key=row["key"],
                project_code=row["projectCode"],
                account_code=row["accountCode"],
                description=row["description"],
                amount=Decimal(row["amount"]),
                net_amount=_parse_decimal(row["netAmount"]),
                status=row["status"],
                account_key=row["accountKey"],
                approved_by=row["approvedBy"],
                approved_at=row["approvedAt"],
                rejected_by=row["rejectedBy"],
                rejected_at=row["rejectedAt"],
                reject_reason=row["rejectReason"],
                payment_date=_parse_date(row["paymentDate"]),
                issue_date=_parse_date(row["issueDate"]),
                due_date=_parse_date(row["dueDate"]),
                created_at=row["createdAt"],
                updated_at=row["updatedAt"],
                attachments=attachments,
            )
        return IncomeRecord(
            key=row["key"],
            project_code=row["projectCode"],
            description=row["description"],
            invoice_no=row["invoiceNo"],
            amount=Decimal(row["amount"]),
            due_date=_parse_date(row["dueDate"]),
            status=row["status"],
            account_key=row["accountKey"],
            created_at=row["createdAt"],
            updated_at=row["updatedAt"],
            attachments=attachments,
        )
