"""Shared CLI helpers."""

from __future__ import annotations

from contextlib import contextmanager
import datetime as dt
from decimal import Decimal, InvalidOperation
from typing import Iterator

import click

from projectbudget.client import ProjectBudgetClient
from projectbudget.exceptions import ProjectBudgetError
from projectbudget.models import AccountRecord, ExpenseRecord, IncomeRecord


def parse_date(value: str | None, field_name: str) -> dt.date | None:
    """Parse an ISO date string into a date."""
    if value is None:
        return None
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise click.BadParameter("Use YYYY-MM-DD format.", param_hint=field_name) from exc


def parse_decimal(value: str | None, field_name: str) -> Decimal | None:
    """Parse a decimal string into a Decimal."""
    if value is None:
        return None
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise click.BadParameter("Use a valid decimal value.", param_hint=field_name) from exc


def get_client(ctx: click.Context) -> ProjectBudgetClient:
    """Build a ProjectBudget client from Click context."""
    payload = ctx.obj or {}
    try:
        return ProjectBudgetClient(
            db_path=payload.get("db_path"),
            config_path=payload.get("config_path"),
        )
    except ValueError as exc:
        raise click.UsageError(f"{exc}. Pass --db or set db_path in the config file.")


@contextmanager
def ledger_errors(label: str) -> Iterator[None]:
    """Report ledger failures as Click errors instead of tracebacks."""
    try:
        yield
    except (ProjectBudgetError, ValueError) as exc:
        raise click.ClickException(f"{label} failed: {exc}") from exc


def format_account(account: AccountRecord) -> str:
    flags = []
    if account.is_primary:
        flags.append("primary")
    if not account.is_active:
        flags.append("inactive")
    return (
        f"{account.key}\t{account.name}\t{account.account_type}"
        f"\t{account.balance:.2f}\t{','.join(flags)}"
    )


def format_expense(record: ExpenseRecord) -> str:
    account = record.account_key if record.account_key is not None else ""
    description = record.description or ""
    return (
        f"{record.key}\t{record.project_code}\t{record.account_code}"
        f"\t{record.effective_amount:.2f}\t{record.status}\t{account}\t{description}"
    )


def format_income(record: IncomeRecord) -> str:
    account = record.account_key if record.account_key is not None else ""
    invoice_no = record.invoice_no or ""
    description = record.description or ""
    return (
        f"{record.key}\t{record.project_code}\t{record.amount:.2f}"
        f"\t{record.status}\t{account}\t{invoice_no}\t{description}"
    )
