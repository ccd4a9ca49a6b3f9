"""Income CLI commands."""

from __future__ import annotations

import click

from projectbudget.cli.common import (
    format_income,
    get_client,
    ledger_errors,
    parse_date,
    parse_decimal,
)
from projectbudget.models import IncomeDTO


@click.group()
def income() -> None:
    """Income commands."""


@income.command("add")
@click.option("--project", "project_code", required=True, help="Project code.")
@click.option("--amount", "amount_value", required=True, help="Income amount.")
@click.option("--description", default=None, help="Income description.")
@click.option("--invoice-no", default=None, help="Invoice number.")
@click.option("--status", default=None, help="Initial status (defaults to the first workflow status).")
@click.option("--account", "account_key", type=int, default=None, help="Account key to credit.")
@click.option("--due-date", default=None, help="Due date in YYYY-MM-DD.")
@click.pass_context
def add_income(
    ctx: click.Context,
    project_code: str,
    amount_value: str,
    description: str | None,
    invoice_no: str | None,
    status: str | None,
    account_key: int | None,
    due_date: str | None,
) -> None:
    """Add an income record."""
    amount = parse_decimal(amount_value, "--amount")
    due = parse_date(due_date, "--due-date")
    with get_client(ctx) as client, ledger_errors("Income add"):
        record = client.add_income(
            IncomeDTO(
                project_code=project_code,
                amount=amount,
                description=description,
                invoice_no=invoice_no,
                due_date=due,
                status=status,
                account_key=account_key,
            )
        )
    click.echo(f"Added income {record.key}")


@income.command("list")
@click.option("--project", "project_code", default=None, help="Filter by project code.")
@click.option("--limit", type=int, default=None, help="Limit results.")
@click.pass_context
def list_incomes(ctx: click.Context, project_code: str | None, limit: int | None) -> None:
    """List income records, newest first."""
    with get_client(ctx) as client, ledger_errors("Income list"):
        records = client.list_records("income", project_code=project_code)
    if limit is not None:
        records = records[:limit]
    for record in records:
        click.echo(format_income(record))


@income.command("get")
@click.argument("key", type=int)
@click.pass_context
def get_income(ctx: click.Context, key: int) -> None:
    """Get an income record by key."""
    with get_client(ctx) as client, ledger_errors("Income get"):
        record = client.get_record("income", key)
    click.echo(format_income(record))


@income.command("status")
@click.argument("key", type=int)
@click.argument("status")
@click.pass_context
def update_status(ctx: click.Context, key: int, status: str) -> None:
    """Move an income record to another workflow status."""
    with get_client(ctx) as client, ledger_errors("Income status"):
        record = client.update_record_status("income", key, status)
    click.echo(f"Income {record.key} is now {record.status}")


@income.command("update")
@click.argument("key", type=int)
@click.option("--project", "project_code", default=None, help="Updated project code.")
@click.option("--amount", "amount_value", default=None, help="Updated amount.")
@click.option("--description", default=None, help="Updated description.")
@click.option("--invoice-no", default=None, help="Updated invoice number.")
@click.option("--status", default=None, help="Updated status.")
@click.option("--account", "account_key", type=int, default=None, help="Updated account key.")
@click.option("--due-date", default=None, help="Updated due date in YYYY-MM-DD.")
@click.pass_context
def update_income(
    ctx: click.Context,
    key: int,
    project_code: str | None,
    amount_value: str | None,
    description: str | None,
    invoice_no: str | None,
    status: str | None,
    account_key: int | None,
    due_date: str | None,
) -> None:
    """Update an income record, reconciling its account balance."""
    changes = {
        "project_code": project_code,
        "amount": parse_decimal(amount_value, "--amount"),
        "description": description,
        "invoice_no": invoice_no,
        "status": status,
        "account_key": account_key,
        "due_date": parse_date(due_date, "--due-date"),
    }
    if all(value is None for value in changes.values()):
        raise click.UsageError("Provide at least one field to update.")
    with get_client(ctx) as client, ledger_errors("Income update"):
        record = client.update_record_full("income", key, **changes)
    click.echo(f"Updated income {record.key}")


@income.command("delete")
@click.argument("key", type=int)
@click.option("--yes", is_flag=True, help="Skip delete confirmation.")
@click.pass_context
def delete_income(ctx: click.Context, key: int, yes: bool) -> None:
    """Delete an income record. A received income is withdrawn from its account."""
    if not yes:
        confirm = click.confirm("Delete income?", default=False)
        if not confirm:
            click.echo("Delete cancelled.")
            return
    with get_client(ctx) as client, ledger_errors("Income delete"):
        client.delete_record("income", key)
    click.echo(f"Deleted income {key}")
