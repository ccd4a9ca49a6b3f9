"""Expense CLI commands."""

from __future__ import annotations

import click

from projectbudget.cli.common import (
    format_expense,
    get_client,
    ledger_errors,
    parse_date,
    parse_decimal,
)
from projectbudget.models import AttachmentDTO, ExpenseDTO
from projectbudget.schema import ATTACHMENT_SOURCES, DEFAULT_ATTACHMENT_SOURCE


@click.group()
def expense() -> None:
    """Expense commands."""


@expense.command("add")
@click.option("--project", "project_code", required=True, help="Project code.")
@click.option("--account-code", required=True, help="Chart of accounts code.")
@click.option("--amount", "amount_value", required=True, help="Expense amount.")
@click.option("--net-amount", "net_amount_value", default=None, help="Net amount after deductions.")
@click.option("--description", default=None, help="Expense description.")
@click.option("--status", default=None, help="Initial status (defaults to the first workflow status).")
@click.option("--account", "account_key", type=int, default=None, help="Account key to settle against.")
@click.option("--issue-date", default=None, help="Issue date in YYYY-MM-DD.")
@click.option("--due-date", default=None, help="Due date in YYYY-MM-DD.")
@click.pass_context
def add_expense(
    ctx: click.Context,
    project_code: str,
    account_code: str,
    amount_value: str,
    net_amount_value: str | None,
    description: str | None,
    status: str | None,
    account_key: int | None,
    issue_date: str | None,
    due_date: str | None,
) -> None:
    """Add an expense.

    An expense created as paid or closed is charged to its account (or the
    primary account) immediately.
    """
    amount = parse_decimal(amount_value, "--amount")
    net_amount = parse_decimal(net_amount_value, "--net-amount")
    issued = parse_date(issue_date, "--issue-date")
    due = parse_date(due_date, "--due-date")
    with get_client(ctx) as client, ledger_errors("Expense add"):
        record = client.add_expense(
            ExpenseDTO(
                project_code=project_code,
                account_code=account_code,
                amount=amount,
                net_amount=net_amount,
                description=description,
                status=status,
                account_key=account_key,
                issue_date=issued,
                due_date=due,
            )
        )
    click.echo(f"Added expense {record.key}")


@expense.command("list")
@click.option("--project", "project_code", default=None, help="Filter by project code.")
@click.option("--status", default=None, help="Filter by status.")
@click.option("--limit", type=int, default=None, help="Limit results.")
@click.pass_context
def list_expenses(
    ctx: click.Context,
    project_code: str | None,
    status: str | None,
    limit: int | None,
) -> None:
    """List expenses, newest first."""
    with get_client(ctx) as client, ledger_errors("Expense list"):
        records = client.list_records("expense", project_code=project_code)
    if status:
        records = [record for record in records if record.status == status]
    if limit is not None:
        records = records[:limit]
    for record in records:
        click.echo(format_expense(record))


@expense.command("get")
@click.argument("key", type=int)
@click.pass_context
def get_expense(ctx: click.Context, key: int) -> None:
    """Get an expense by key."""
    with get_client(ctx) as client, ledger_errors("Expense get"):
        record = client.get_record("expense", key)
    click.echo(format_expense(record))
    if record.reject_reason:
        click.echo(f"Rejected: {record.reject_reason}")
    for attachment in record.attachments:
        click.echo(f"Attachment {attachment.key}\t{attachment.file_name}\t{attachment.file_path}")


@expense.command("status")
@click.argument("key", type=int)
@click.argument("status")
@click.option("--approver", default=None, help="Who approved or rejected the expense.")
@click.option("--reason", "reject_reason", default=None, help="Rejection reason.")
@click.option("--payment-date", default=None, help="Payment date in YYYY-MM-DD.")
@click.pass_context
def update_status(
    ctx: click.Context,
    key: int,
    status: str,
    approver: str | None,
    reject_reason: str | None,
    payment_date: str | None,
) -> None:
    """Move an expense to another workflow status.

    Examples:
        projectbudget expense status 12 approved --approver alice
        projectbudget expense status 12 paid --payment-date 2026-03-01
    """
    paid_on = parse_date(payment_date, "--payment-date")
    with get_client(ctx) as client, ledger_errors("Expense status"):
        record = client.update_record_status(
            "expense",
            key,
            status,
            approver=approver,
            reject_reason=reject_reason,
            payment_date=paid_on,
        )
    click.echo(f"Expense {record.key} is now {record.status}")


@expense.command("update")
@click.argument("key", type=int)
@click.option("--project", "project_code", default=None, help="Updated project code.")
@click.option("--account-code", default=None, help="Updated chart of accounts code.")
@click.option("--amount", "amount_value", default=None, help="Updated amount.")
@click.option("--net-amount", "net_amount_value", default=None, help="Updated net amount.")
@click.option("--description", default=None, help="Updated description.")
@click.option("--status", default=None, help="Updated status.")
@click.option("--account", "account_key", type=int, default=None, help="Updated account key.")
@click.option("--due-date", default=None, help="Updated due date in YYYY-MM-DD.")
@click.pass_context
def update_expense(
    ctx: click.Context,
    key: int,
    project_code: str | None,
    account_code: str | None,
    amount_value: str | None,
    net_amount_value: str | None,
    description: str | None,
    status: str | None,
    account_key: int | None,
    due_date: str | None,
) -> None:
    """Update an expense, reconciling its account balance."""
    changes = {
        "project_code": project_code,
        "account_code": account_code,
        "amount": parse_decimal(amount_value, "--amount"),
        "net_amount": parse_decimal(net_amount_value, "--net-amount"),
        "description": description,
        "status": status,
        "account_key": account_key,
        "due_date": parse_date(due_date, "--due-date"),
    }
    if all(value is None for value in changes.values()):
        raise click.UsageError("Provide at least one field to update.")
    with get_client(ctx) as client, ledger_errors("Expense update"):
        record = client.update_record_full("expense", key, **changes)
    click.echo(f"Updated expense {record.key}")


@expense.command("delete")
@click.argument("key", type=int)
@click.option("--yes", is_flag=True, help="Skip delete confirmation.")
@click.pass_context
def delete_expense(ctx: click.Context, key: int, yes: bool) -> None:
    """Delete an expense. A paid expense is refunded to its account."""
    if not yes:
        confirm = click.confirm("Delete expense?", default=False)
        if not confirm:
            click.echo("Delete cancelled.")
            return
    with get_client(ctx) as client, ledger_errors("Expense delete"):
        client.delete_record("expense", key)
    click.echo(f"Deleted expense {key}")


@expense.command("attach")
@click.argument("key", type=int)
@click.option("--file-name", required=True, help="Attachment file name.")
@click.option("--path", "file_path", required=True, help="Stored location of the file.")
@click.option(
    "--source",
    type=click.Choice(sorted(ATTACHMENT_SOURCES)),
    default=DEFAULT_ATTACHMENT_SOURCE,
    show_default=True,
    help="Where the attachment came from.",
)
@click.pass_context
def attach_file(ctx: click.Context, key: int, file_name: str, file_path: str, source: str) -> None:
    """Attach file metadata to an expense."""
    with get_client(ctx) as client, ledger_errors("Expense attach"):
        attachment = client.add_attachment(
            "expense", key, AttachmentDTO(file_name=file_name, file_path=file_path, source=source)
        )
    click.echo(f"Added attachment {attachment.key}")
