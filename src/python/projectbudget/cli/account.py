"""Account CLI commands."""

from __future__ import annotations

import click

from projectbudget.cli.common import format_account, get_client, ledger_errors, parse_decimal
from projectbudget.models import AccountDTO
from projectbudget.schema import DEFAULT_ACCOUNT_TYPE, DEFAULT_TRANSACTION_LIMIT


@click.group()
def account() -> None:
    """Account commands."""


@account.command("add")
@click.option("--name", required=True, help="Account name.")
@click.option("--type", "account_type", default=DEFAULT_ACCOUNT_TYPE, show_default=True, help="Account type.")
@click.option("--bank", "bank_name", default=None, help="Bank holding the account.")
@click.option("--number", "account_number", default=None, help="Bank account number.")
@click.option("--balance", "balance_value", default="0", show_default=True, help="Opening balance.")
@click.option("--primary", is_flag=True, help="Make this the primary account.")
@click.pass_context
def add_account(
    ctx: click.Context,
    name: str,
    account_type: str,
    bank_name: str | None,
    account_number: str | None,
    balance_value: str,
    primary: bool,
) -> None:
    """Add an account."""
    balance = parse_decimal(balance_value, "--balance")
    with get_client(ctx) as client, ledger_errors("Account add"):
        record = client.add_account(
            AccountDTO(
                name=name,
                account_type=account_type,
                bank_name=bank_name,
                account_number=account_number,
                balance=balance,
                is_primary=primary,
            )
        )
    click.echo(f"Added account {record.key}")


@account.command("list")
@click.option("--all", "include_inactive", is_flag=True, help="Include inactive accounts.")
@click.pass_context
def list_accounts(ctx: click.Context, include_inactive: bool) -> None:
    """List accounts with current balances.

    Examples:
        projectbudget account list
        projectbudget account list --all
    """
    with get_client(ctx) as client, ledger_errors("Account list"):
        accounts = client.list_accounts(include_inactive=include_inactive)
    if not accounts:
        click.echo("No accounts found.")
        return
    for record in accounts:
        click.echo(format_account(record))


@account.command("get")
@click.argument("key", type=int)
@click.pass_context
def get_account(ctx: click.Context, key: int) -> None:
    """Get an account by key."""
    with get_client(ctx) as client, ledger_errors("Account get"):
        record = client.get_account(key)
    click.echo(format_account(record))


@account.command("balance")
@click.argument("key", type=int)
@click.pass_context
def get_balance(ctx: click.Context, key: int) -> None:
    """Print the current balance of an account."""
    with get_client(ctx) as client, ledger_errors("Account balance"):
        balance = client.get_account_balance(key)
    click.echo(f"{balance:.2f}")


@account.command("set-primary")
@click.argument("key", type=int)
@click.pass_context
def set_primary(ctx: click.Context, key: int) -> None:
    """Make an account the primary account."""
    with get_client(ctx) as client, ledger_errors("Set primary"):
        client.set_primary_account(key)
    click.echo(f"Account {key} is now primary")


@account.command("deactivate")
@click.argument("key", type=int)
@click.option("--yes", is_flag=True, help="Skip confirmation.")
@click.pass_context
def deactivate_account(ctx: click.Context, key: int, yes: bool) -> None:
    """Deactivate an account. Its balance and records are kept."""
    if not yes:
        confirm = click.confirm("Deactivate account?", default=False)
        if not confirm:
            click.echo("Deactivate cancelled.")
            return
    with get_client(ctx) as client, ledger_errors("Account deactivate"):
        client.deactivate_account(key)
    click.echo(f"Deactivated account {key}")


@account.command("transactions")
@click.argument("key", type=int)
@click.option("--limit", type=int, default=DEFAULT_TRANSACTION_LIMIT, show_default=True, help="Limit results.")
@click.pass_context
def list_transactions(ctx: click.Context, key: int, limit: int) -> None:
    """List expenses and incomes linked to an account, newest first."""
    with get_client(ctx) as client, ledger_errors("Account transactions"):
        records = client.get_account_transactions(key, limit=limit)
    for record in records:
        description = record.description or ""
        click.echo(
            f"{record.kind}\t{record.key}\t{record.project_code}"
            f"\t{record.amount:.2f}\t{record.status}\t{description}"
        )
