"""ProjectBudget CLI entry point."""

from __future__ import annotations

from pathlib import Path

import click

from projectbudget.__version__ import __version__
from projectbudget.cli.account import account
from projectbudget.cli.common import get_client, ledger_errors
from projectbudget.cli.expense import expense
from projectbudget.cli.income import income
from projectbudget.cli.project import project


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="projectbudget")
@click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    help="Path to the ProjectBudget database.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    help="Path to a JSON config file.",
)
@click.pass_context
def main(ctx: click.Context, db_path: Path | None, config_path: Path | None) -> None:
    """ProjectBudget CLI entry point."""
    ctx.obj = {
        "db_path": db_path,
        "config_path": config_path,
    }


@main.command("init")
@click.pass_context
def init_database(ctx: click.Context) -> None:
    """Create the ledger tables in the database."""
    client = get_client(ctx)
    with client, ledger_errors("Init"):
        client.initialize()
    click.echo(f"Initialized {client.db_path}")


@main.command("summary")
@click.pass_context
def summary(ctx: click.Context) -> None:
    """Show totals across all projects and accounts."""
    with get_client(ctx) as client, ledger_errors("Summary"):
        result = client.summary()
    click.echo(f"Total income: {result.total_income:.2f}")
    click.echo(f"Total expense: {result.total_expense:.2f}")
    click.echo(f"Expenses: {result.expense_count}")
    click.echo(f"Pending expenses: {result.pending_expense_count}")
    click.echo(f"Pending incomes: {result.pending_income_count}")
    click.echo(f"Total balance: {result.total_balance:.2f}")


main.add_command(account)
main.add_command(expense)
main.add_command(income)
main.add_command(project)


if __name__ == "__main__":
    main()
