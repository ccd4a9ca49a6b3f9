"""Project CLI commands."""

from __future__ import annotations

import click

from projectbudget.cli.common import get_client, ledger_errors


@click.group()
def project() -> None:
    """Project commands."""


@project.command("totals")
@click.argument("project_code")
@click.pass_context
def project_totals(ctx: click.Context, project_code: str) -> None:
    """Show live income and expense totals for a project.

    Rejected expenses are left out of the expense total.

    Examples:
        projectbudget project totals PRJ-001
    """
    with get_client(ctx) as client, ledger_errors("Project totals"):
        totals = client.project_totals(project_code)
    click.echo(f"Project: {totals.project_code}")
    click.echo(f"Income: {totals.income:.2f}")
    click.echo(f"Expense: {totals.expense:.2f}")
    click.echo(f"Net: {totals.net:.2f}")
    click.echo(f"Pending expenses: {totals.pending_expense_count}")
    click.echo(f"Pending incomes: {totals.pending_income_count}")
