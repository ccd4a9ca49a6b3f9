from __future__ import annotations

from decimal import Decimal
import sqlite3

import pytest

from projectbudget import AccountDTO, ExpenseDTO, NotFoundError, ReconciliationError
from projectbudget.client import ProjectBudgetClient
from tests.utils.database import account_key


def _get_connection(db_path: str) -> sqlite3.Connection:
    connection = sqlite3.connect(db_path)
    connection.row_factory = sqlite3.Row
    return connection


def _primary_count(db_path) -> int:
    connection = _get_connection(str(db_path))
    try:
        row = connection.execute(
            "SELECT COUNT(*) AS total FROM Account WHERE isPrimary = 'Y'"
        ).fetchone()
    finally:
        connection.close()
    return row["total"]


@pytest.mark.sit
def test_add_and_get_account(empty_db_path) -> None:
    with ProjectBudgetClient(db_path=empty_db_path) as client:
        saved = client.add_account(
            AccountDTO(name="Payroll", bank_name="OCBC", account_number="123-4", balance="250")
        )
        fetched = client.get_account(saved.key)

    assert fetched.name == "Payroll"
    assert fetched.bank_name == "OCBC"
    assert fetched.balance == Decimal("250.00")
    assert fetched.is_active
    assert not fetched.is_primary


@pytest.mark.sit
def test_get_missing_account_raises(empty_db_path) -> None:
    with ProjectBudgetClient(db_path=empty_db_path) as client:
        with pytest.raises(NotFoundError):
            client.get_account_balance(42)


@pytest.mark.sit
def test_set_primary_repairs_multiple_primaries(test_db_path) -> None:
    with _get_connection(str(test_db_path)) as connection:
        connection.execute("UPDATE Account SET isPrimary = 'Y'")
    assert _primary_count(test_db_path) == 2

    with ProjectBudgetClient(db_path=test_db_path) as client:
        extra = client.add_account(AccountDTO(name="Petty cash", account_type="Cash"))
        client.set_primary_account(extra.key)
        primaries = [account.key for account in client.list_accounts() if account.is_primary]

    assert primaries == [extra.key]
    assert _primary_count(test_db_path) == 1


@pytest.mark.sit
def test_add_primary_account_replaces_existing(test_db_path) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_account(AccountDTO(name="New main", is_primary=True))

    assert _primary_count(test_db_path) == 1
    assert account_key(test_db_path, "New main") == saved.key


@pytest.mark.sit
def test_update_account_details_and_primary(test_db_path) -> None:
    reserve = account_key(test_db_path, "Reserve")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        updated = client.update_account(reserve, name="Reserve SGD", is_primary=True)
        assert updated.name == "Reserve SGD"
        assert updated.is_primary
        assert updated.balance == Decimal("800.00")

        cleared = client.update_account(reserve, is_primary=False)

    assert not cleared.is_primary
    assert _primary_count(test_db_path) == 0


@pytest.mark.sit
def test_deactivate_account_soft_deletes(test_db_path) -> None:
    operating = account_key(test_db_path, "Operating")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        deactivated = client.deactivate_account(operating)
        active = [account.key for account in client.list_accounts()]
        everything = [account.key for account in client.list_accounts(include_inactive=True)]

    assert not deactivated.is_active
    assert not deactivated.is_primary
    assert deactivated.balance == Decimal("5000.00")
    assert operating not in active
    assert operating in everything


@pytest.mark.sit
def test_inactive_account_cannot_become_primary(test_db_path) -> None:
    reserve = account_key(test_db_path, "Reserve")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        client.deactivate_account(reserve)
        with pytest.raises(ReconciliationError):
            client.set_primary_account(reserve)


@pytest.mark.sit
def test_reversal_applies_to_deactivated_account(test_db_path) -> None:
    reserve = account_key(test_db_path, "Reserve")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(
            ExpenseDTO(
                project_code="PRJ-001",
                account_code="5100",
                amount=Decimal("200"),
                status="paid",
                account_key=reserve,
            )
        )
        client.deactivate_account(reserve)
        client.update_record_status("expense", saved.key, "approved")
        assert client.get_account_balance(reserve) == Decimal("800.00")

        with pytest.raises(ReconciliationError):
            client.update_record_status("expense", saved.key, "paid")
        assert client.get_account_balance(reserve) == Decimal("800.00")


@pytest.mark.sit
def test_account_transactions_newest_first(test_db_path) -> None:
    operating = account_key(test_db_path, "Operating")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        first = client.add_expense(
            ExpenseDTO(
                project_code="PRJ-001",
                account_code="5100",
                amount=Decimal("100"),
                net_amount=Decimal("90"),
                status="paid",
            )
        )
        second = client.add_expense(
            ExpenseDTO(project_code="PRJ-002", account_code="5100", amount=Decimal("50"), status="paid")
        )
        history = client.get_account_transactions(operating)
        limited = client.get_account_transactions(operating, limit=1)

    assert [entry.key for entry in history] == [second.key, first.key]
    assert history[1].amount == Decimal("90.00")
    assert len(limited) == 1
