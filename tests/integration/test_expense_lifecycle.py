from __future__ import annotations

from decimal import Decimal
import sqlite3

import pytest

from projectbudget import (
    AccountDTO,
    AttachmentDTO,
    ExpenseDTO,
    InvalidAmountError,
    NotFoundError,
    UnknownStatusError,
)
from projectbudget.client import ProjectBudgetClient
from tests.utils.database import account_balance, account_key


def _get_connection(db_path: str) -> sqlite3.Connection:
    connection = sqlite3.connect(db_path)
    connection.row_factory = sqlite3.Row
    return connection


def _make_expense(amount: str = "1000.00", status: str | None = "submitted", **kwargs) -> ExpenseDTO:
    return ExpenseDTO(
        project_code="PRJ-001",
        account_code="5100",
        amount=Decimal(amount),
        description="Site survey",
        status=status,
        **kwargs,
    )


@pytest.mark.sit
def test_add_expense_basic(test_db_path) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense())

    assert saved.key is not None
    assert saved.status == "submitted"
    assert saved.amount == Decimal("1000.00")
    assert saved.account_key is None


@pytest.mark.sit
def test_add_expense_defaults_to_initial_status(test_db_path) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense(status=None))

    assert saved.status == "draft"


@pytest.mark.sit
def test_create_record_from_payload(test_db_path, sample_expense_payload) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.create_record("expense", sample_expense_payload)

    assert saved.project_code == "PRJ-001"
    assert saved.amount == Decimal("1000.00")


@pytest.mark.sit
def test_round_trip_paid_then_amount_edit(test_db_path) -> None:
    operating = account_key(test_db_path, "Operating")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense())
        assert client.get_account_balance(operating) == Decimal("5000.00")

        paid = client.update_record_full("expense", saved.key, status="paid", account_key=operating)
        assert paid.account_key == operating
        assert client.get_account_balance(operating) == Decimal("4000.00")

        client.update_record_full("expense", saved.key, amount=Decimal("1500"))
        assert client.get_account_balance(operating) == Decimal("3500.00")


@pytest.mark.sit
def test_paid_without_account_uses_primary(test_db_path) -> None:
    operating = account_key(test_db_path, "Operating")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense())
        paid = client.update_record_status("expense", saved.key, "paid")

    assert paid.account_key == operating
    assert account_balance(test_db_path, operating) == Decimal("4000.00")


@pytest.mark.sit
def test_create_directly_paid_applies_delta(test_db_path) -> None:
    reserve = account_key(test_db_path, "Reserve")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        client.add_expense(_make_expense(amount="200", status="paid", account_key=reserve))

    assert account_balance(test_db_path, reserve) == Decimal("600.00")


@pytest.mark.sit
def test_net_amount_is_reconciled(test_db_path) -> None:
    operating = account_key(test_db_path, "Operating")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense(net_amount=Decimal("900")))
        client.update_record_status("expense", saved.key, "paid")
        assert client.get_account_balance(operating) == Decimal("4100.00")

        client.update_record_full("expense", saved.key, net_amount=Decimal("950"))
        assert client.get_account_balance(operating) == Decimal("4050.00")


@pytest.mark.sit
def test_status_resubmission_is_idempotent(test_db_path) -> None:
    operating = account_key(test_db_path, "Operating")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense())
        client.update_record_status("expense", saved.key, "paid")
        client.update_record_status("expense", saved.key, "paid")
        client.update_record_status("expense", saved.key, "closed")

        assert client.get_account_balance(operating) == Decimal("4000.00")


@pytest.mark.sit
def test_reject_paid_expense_reverses_delta(test_db_path) -> None:
    operating = account_key(test_db_path, "Operating")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense())
        client.update_record_status("expense", saved.key, "paid")
        rejected = client.update_record_status(
            "expense", saved.key, "rejected", approver="alice", reject_reason="Duplicate invoice"
        )

        assert client.get_account_balance(operating) == Decimal("5000.00")

    assert rejected.reject_reason == "Duplicate invoice"
    assert rejected.rejected_by == "alice"
    assert rejected.rejected_at is not None
    assert rejected.account_key == operating


@pytest.mark.sit
def test_leaving_rejected_clears_rejection_fields(test_db_path) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense())
        client.update_record_status("expense", saved.key, "rejected", reject_reason="Missing receipt")
        resubmitted = client.update_record_status("expense", saved.key, "submitted")
        approved = client.update_record_status("expense", saved.key, "approved", approver="bob")

    assert resubmitted.reject_reason is None
    assert resubmitted.rejected_at is None
    assert approved.approved_by == "bob"
    assert approved.approved_at is not None


@pytest.mark.sit
def test_reject_reason_requires_rejected_status(test_db_path) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense())
        with pytest.raises(ValueError):
            client.update_record_status("expense", saved.key, "approved", reject_reason="nope")


@pytest.mark.sit
def test_payment_date_is_stored(test_db_path) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense())
        paid = client.update_record_status("expense", saved.key, "paid", payment_date="2026-03-01")

    assert paid.payment_date.isoformat() == "2026-03-01"


@pytest.mark.sit
def test_delete_paid_expense_restores_balance(test_db_path) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        settlement = client.add_account(AccountDTO(name="Settlement", balance=Decimal("1000")))
        saved = client.add_expense(_make_expense(amount="200", account_key=settlement.key))
        client.update_record_status("expense", saved.key, "paid")
        assert client.get_account_balance(settlement.key) == Decimal("800.00")

        assert client.delete_record("expense", saved.key) is True
        assert client.get_account_balance(settlement.key) == Decimal("1000.00")
        with pytest.raises(NotFoundError):
            client.get_record("expense", saved.key)


@pytest.mark.sit
def test_delete_never_affecting_expense_leaves_balances(test_db_path) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        before = {account.key: account.balance for account in client.list_accounts()}
        saved = client.add_expense(_make_expense())
        client.update_record_status("expense", saved.key, "approved")
        client.delete_record("expense", saved.key)
        after = {account.key: account.balance for account in client.list_accounts()}

    assert after == before


@pytest.mark.sit
def test_delete_missing_expense_raises(test_db_path) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        with pytest.raises(NotFoundError):
            client.delete_record("expense", 9999)


@pytest.mark.sit
def test_delete_removes_attachments(test_db_path) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense())
        client.add_attachment(
            "expense", saved.key, AttachmentDTO(file_name="receipt.pdf", file_path="/r/receipt.pdf")
        )
        assert len(client.get_record("expense", saved.key).attachments) == 1
        client.delete_record("expense", saved.key)

    with _get_connection(str(test_db_path)) as connection:
        row = connection.execute("SELECT COUNT(*) AS total FROM Attachment").fetchone()

    assert row["total"] == 0


@pytest.mark.sit
def test_unknown_status_rejected(test_db_path) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense())
        with pytest.raises(UnknownStatusError):
            client.update_record_status("expense", saved.key, "archived")
        with pytest.raises(UnknownStatusError):
            client.add_expense(_make_expense(status="archived"))


@pytest.mark.sit
def test_amount_edit_policy(test_db_path) -> None:
    operating = account_key(test_db_path, "Operating")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        draft = client.add_expense(_make_expense(status="draft"))
        edited = client.update_record_full("expense", draft.key, amount=Decimal("0"))
        assert edited.amount == Decimal("0.00")

        paid = client.add_expense(_make_expense())
        client.update_record_status("expense", paid.key, "paid")
        with pytest.raises(InvalidAmountError):
            client.update_record_full("expense", paid.key, amount=Decimal("-5"))

        assert client.get_account_balance(operating) == Decimal("4000.00")
        assert client.get_record("expense", paid.key).amount == Decimal("1000.00")


@pytest.mark.sit
def test_non_affecting_amount_edit_changes_no_balance(test_db_path) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        before = client.summary().total_balance
        saved = client.add_expense(_make_expense())
        client.update_record_full("expense", saved.key, amount=Decimal("1234.56"))
        after = client.summary().total_balance

    assert after == before


@pytest.mark.sit
def test_update_record_full_rejects_unknown_field(test_db_path) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense())
        with pytest.raises(ValueError):
            client.update_record_full("expense", saved.key, invoice_no="INV-1")


@pytest.mark.sit
def test_delta_history_matches_current_state(test_db_path) -> None:
    operating = account_key(test_db_path, "Operating")
    reserve = account_key(test_db_path, "Reserve")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense(amount="100"))
        client.update_record_status("expense", saved.key, "paid")
        client.update_record_full("expense", saved.key, amount=Decimal("150"))
        client.update_record_full("expense", saved.key, account_key=reserve)
        client.update_record_status("expense", saved.key, "approved")
        client.update_record_status("expense", saved.key, "closed")
        client.update_record_full("expense", saved.key, amount=Decimal("120"))

        assert client.get_account_balance(operating) == Decimal("5000.00")
        assert client.get_account_balance(reserve) == Decimal("680.00")


@pytest.mark.sit
def test_attachments_do_not_touch_balances(test_db_path) -> None:
    operating = account_key(test_db_path, "Operating")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense(status="paid"))
        first = client.add_attachment(
            "expense", saved.key, AttachmentDTO(file_name="quote.pdf", file_path="/q/quote.pdf")
        )
        client.add_attachment(
            "expense",
            saved.key,
            AttachmentDTO(file_name="vendor.vcf", file_path="/c/vendor.vcf", source="contact"),
        )
        removed = client.delete_attachment(first.key)
        remaining = client.list_attachments("expense", saved.key)

        assert client.get_account_balance(operating) == Decimal("4000.00")

    assert removed.file_name == "quote.pdf"
    assert [attachment.source for attachment in remaining] == ["contact"]
    with pytest.raises(NotFoundError):
        with ProjectBudgetClient(db_path=test_db_path) as client:
            client.add_attachment(
                "expense", 9999, AttachmentDTO(file_name="x.pdf", file_path="/x.pdf")
            )


@pytest.mark.sit
def test_sub_cent_amounts_are_rejected_not_rounded(test_db_path) -> None:
    operating = account_key(test_db_path, "Operating")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        with pytest.raises(InvalidAmountError):
            client.add_expense(_make_expense(amount="1000.005"))
        with pytest.raises(InvalidAmountError):
            client.create_record(
                "expense",
                {"project_code": "PRJ-001", "account_code": "5100", "amount": "0.004"},
            )

        saved = client.add_expense(_make_expense(status="paid"))
        with pytest.raises(InvalidAmountError):
            client.update_record_full("expense", saved.key, amount="1500.001")

        assert client.get_record("expense", saved.key).amount == Decimal("1000.00")
        assert client.get_account_balance(operating) == Decimal("4000.00")


@pytest.mark.sit
def test_oversized_amounts_raise_invalid_amount(test_db_path) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        with pytest.raises(InvalidAmountError):
            client.create_record(
                "expense",
                {"project_code": "PRJ-001", "account_code": "5100", "amount": "1e30"},
            )

        saved = client.add_expense(_make_expense())
        with pytest.raises(InvalidAmountError):
            client.update_record_full("expense", saved.key, amount="1e30")

        assert len(client.list_records("expense")) == 1


@pytest.mark.sit
def test_negative_net_amount_edit_is_invalid_amount(test_db_path) -> None:
    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense(net_amount=Decimal("900")))
        with pytest.raises(InvalidAmountError):
            client.update_record_full("expense", saved.key, net_amount=Decimal("-1"))

        assert client.get_record("expense", saved.key).net_amount == Decimal("900.00")


@pytest.mark.sit
def test_zero_net_amount_reconciles_on_amount(test_db_path) -> None:
    operating = account_key(test_db_path, "Operating")

    with ProjectBudgetClient(db_path=test_db_path) as client:
        saved = client.add_expense(_make_expense(status="paid", net_amount=Decimal("900")))
        assert client.get_account_balance(operating) == Decimal("4100.00")

        updated = client.update_record_full("expense", saved.key, net_amount=Decimal("0"), description=None)

        assert updated.net_amount == Decimal("0.00")
        assert updated.description == "Site survey"
        assert client.get_account_balance(operating) == Decimal("4000.00")
