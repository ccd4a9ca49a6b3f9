"""Pytest configuration and fixtures for system integration tests.

Each SIT test gets its own SQLite ledger file under tmp_path, created through
the repository so the schema always matches the code under test.
"""
from __future__ import annotations

from pathlib import Path
import sys

import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src" / "python"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from tests.utils.database import create_ledger, seed_accounts  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point config discovery at an empty location so a user config never leaks in."""
    path = tmp_path / "config.json"
    monkeypatch.setenv("PROJECTBUDGET_CONFIG", str(path))
    return path


@pytest.fixture()
def empty_db_path(tmp_path: Path) -> Path:
    """Ledger database with schema only."""
    return create_ledger(tmp_path / "empty_ledger.db")


@pytest.fixture()
def test_db_path(tmp_path: Path) -> Path:
    """Ledger database with a primary "Operating" account (5000.00) and a
    secondary "Reserve" account (800.00)."""
    path = create_ledger(tmp_path / "test_ledger.db")
    seed_accounts(path)
    return path


@pytest.fixture()
def sample_expense_payload() -> dict:
    return {
        "project_code": "PRJ-001",
        "account_code": "5100",
        "amount": "1000.00",
        "description": "Site survey",
    }
