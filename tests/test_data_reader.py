"""Tests for the dashboard's read-only data access over a real ledger."""

from decimal import Decimal
from pathlib import Path

import pytest

import data_reader
from journal.writer import JournalWriter
from ledger.models import Side
from ledger.store import SqliteLedgerStore
from settlement.engine import OrderSpec, SettlementEngine


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    from conftest import make_stock

    engine = SettlementEngine(
        SqliteLedgerStore(tmp_path / "ledger.db"),
        journal=JournalWriter(tmp_path / "journal.jsonl"),
    )
    engine.seed_catalog([make_stock("ACME", "100.00")])
    user = engine.ensure_user("demo", "1000.00")
    engine.create_order(OrderSpec(user.id, "ACME", "NSE", Side.BUY, 2, "100.00"))
    engine.create_order(OrderSpec(user.id, "ACME", "NSE", Side.BUY, 1, "90.00"))
    return tmp_path


def test_users_and_cash(data_dir: Path) -> None:
    users = data_reader.list_users(data_dir)
    assert [u["username"] for u in users] == ["demo"]
    assert data_reader.get_cash(users[0]["id"], data_dir) == 800.0
    assert data_reader.get_cash(999, data_dir) is None


def test_positions_orders_trades(data_dir: Path) -> None:
    [pos] = data_reader.get_positions(1, data_dir)
    assert pos["symbol"] == "ACME"
    assert pos["quantity"] == 2
    assert Decimal(pos["average_price"]) == Decimal("100.00")

    [pending] = data_reader.get_pending_orders(1, data_dir)
    assert pending["limit_price"] == "90.00"

    [trade] = data_reader.get_recent_trades(1, data_dir=data_dir)
    assert trade["total_value"] == "200.00"


def test_journal_events_newest_first(data_dir: Path) -> None:
    events = data_reader.get_recent_journal_events(data_dir=data_dir)
    assert [e["event"] for e in events] == ["order_created", "trade", "order_created"]
    trades = data_reader.get_recent_journal_events(event_type="trade", data_dir=data_dir)
    assert len(trades) == 1
    assert len(data_reader.get_recent_journal_events(limit=1, data_dir=data_dir)) == 1


def test_missing_data_dir(tmp_path: Path) -> None:
    empty = tmp_path / "nothing"
    assert data_reader.list_users(empty) == []
    assert data_reader.get_positions(1, empty) == []
    assert data_reader.get_recent_journal_events(data_dir=empty) == []


def test_env_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LEDGER_DASHBOARD_DATA_DIR", str(tmp_path))
    assert data_reader._data_dir() == tmp_path
