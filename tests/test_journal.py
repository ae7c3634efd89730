"""Tests for journal writer. Append-only JSON lines; Decimals as strings."""

import json
import tempfile
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from journal.writer import JournalWriter
from ledger.models import Bracket, BracketType, Order, OrderStatus, Side, Trade


def _order() -> Order:
    return Order(
        id=7,
        user_id=1,
        symbol="TCS",
        exchange="NSE",
        side=Side.BUY,
        quantity=3,
        limit_price=Decimal("3700.00"),
        status=OrderStatus.PENDING,
        created_at=datetime(2024, 1, 15, tzinfo=timezone.utc),
        take_profit=Bracket(BracketType.PERCENTAGE, Decimal("5.00")),
    )


def test_journal_writer_append_only() -> None:
    with tempfile.NamedTemporaryFile(mode="w", suffix=".jsonl", delete=False) as f:
        path = Path(f.name)
    try:
        j = JournalWriter(path)
        j.order_created(_order())
        j.trade(
            Trade(1, 7, 1, "TCS", "NSE", Side.BUY, 3, Decimal("3690.00"), Decimal("11070.00"),
                  datetime(2024, 1, 15, 10, tzinfo=timezone.utc))
        )
        with open(path) as f:
            lines = f.readlines()
        assert len(lines) == 2
        r0 = json.loads(lines[0])
        assert r0["event"] == "order_created"
        assert r0["side"] == "BUY"
        assert r0["limit_price"] == "3700.00"
        assert r0["take_profit"] == {"type": "PERCENTAGE", "value": "5.00"}
        assert r0["stop_loss"] is None
        assert "ts_utc" in r0
        r1 = json.loads(lines[1])
        assert r1["event"] == "trade"
        assert r1["total_value"] == "11070.00"
        assert r1["order_id"] == 7
    finally:
        path.unlink(missing_ok=True)


def test_journal_cancel_and_reject(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "journal.jsonl"
    j = JournalWriter(path)
    j.order_cancelled(3)
    j.order_rejected(4, "Need 100.00, available 5.00")
    records = [json.loads(line) for line in path.read_text().splitlines()]
    assert records[0] == {**records[0], "event": "order_cancelled", "order_id": 3}
    assert records[1]["reason"] == "Need 100.00, available 5.00"


def test_journal_echo_stdout(tmp_path: Path, capsys) -> None:
    JournalWriter(tmp_path / "j.jsonl", echo_stdout=True).order_cancelled(1)
    assert '"order_cancelled"' in capsys.readouterr().out
