"""
Read-only data access for the ledger dashboard.
Reads users, positions, orders and trades from data/ledger.db and events from data/journal.jsonl.
"""

import json
import os
import sqlite3
from pathlib import Path
from typing import Any


def _data_dir() -> Path:
    """Base data dir: repo root / data, or LEDGER_DASHBOARD_DATA_DIR if set."""
    if env := os.environ.get("LEDGER_DASHBOARD_DATA_DIR"):
        return Path(env)
    return Path(__file__).resolve().parent.parent / "data"


def _query(sql: str, params: tuple = (), data_dir: Path | None = None) -> list[dict[str, Any]]:
    db = (data_dir or _data_dir()) / "ledger.db"
    if not db.exists():
        return []
    try:
        with sqlite3.connect(str(db), timeout=5.0) as c:
            c.row_factory = sqlite3.Row
            return [dict(r) for r in c.execute(sql, params).fetchall()]
    except (sqlite3.Error, OSError):
        return []


def list_users(data_dir: Path | None = None) -> list[dict[str, Any]]:
    """Return users as { id, username, balance } ordered by id."""
    return _query("SELECT id, username, balance FROM users ORDER BY id", data_dir=data_dir)


def get_cash(user_id: int, data_dir: Path | None = None) -> float | None:
    """Return the user's cash balance, or None if DB or user missing."""
    rows = _query("SELECT balance FROM users WHERE id = ?", (user_id,), data_dir=data_dir)
    return float(rows[0]["balance"]) if rows else None


def get_positions(user_id: int, data_dir: Path | None = None) -> list[dict[str, Any]]:
    """Return open positions: symbol, exchange, quantity, average_price, current_value."""
    return _query(
        "SELECT symbol, exchange, quantity, average_price, current_value FROM positions"
        " WHERE user_id = ? ORDER BY symbol, exchange",
        (user_id,),
        data_dir=data_dir,
    )


def get_pending_orders(user_id: int, data_dir: Path | None = None) -> list[dict[str, Any]]:
    """Return PENDING orders, oldest first."""
    return _query(
        "SELECT id, symbol, exchange, side, quantity, limit_price, created_at FROM orders"
        " WHERE user_id = ? AND status = 'PENDING' ORDER BY id",
        (user_id,),
        data_dir=data_dir,
    )


def get_recent_trades(user_id: int, limit: int = 20, data_dir: Path | None = None) -> list[dict[str, Any]]:
    """Return recent trades, newest first."""
    return _query(
        "SELECT id, order_id, symbol, exchange, side, quantity, price, total_value, executed_at"
        " FROM trades WHERE user_id = ? ORDER BY executed_at DESC, id DESC LIMIT ?",
        (user_id, limit),
        data_dir=data_dir,
    )


def get_recent_journal_events(
    event_type: str | None = None,
    limit: int = 50,
    data_dir: Path | None = None,
) -> list[dict[str, Any]]:
    """
    Read last `limit` journal events from data/journal.jsonl.
    If event_type is set, filter to that event (order_created, trade, order_cancelled, order_rejected).
    Returns list of parsed JSON objects (newest first).
    """
    path = (data_dir or _data_dir()) / "journal.jsonl"
    if not path.exists():
        return []
    lines: list[str] = []
    try:
        with open(path) as f:
            for line in f:
                line = line.strip()
                if line:
                    lines.append(line)
    except OSError:
        return []
    out = []
    for line in reversed(lines):
        try:
            obj = json.loads(line)
        except json.JSONDecodeError:
            continue
        if event_type is None or obj.get("event") == event_type:
            out.append(obj)
            if limit and len(out) >= limit:
                break
    return out
