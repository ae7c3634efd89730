"""
Ledger store: users, stocks, orders, positions, trades (SQLite).

Every unit of work runs inside ``transaction()``. Write transactions start with
BEGIN IMMEDIATE so concurrent writers (threads or processes) serialize on the
database lock; any exception rolls the whole unit back.
Decimals are stored as TEXT, timestamps as UTC ISO strings.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import ContextManager, Iterator, Protocol

from ledger.models import (
    Bracket,
    BracketType,
    Order,
    OrderStatus,
    Position,
    Quote,
    Side,
    Stock,
    Trade,
    User,
    to_money,
    utcnow,
)


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _ts(ts: datetime) -> str:
    return _utc(ts).isoformat()


def _parse_ts(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    return _utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))


def _dec(raw: str | None) -> Decimal | None:
    return None if raw is None else Decimal(raw)


def _money_str(value: Decimal) -> str:
    return str(to_money(value))


class LedgerSession(Protocol):
    """Operations available inside one ledger transaction."""

    def get_user(self, user_id: int) -> User | None: ...
    def get_user_by_username(self, username: str) -> User | None: ...
    def create_user(self, username: str, balance: Decimal) -> User: ...
    def update_user_balance(self, user_id: int, balance: Decimal) -> None: ...

    def get_stock(self, symbol: str, exchange: str) -> Stock | None: ...
    def list_stocks(self) -> list[Stock]: ...
    def search_stocks(self, query: str) -> list[Stock]: ...
    def upsert_stock(self, stock: Stock) -> Stock: ...
    def update_stock_quote(self, quote: Quote, ts: datetime) -> bool: ...

    def create_order(
        self,
        user_id: int,
        symbol: str,
        exchange: str,
        side: Side,
        quantity: int,
        limit_price: Decimal,
        take_profit: Bracket | None = None,
        stop_loss: Bracket | None = None,
    ) -> Order: ...
    def get_order(self, order_id: int) -> Order | None: ...
    def list_orders(self, user_id: int) -> list[Order]: ...
    def list_active_orders(self, user_id: int) -> list[Order]: ...
    def mark_order_executed(self, order_id: int, price: Decimal, ts: datetime) -> bool: ...
    def mark_order_cancelled(self, order_id: int) -> bool: ...

    def list_positions(self, user_id: int) -> list[Position]: ...
    def get_position(self, user_id: int, symbol: str, exchange: str) -> Position | None: ...
    def create_position(
        self, user_id: int, symbol: str, exchange: str, quantity: int, average_price: Decimal
    ) -> Position: ...
    def update_position(self, position_id: int, quantity: int, average_price: Decimal) -> None: ...
    def delete_position(self, position_id: int) -> None: ...

    def create_trade(self, order: Order, price: Decimal, total_value: Decimal, ts: datetime) -> Trade: ...
    def list_trades(self, user_id: int, limit: int | None = None) -> list[Trade]: ...
    def get_trade_for_order(self, order_id: int) -> Trade | None: ...


class LedgerStore(Protocol):
    """Durable keyed storage with atomic units of work."""

    def transaction(self, *, write: bool = True) -> ContextManager[LedgerSession]: ...


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE,
        balance TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS stocks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        symbol TEXT NOT NULL,
        exchange TEXT NOT NULL,
        name TEXT NOT NULL,
        current_price TEXT NOT NULL,
        previous_close TEXT NOT NULL,
        day_high TEXT NOT NULL,
        day_low TEXT NOT NULL,
        day_open TEXT NOT NULL,
        volume INTEGER NOT NULL DEFAULT 0,
        last_updated TEXT NOT NULL,
        UNIQUE (symbol, exchange)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS orders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        symbol TEXT NOT NULL,
        exchange TEXT NOT NULL,
        side TEXT NOT NULL,
        quantity INTEGER NOT NULL,
        limit_price TEXT NOT NULL,
        take_profit_type TEXT,
        take_profit_value TEXT,
        stop_loss_type TEXT,
        stop_loss_value TEXT,
        status TEXT NOT NULL DEFAULT 'PENDING',
        executed_price TEXT,
        executed_at TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS positions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        symbol TEXT NOT NULL,
        exchange TEXT NOT NULL,
        quantity INTEGER NOT NULL,
        average_price TEXT NOT NULL,
        current_value TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (user_id, symbol, exchange)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS trades (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_id INTEGER NOT NULL UNIQUE,
        user_id INTEGER NOT NULL,
        symbol TEXT NOT NULL,
        exchange TEXT NOT NULL,
        side TEXT NOT NULL,
        quantity INTEGER NOT NULL,
        price TEXT NOT NULL,
        total_value TEXT NOT NULL,
        executed_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_orders_user_status ON orders (user_id, status)",
)


def _row_to_user(r: sqlite3.Row) -> User:
    return User(id=r["id"], username=r["username"], balance=Decimal(r["balance"]))


def _row_to_stock(r: sqlite3.Row) -> Stock:
    return Stock(
        id=r["id"],
        symbol=r["symbol"],
        exchange=r["exchange"],
        name=r["name"],
        current_price=Decimal(r["current_price"]),
        previous_close=Decimal(r["previous_close"]),
        day_high=Decimal(r["day_high"]),
        day_low=Decimal(r["day_low"]),
        day_open=Decimal(r["day_open"]),
        volume=r["volume"],
        last_updated=_parse_ts(r["last_updated"]),
    )


def _bracket(kind: str | None, value: str | None) -> Bracket | None:
    if kind is None or value is None:
        return None
    return Bracket(type=BracketType(kind), value=Decimal(value))


def _row_to_order(r: sqlite3.Row) -> Order:
    return Order(
        id=r["id"],
        user_id=r["user_id"],
        symbol=r["symbol"],
        exchange=r["exchange"],
        side=Side(r["side"]),
        quantity=r["quantity"],
        limit_price=Decimal(r["limit_price"]),
        status=OrderStatus(r["status"]),
        created_at=_parse_ts(r["created_at"]),
        take_profit=_bracket(r["take_profit_type"], r["take_profit_value"]),
        stop_loss=_bracket(r["stop_loss_type"], r["stop_loss_value"]),
        executed_price=_dec(r["executed_price"]),
        executed_at=_parse_ts(r["executed_at"]),
    )


def _row_to_position(r: sqlite3.Row) -> Position:
    return Position(
        id=r["id"],
        user_id=r["user_id"],
        symbol=r["symbol"],
        exchange=r["exchange"],
        quantity=r["quantity"],
        average_price=Decimal(r["average_price"]),
        current_value=Decimal(r["current_value"]),
        created_at=_parse_ts(r["created_at"]),
        updated_at=_parse_ts(r["updated_at"]),
    )


def _row_to_trade(r: sqlite3.Row) -> Trade:
    return Trade(
        id=r["id"],
        order_id=r["order_id"],
        user_id=r["user_id"],
        symbol=r["symbol"],
        exchange=r["exchange"],
        side=Side(r["side"]),
        quantity=r["quantity"],
        price=Decimal(r["price"]),
        total_value=Decimal(r["total_value"]),
        executed_at=_parse_ts(r["executed_at"]),
    )


class SqliteSession:
    """LedgerSession over one open connection. Does not commit; the store does."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._c = conn

    # ---------- users ----------

    def get_user(self, user_id: int) -> User | None:
        row = self._c.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _row_to_user(row) if row else None

    def get_user_by_username(self, username: str) -> User | None:
        row = self._c.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
        return _row_to_user(row) if row else None

    def create_user(self, username: str, balance: Decimal) -> User:
        cur = self._c.execute(
            "INSERT INTO users (username, balance) VALUES (?, ?)",
            (username, _money_str(balance)),
        )
        return User(id=cur.lastrowid, username=username, balance=to_money(balance))

    def update_user_balance(self, user_id: int, balance: Decimal) -> None:
        self._c.execute("UPDATE users SET balance = ? WHERE id = ?", (_money_str(balance), user_id))

    # ---------- stocks ----------

    def get_stock(self, symbol: str, exchange: str) -> Stock | None:
        row = self._c.execute(
            "SELECT * FROM stocks WHERE symbol = ? AND exchange = ?", (symbol, exchange)
        ).fetchone()
        return _row_to_stock(row) if row else None

    def list_stocks(self) -> list[Stock]:
        rows = self._c.execute("SELECT * FROM stocks ORDER BY exchange, symbol").fetchall()
        return [_row_to_stock(r) for r in rows]

    def search_stocks(self, query: str) -> list[Stock]:
        pattern = f"%{query.lower()}%"
        rows = self._c.execute(
            "SELECT * FROM stocks WHERE lower(symbol) LIKE ? OR lower(name) LIKE ? ORDER BY symbol",
            (pattern, pattern),
        ).fetchall()
        return [_row_to_stock(r) for r in rows]

    def upsert_stock(self, stock: Stock) -> Stock:
        """Insert or replace by (symbol, exchange). The id of an existing row is kept."""
        self._c.execute(
            """
            INSERT INTO stocks (symbol, exchange, name, current_price, previous_close,
                                day_high, day_low, day_open, volume, last_updated)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (symbol, exchange) DO UPDATE SET
                name = excluded.name,
                current_price = excluded.current_price,
                previous_close = excluded.previous_close,
                day_high = excluded.day_high,
                day_low = excluded.day_low,
                day_open = excluded.day_open,
                volume = excluded.volume,
                last_updated = excluded.last_updated
            """,
            (
                stock.symbol,
                stock.exchange,
                stock.name,
                _money_str(stock.current_price),
                _money_str(stock.previous_close),
                _money_str(stock.day_high),
                _money_str(stock.day_low),
                _money_str(stock.day_open),
                stock.volume,
                _ts(stock.last_updated),
            ),
        )
        return self.get_stock(stock.symbol, stock.exchange)

    def update_stock_quote(self, quote: Quote, ts: datetime) -> bool:
        """Apply a fresh quote to an existing catalog entry. False if not in catalog."""
        cur = self._c.execute(
            """
            UPDATE stocks SET current_price = ?, previous_close = ?, day_high = ?,
                              day_low = ?, day_open = ?, volume = ?, last_updated = ?
            WHERE symbol = ? AND exchange = ?
            """,
            (
                _money_str(quote.price),
                _money_str(quote.previous_close),
                _money_str(quote.high),
                _money_str(quote.low),
                _money_str(quote.open),
                quote.volume,
                _ts(ts),
                quote.symbol,
                quote.exchange,
            ),
        )
        return cur.rowcount > 0

    # ---------- orders ----------

    def create_order(
        self,
        user_id: int,
        symbol: str,
        exchange: str,
        side: Side,
        quantity: int,
        limit_price: Decimal,
        take_profit: Bracket | None = None,
        stop_loss: Bracket | None = None,
    ) -> Order:
        created = utcnow()
        cur = self._c.execute(
            """
            INSERT INTO orders (user_id, symbol, exchange, side, quantity, limit_price,
                                take_profit_type, take_profit_value, stop_loss_type, stop_loss_value,
                                status, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user_id,
                symbol,
                exchange,
                side.value,
                quantity,
                _money_str(limit_price),
                take_profit.type.value if take_profit else None,
                _money_str(take_profit.value) if take_profit else None,
                stop_loss.type.value if stop_loss else None,
                _money_str(stop_loss.value) if stop_loss else None,
                OrderStatus.PENDING.value,
                _ts(created),
            ),
        )
        return self.get_order(cur.lastrowid)

    def get_order(self, order_id: int) -> Order | None:
        row = self._c.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
        return _row_to_order(row) if row else None

    def list_orders(self, user_id: int) -> list[Order]:
        rows = self._c.execute(
            "SELECT * FROM orders WHERE user_id = ? ORDER BY created_at DESC, id DESC", (user_id,)
        ).fetchall()
        return [_row_to_order(r) for r in rows]

    def list_active_orders(self, user_id: int) -> list[Order]:
        rows = self._c.execute(
            "SELECT * FROM orders WHERE user_id = ? AND status = ? ORDER BY id ASC",
            (user_id, OrderStatus.PENDING.value),
        ).fetchall()
        return [_row_to_order(r) for r in rows]

    def mark_order_executed(self, order_id: int, price: Decimal, ts: datetime) -> bool:
        """PENDING -> EXECUTED. False if the order was no longer PENDING."""
        cur = self._c.execute(
            "UPDATE orders SET status = ?, executed_price = ?, executed_at = ? WHERE id = ? AND status = ?",
            (OrderStatus.EXECUTED.value, _money_str(price), _ts(ts), order_id, OrderStatus.PENDING.value),
        )
        return cur.rowcount == 1

    def mark_order_cancelled(self, order_id: int) -> bool:
        """PENDING -> CANCELLED. False if the order was no longer PENDING."""
        cur = self._c.execute(
            "UPDATE orders SET status = ? WHERE id = ? AND status = ?",
            (OrderStatus.CANCELLED.value, order_id, OrderStatus.PENDING.value),
        )
        return cur.rowcount == 1

    # ---------- positions ----------

    def list_positions(self, user_id: int) -> list[Position]:
        rows = self._c.execute(
            "SELECT * FROM positions WHERE user_id = ? ORDER BY exchange, symbol", (user_id,)
        ).fetchall()
        return [_row_to_position(r) for r in rows]

    def get_position(self, user_id: int, symbol: str, exchange: str) -> Position | None:
        row = self._c.execute(
            "SELECT * FROM positions WHERE user_id = ? AND symbol = ? AND exchange = ?",
            (user_id, symbol, exchange),
        ).fetchone()
        return _row_to_position(row) if row else None

    def create_position(
        self, user_id: int, symbol: str, exchange: str, quantity: int, average_price: Decimal
    ) -> Position:
        now = _ts(utcnow())
        cur = self._c.execute(
            """
            INSERT INTO positions (user_id, symbol, exchange, quantity, average_price,
                                   current_value, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user_id,
                symbol,
                exchange,
                quantity,
                _money_str(average_price),
                _money_str(quantity * average_price),
                now,
                now,
            ),
        )
        row = self._c.execute("SELECT * FROM positions WHERE id = ?", (cur.lastrowid,)).fetchone()
        return _row_to_position(row)

    def update_position(self, position_id: int, quantity: int, average_price: Decimal) -> None:
        self._c.execute(
            "UPDATE positions SET quantity = ?, average_price = ?, current_value = ?, updated_at = ? WHERE id = ?",
            (
                quantity,
                _money_str(average_price),
                _money_str(quantity * average_price),
                _ts(utcnow()),
                position_id,
            ),
        )

    def delete_position(self, position_id: int) -> None:
        self._c.execute("DELETE FROM positions WHERE id = ?", (position_id,))

    # ---------- trades ----------

    def create_trade(self, order: Order, price: Decimal, total_value: Decimal, ts: datetime) -> Trade:
        cur = self._c.execute(
            """
            INSERT INTO trades (order_id, user_id, symbol, exchange, side, quantity,
                                price, total_value, executed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                order.id,
                order.user_id,
                order.symbol,
                order.exchange,
                order.side.value,
                order.quantity,
                _money_str(price),
                _money_str(total_value),
                _ts(ts),
            ),
        )
        return Trade(
            id=cur.lastrowid,
            order_id=order.id,
            user_id=order.user_id,
            symbol=order.symbol,
            exchange=order.exchange,
            side=order.side,
            quantity=order.quantity,
            price=to_money(price),
            total_value=to_money(total_value),
            executed_at=_utc(ts),
        )

    def list_trades(self, user_id: int, limit: int | None = None) -> list[Trade]:
        q = "SELECT * FROM trades WHERE user_id = ? ORDER BY executed_at DESC, id DESC"
        params: list = [user_id]
        if limit is not None:
            q += " LIMIT ?"
            params.append(limit)
        rows = self._c.execute(q, params).fetchall()
        return [_row_to_trade(r) for r in rows]

    def get_trade_for_order(self, order_id: int) -> Trade | None:
        row = self._c.execute("SELECT * FROM trades WHERE order_id = ?", (order_id,)).fetchone()
        return _row_to_trade(row) if row else None


class SqliteLedgerStore:
    """SQLite-backed ledger. One file per path; a fresh connection per transaction."""

    def __init__(self, path: str | Path, *, timeout: float = 10.0) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout = timeout
        self._init_schema()

    @property
    def path(self) -> Path:
        return self._path

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self._path),
            timeout=self._timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        conn = self._conn()
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            for stmt in _SCHEMA:
                conn.execute(stmt)
        finally:
            conn.close()

    @contextmanager
    def transaction(self, *, write: bool = True) -> Iterator[SqliteSession]:
        """Run a unit of work. Commits on success, rolls back on any exception."""
        conn = self._conn()
        try:
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            try:
                yield SqliteSession(conn)
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()
