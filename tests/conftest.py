"""Pytest fixtures: a SQLite ledger on tmp_path with a small seeded catalog."""

from decimal import Decimal
from pathlib import Path

import pytest

from ledger.models import Stock, User, utcnow
from ledger.store import SqliteLedgerStore
from quotes.source import StaticQuoteSource
from settlement.engine import SettlementEngine


def make_stock(symbol: str, price: str, exchange: str = "NSE", name: str | None = None) -> Stock:
    p = Decimal(price)
    return Stock(
        id=0,
        symbol=symbol,
        exchange=exchange,
        name=name or f"{symbol} Ltd",
        current_price=p,
        previous_close=p,
        day_high=p,
        day_low=p,
        day_open=p,
        volume=0,
        last_updated=utcnow(),
    )


@pytest.fixture
def store(tmp_path: Path) -> SqliteLedgerStore:
    return SqliteLedgerStore(tmp_path / "ledger.db")


@pytest.fixture
def engine(store: SqliteLedgerStore) -> SettlementEngine:
    eng = SettlementEngine(store)
    eng.seed_catalog(
        [
            make_stock("ACME", "100.00"),
            make_stock("BETA", "50.00"),
            make_stock("GAMMA", "200.00", exchange="BSE"),
        ]
    )
    return eng


@pytest.fixture
def user(engine: SettlementEngine) -> User:
    return engine.ensure_user("alice", "100000.00")


@pytest.fixture
def quotes() -> StaticQuoteSource:
    return StaticQuoteSource(
        {
            ("ACME", "NSE"): "100.00",
            ("BETA", "NSE"): "50.00",
            ("GAMMA", "BSE"): "200.00",
        }
    )
