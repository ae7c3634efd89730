"""Wire config into engine, demo user and quote source for CLI commands."""

from __future__ import annotations

import logging

from config.catalog import load_catalog
from config.loader import AppConfig
from journal import JournalWriter
from ledger.models import User
from ledger.store import SqliteLedgerStore
from quotes import StaticQuoteSource, get_quote_source
from settlement.engine import SettlementEngine

logger = logging.getLogger("ledger.cli")


def open_engine(cfg: AppConfig, *, seed: bool = False) -> tuple[SettlementEngine, User]:
    """Open the ledger, ensure the demo user exists; seed the catalog on first use."""
    store = SqliteLedgerStore(cfg.ledger.path)
    journal = JournalWriter(cfg.journal.path, echo_stdout=cfg.journal.echo_stdout)
    engine = SettlementEngine(store, enforce_limits=cfg.ledger.enforce_limits, journal=journal)
    user = engine.ensure_user(cfg.ledger.demo_username, cfg.ledger.initial_balance)
    if seed or not engine.list_stocks():
        stocks = load_catalog(cfg.ledger.catalog_path or None)
        engine.seed_catalog(stocks)
    return engine, user


def open_quote_source(cfg: AppConfig, engine: SettlementEngine | None = None):
    """Configured quote source. A static source is primed with the catalog's last prices."""
    source = get_quote_source(
        cfg.quotes.source,
        timeout=cfg.quotes.timeout_seconds,
        api_key=cfg.quotes.api_key,
        api_secret=cfg.quotes.api_secret,
    )
    if isinstance(source, StaticQuoteSource) and engine is not None:
        for stock in engine.list_stocks():
            source.set_price(stock.symbol, stock.exchange, stock.current_price)
    return source
