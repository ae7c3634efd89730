"""
Ledger: data model and durable storage for users, stocks, orders, positions, trades.
"""

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
)
from ledger.store import LedgerSession, LedgerStore, SqliteLedgerStore

__all__ = [
    "Bracket",
    "BracketType",
    "LedgerSession",
    "LedgerStore",
    "Order",
    "OrderStatus",
    "Position",
    "Quote",
    "Side",
    "SqliteLedgerStore",
    "Stock",
    "Trade",
    "User",
    "to_money",
]
