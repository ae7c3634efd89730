"""
Ledger data model: User, Stock, Order, Position, Trade, Quote.

Money is fixed-point (Decimal, 2 places, half-up). Plain dataclasses; no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

CENT = Decimal("0.01")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Quantize to 2 decimals. Floats go through str() to avoid binary noise."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderStatus(str, Enum):
    """PENDING until settled or cancelled. EXECUTED and CANCELLED are terminal."""

    PENDING = "PENDING"
    EXECUTED = "EXECUTED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING


class BracketType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    ABSOLUTE = "ABSOLUTE"


@dataclass(frozen=True)
class Bracket:
    """Take-profit or stop-loss spec. Stored on the order, not evaluated."""

    type: BracketType
    value: Decimal

    @classmethod
    def parse(cls, text: str) -> Bracket:
        """Parse ``TYPE:VALUE`` (e.g. ``PERCENTAGE:5``)."""
        kind, sep, raw = text.partition(":")
        if not sep:
            raise ValueError(f"Expected TYPE:VALUE, got {text!r}")
        try:
            value = to_money(raw.strip())
        except InvalidOperation:
            raise ValueError(f"Bracket value is not a number: {raw.strip()!r}") from None
        return cls(type=BracketType(kind.strip().upper()), value=value)


@dataclass
class User:
    id: int
    username: str
    balance: Decimal


@dataclass
class Stock:
    id: int
    symbol: str
    exchange: str
    name: str
    current_price: Decimal
    previous_close: Decimal
    day_high: Decimal
    day_low: Decimal
    day_open: Decimal
    volume: int
    last_updated: datetime


@dataclass
class Order:
    id: int
    user_id: int
    symbol: str
    exchange: str
    side: Side
    quantity: int
    limit_price: Decimal
    status: OrderStatus
    created_at: datetime
    take_profit: Bracket | None = None
    stop_loss: Bracket | None = None
    executed_price: Decimal | None = None
    executed_at: datetime | None = None


@dataclass
class Position:
    id: int
    user_id: int
    symbol: str
    exchange: str
    quantity: int
    average_price: Decimal
    current_value: Decimal
    created_at: datetime
    updated_at: datetime

    @property
    def investment(self) -> Decimal:
        return to_money(self.quantity * self.average_price)


@dataclass(frozen=True)
class Trade:
    """Immutable execution record. One per settled order."""

    id: int
    order_id: int
    user_id: int
    symbol: str
    exchange: str
    side: Side
    quantity: int
    price: Decimal
    total_value: Decimal
    executed_at: datetime


@dataclass(frozen=True)
class Quote:
    """Price snapshot from a quote source."""

    symbol: str
    exchange: str
    price: Decimal
    high: Decimal
    low: Decimal
    open: Decimal
    previous_close: Decimal
    volume: int

    @property
    def change(self) -> Decimal:
        return to_money(self.price - self.previous_close)

    @property
    def change_percent(self) -> Decimal:
        if self.previous_close == 0:
            return Decimal("0.00")
        return to_money((self.price - self.previous_close) / self.previous_close * 100)
