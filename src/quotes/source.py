"""
Quote sources: given (symbol, exchange), return a current price snapshot or fail.

Implement QuoteSource per provider (Yahoo Finance, Alpaca, ...). Every failure
surfaces as QuoteUnavailable so callers can treat it as transient.
"""

from decimal import Decimal
from typing import Mapping, Protocol

from ledger.models import Quote, to_money


class QuoteUnavailable(Exception):
    """No price for the instrument right now. Transient; retry later."""

    def __init__(self, symbol: str, exchange: str, reason: str = "") -> None:
        msg = f"Quote unavailable for {symbol} ({exchange})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.symbol = symbol
        self.exchange = exchange
        self.reason = reason


class QuoteSource(Protocol):
    """Protocol for quote sources."""

    def get_price(self, symbol: str, exchange: str) -> Quote:
        """Return a fresh Quote or raise QuoteUnavailable."""
        ...


class StaticQuoteSource:
    """Fixed prices keyed by (symbol, exchange); for tests and offline runs."""

    def __init__(self, prices: Mapping[tuple[str, str], Decimal | str | float] | None = None) -> None:
        self._prices: dict[tuple[str, str], Decimal] = {
            key: to_money(value) for key, value in (prices or {}).items()
        }

    def set_price(self, symbol: str, exchange: str, price: Decimal | str | float) -> None:
        self._prices[(symbol, exchange)] = to_money(price)

    def get_price(self, symbol: str, exchange: str) -> Quote:
        price = self._prices.get((symbol, exchange))
        if price is None:
            raise QuoteUnavailable(symbol, exchange, "no static price")
        return Quote(
            symbol=symbol,
            exchange=exchange,
            price=price,
            high=price,
            low=price,
            open=price,
            previous_close=price,
            volume=0,
        )
