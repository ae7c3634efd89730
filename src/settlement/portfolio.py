"""Portfolio summary: positions marked to live quotes, plus cash."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from ledger.models import Position, to_money
from quotes.source import QuoteSource, QuoteUnavailable

logger = logging.getLogger("ledger.portfolio")

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class PositionView:
    symbol: str
    exchange: str
    quantity: int
    average_price: Decimal
    current_price: Decimal
    current_value: Decimal
    investment: Decimal
    unrealized_pnl: Decimal
    unrealized_pnl_percent: Decimal
    live: bool = True


@dataclass(frozen=True)
class PortfolioSummary:
    total_value: Decimal
    total_investment: Decimal
    total_pnl: Decimal
    total_pnl_percent: Decimal
    available_cash: Decimal
    positions: list[PositionView] = field(default_factory=list)


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole == 0:
        return ZERO
    return to_money(part / whole * 100)


def mark_position(position: Position, quotes: QuoteSource) -> PositionView:
    """Value a position at the live price. Falls back to cost (zero P&L) when no quote."""
    investment = position.investment
    try:
        price = quotes.get_price(position.symbol, position.exchange).price
        live = True
    except QuoteUnavailable as exc:
        logger.warning("Marking %s/%s at cost: %s", position.symbol, position.exchange, exc)
        price = position.average_price
        live = False
    value = to_money(position.quantity * price)
    pnl = value - investment
    return PositionView(
        symbol=position.symbol,
        exchange=position.exchange,
        quantity=position.quantity,
        average_price=position.average_price,
        current_price=price,
        current_value=value,
        investment=investment,
        unrealized_pnl=pnl,
        unrealized_pnl_percent=_percent(pnl, investment),
        live=live,
    )


def summarize(cash: Decimal, positions: list[Position], quotes: QuoteSource) -> PortfolioSummary:
    views = [mark_position(p, quotes) for p in positions]
    total_investment = sum((v.investment for v in views), ZERO)
    total_pnl = sum((v.unrealized_pnl for v in views), ZERO)
    total_value = cash + sum((v.current_value for v in views), ZERO)
    return PortfolioSummary(
        total_value=to_money(total_value),
        total_investment=to_money(total_investment),
        total_pnl=to_money(total_pnl),
        total_pnl_percent=_percent(total_pnl, total_investment),
        available_cash=to_money(cash),
        positions=views,
    )
