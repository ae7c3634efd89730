"""
Human-readable ledger output for the terminal.

Every CLI command uses these formatters. Journal receives the same data as JSON.
"""

from __future__ import annotations

from decimal import Decimal

from ledger.models import Order, Quote, Stock, Trade, User
from settlement.portfolio import PortfolioSummary


def _fmt_volume(vol: int) -> str:
    if vol >= 1_000_000:
        return f"{vol / 1_000_000:.2f}M"
    if vol >= 1_000:
        return f"{vol / 1_000:.0f}K"
    return str(int(vol))


def _fmt_money(value: Decimal) -> str:
    return f"{value:,.2f}"


def _fmt_signed(value: Decimal) -> str:
    return f"{value:+,.2f}"


def format_stocks(stocks: list[Stock]) -> str:
    if not stocks:
        return "No stocks in catalog."
    lines = [f"{'SYMBOL':<12} {'EXCH':<5} {'PRICE':>12} {'CHANGE':>10}  NAME"]
    for s in stocks:
        change = s.current_price - s.previous_close
        lines.append(
            f"{s.symbol:<12} {s.exchange:<5} {_fmt_money(s.current_price):>12} "
            f"{_fmt_signed(change):>10}  {s.name}"
        )
    return "\n".join(lines)


def format_search_results(matches: list[dict]) -> str:
    lines = [f"{'SYMBOL':<12} {'EXCH':<5}  NAME"]
    for m in matches:
        lines.append(f"{m['symbol']:<12} {m['exchange']:<5}  {m.get('name', '')}")
    return "\n".join(lines)


def format_quote(quote: Quote) -> str:
    lines = [
        f"--- {quote.symbol} ({quote.exchange}) ---",
        f"Price      : {_fmt_money(quote.price)}  ({_fmt_signed(quote.change)}, {quote.change_percent:+.2f}%)",
        f"Open       : {_fmt_money(quote.open)}",
        f"High / Low : {_fmt_money(quote.high)} / {_fmt_money(quote.low)}",
        f"Prev close : {_fmt_money(quote.previous_close)}",
        f"Volume     : {_fmt_volume(quote.volume)}",
    ]
    return "\n".join(lines)


def format_order(order: Order) -> str:
    line = (
        f"#{order.id:<5} {order.side.value:<4} {order.quantity:>6} {order.symbol}/{order.exchange} "
        f"@ {_fmt_money(order.limit_price)}  [{order.status.value}]"
    )
    if order.executed_price is not None:
        line += f"  filled {_fmt_money(order.executed_price)}"
    brackets = []
    if order.take_profit is not None:
        brackets.append(f"TP {order.take_profit.type.value}:{order.take_profit.value}")
    if order.stop_loss is not None:
        brackets.append(f"SL {order.stop_loss.type.value}:{order.stop_loss.value}")
    if brackets:
        line += "  (" + ", ".join(brackets) + ")"
    return line


def format_orders(orders: list[Order]) -> str:
    if not orders:
        return "No orders."
    return "\n".join(format_order(o) for o in orders)


def format_trades(trades: list[Trade]) -> str:
    if not trades:
        return "No trades yet."
    lines = []
    for t in trades:
        lines.append(
            f"  {t.side.value:<4} {t.quantity:>6} {t.symbol}/{t.exchange} @ {_fmt_money(t.price)}"
            f"  total {_fmt_money(t.total_value)}  order #{t.order_id}  {t.executed_at.isoformat()}"
        )
    return "\n".join(lines)


def format_portfolio(user: User, summary: PortfolioSummary) -> str:
    lines = [
        f"=== Portfolio: {user.username} ===",
        f"Cash        : {_fmt_money(summary.available_cash)}",
        f"Invested    : {_fmt_money(summary.total_investment)}",
        f"Total value : {_fmt_money(summary.total_value)}",
        f"Unrealized  : {_fmt_signed(summary.total_pnl)} ({summary.total_pnl_percent:+.2f}%)",
    ]
    if summary.positions:
        lines.append("")
        for p in summary.positions:
            marker = "" if p.live else "  (no quote, at cost)"
            lines.append(
                f"  {p.symbol}/{p.exchange}: {p.quantity} @ avg {_fmt_money(p.average_price)}"
                f" | now {_fmt_money(p.current_price)} | value {_fmt_money(p.current_value)}"
                f" | P&L {_fmt_signed(p.unrealized_pnl)} ({p.unrealized_pnl_percent:+.2f}%){marker}"
            )
    else:
        lines.append("\nNo open positions.")
    lines.append("===")
    return "\n".join(lines)
