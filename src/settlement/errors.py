"""Settlement error taxonomy. Quote failures live in quotes.source (QuoteUnavailable)."""


class SettlementError(Exception):
    """Base for order and settlement rejections."""


class InvalidOrderSpec(SettlementError):
    """Non-positive quantity or price, or a malformed take-profit/stop-loss."""


class UnknownInstrument(SettlementError):
    """Order references a (symbol, exchange) that is not in the stock catalog."""

    def __init__(self, symbol: str, exchange: str) -> None:
        super().__init__(f"Unknown instrument: {symbol} ({exchange})")
        self.symbol = symbol
        self.exchange = exchange


class InsufficientFunds(SettlementError):
    """BUY would take the cash balance below zero."""


class InsufficientPosition(SettlementError):
    """SELL quantity exceeds the open position."""


class OrderNotFound(SettlementError):
    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id
