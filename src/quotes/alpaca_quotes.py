"""
Alpaca quote source: implements QuoteSource using the alpaca-py snapshot endpoint.

US equities only; the exchange argument is carried through to the Quote untouched.
Free tier uses IEX data; SIP requires Algo Trader Plus subscription.
"""

import logging

from ledger.models import Quote, to_money
from quotes.source import QuoteUnavailable

logger = logging.getLogger(__name__)


class AlpacaQuoteSource:
    """
    Fetch the latest snapshot (trade, daily bar, previous daily bar) per symbol.

    API keys via constructor (typically from AppConfig, sourced from env vars).
    """

    def __init__(self, api_key: str, api_secret: str, *, feed: str = "iex") -> None:
        if not api_key or not api_secret:
            raise ValueError(
                "Alpaca API key and secret are required. "
                "Set APCA_API_KEY_ID and APCA_API_SECRET_KEY environment variables."
            )
        try:
            from alpaca.data.historical import StockHistoricalDataClient
        except ImportError:
            raise ImportError(
                "alpaca-py is required for AlpacaQuoteSource. "
                "Install with: pip install 'paper-ledger[alpaca]'"
            )
        self._client = StockHistoricalDataClient(api_key, api_secret)
        self._feed = feed

    def get_price(self, symbol: str, exchange: str) -> Quote:
        from alpaca.data.enums import DataFeed
        from alpaca.data.requests import StockSnapshotRequest

        request_params = StockSnapshotRequest(
            symbol_or_symbols=symbol,
            feed=DataFeed(self._feed.lower()),
        )
        try:
            response = self._client.get_stock_snapshot(request_params)
        except Exception as exc:
            raise QuoteUnavailable(symbol, exchange, str(exc)) from exc

        snapshot = response.get(symbol) if isinstance(response, dict) else None
        if snapshot is None or snapshot.latest_trade is None:
            raise QuoteUnavailable(symbol, exchange, "no snapshot returned")

        price = to_money(snapshot.latest_trade.price)
        daily = snapshot.daily_bar
        prev = snapshot.previous_daily_bar
        logger.debug("Fetched snapshot for %s: %s", symbol, price)
        return Quote(
            symbol=symbol,
            exchange=exchange,
            price=price,
            high=to_money(daily.high) if daily else price,
            low=to_money(daily.low) if daily else price,
            open=to_money(daily.open) if daily else price,
            previous_close=to_money(prev.close) if prev else price,
            volume=int(daily.volume) if daily else 0,
        )
