"""
Yahoo Finance quote source: public chart endpoint via requests.

NSE symbols map to ``SYMBOL.NS``, BSE to ``SYMBOL.BO``; anything else is sent as-is.
No API key required. Any HTTP, network or payload problem raises QuoteUnavailable.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

import requests

from ledger.models import Quote, to_money
from quotes.source import QuoteUnavailable

logger = logging.getLogger(__name__)

CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/"
SEARCH_URL = "https://query1.finance.yahoo.com/v1/finance/search"

HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
}

_SUFFIXES = {"NSE": ".NS", "BSE": ".BO"}


def format_symbol(symbol: str, exchange: str) -> str:
    """RELIANCE/NSE -> RELIANCE.NS"""
    return symbol + _SUFFIXES.get(exchange.upper(), "")


def extract_base_symbol(yahoo_symbol: str) -> tuple[str, str]:
    """RELIANCE.NS -> ("RELIANCE", "NSE"). Unsuffixed symbols default to NSE."""
    for exchange, suffix in _SUFFIXES.items():
        if yahoo_symbol.endswith(suffix):
            return yahoo_symbol[: -len(suffix)], exchange
    return yahoo_symbol, "NSE"


def _money(raw: Any, default: Decimal) -> Decimal:
    if raw is None:
        return default
    try:
        return to_money(raw)
    except (InvalidOperation, TypeError, ValueError):
        return default


def _first(values: Any) -> Any:
    if isinstance(values, list):
        for v in values:
            if v is not None:
                return v
    return None


class YahooQuoteSource:
    """Fetch a live quote from the Yahoo Finance chart API."""

    def __init__(self, *, timeout: float = 10.0, session: requests.Session | None = None) -> None:
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(HEADERS)

    def get_price(self, symbol: str, exchange: str) -> Quote:
        yahoo_symbol = format_symbol(symbol, exchange)
        try:
            r = self._session.get(CHART_URL + yahoo_symbol, timeout=self._timeout)
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as exc:
            raise QuoteUnavailable(symbol, exchange, str(exc)) from exc
        except ValueError as exc:
            raise QuoteUnavailable(symbol, exchange, "response is not JSON") from exc

        results = (data.get("chart") or {}).get("result") or []
        if not results:
            raise QuoteUnavailable(symbol, exchange, "no data found for symbol")

        result = results[0]
        meta = result.get("meta") or {}
        price = _money(meta.get("regularMarketPrice"), Decimal("0.00"))
        if price <= 0:
            raise QuoteUnavailable(symbol, exchange, "no market price in response")

        quote_rows = (result.get("indicators") or {}).get("quote") or [{}]
        day_open = _money(_first(quote_rows[0].get("open")), price)
        previous_close = _money(meta.get("chartPreviousClose", meta.get("previousClose")), price)

        logger.debug("Fetched %s: %s", yahoo_symbol, price)
        return Quote(
            symbol=symbol,
            exchange=exchange,
            price=price,
            high=_money(meta.get("regularMarketDayHigh"), price),
            low=_money(meta.get("regularMarketDayLow"), price),
            open=day_open,
            previous_close=previous_close,
            volume=int(meta.get("regularMarketVolume") or 0),
        )

    def search_symbols(self, query: str, limit: int = 10) -> list[dict[str, str]]:
        """Search NSE/BSE equities by name or ticker. Returns [] on any failure."""
        try:
            r = self._session.get(
                SEARCH_URL,
                params={"q": query, "quotesCount": limit, "newsCount": 0},
                timeout=self._timeout,
            )
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Yahoo Finance search failed for %r: %s", query, exc)
            return []

        out: list[dict[str, str]] = []
        for q in data.get("quotes") or []:
            ysym = q.get("symbol") or ""
            if q.get("quoteType") != "EQUITY" or not ysym.endswith((".NS", ".BO")):
                continue
            base, exchange = extract_base_symbol(ysym)
            out.append(
                {
                    "symbol": base,
                    "exchange": exchange,
                    "name": q.get("longname") or q.get("shortname") or base,
                }
            )
        return out[:limit]
