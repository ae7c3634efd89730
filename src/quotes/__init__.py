"""
Quote sources: fetch current prices for catalog instruments.

Providers with optional SDKs are imported lazily by get_quote_source.
"""

from quotes.source import QuoteSource, QuoteUnavailable, StaticQuoteSource

__all__ = [
    "QuoteSource",
    "QuoteUnavailable",
    "StaticQuoteSource",
    "get_quote_source",
]


def get_quote_source(source: str, *, timeout: float = 10.0, api_key: str = "", api_secret: str = ""):
    """Build the configured quote source: 'yahoo', 'alpaca' or 'static'."""
    name = source.strip().lower()
    if name == "yahoo":
        from quotes.yahoo import YahooQuoteSource

        return YahooQuoteSource(timeout=timeout)
    if name == "alpaca":
        from quotes.alpaca_quotes import AlpacaQuoteSource

        return AlpacaQuoteSource(api_key, api_secret)
    if name == "static":
        return StaticQuoteSource()
    raise ValueError(f"Unknown quote source {source!r}. Supported: yahoo, alpaca, static")
