"""Tests for quote sources. Yahoo via a mocked requests session; alpaca SDK mocked. No network."""

import sys
from decimal import Decimal
from types import ModuleType, SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests

from quotes import StaticQuoteSource, get_quote_source
from quotes.source import QuoteUnavailable
from quotes.yahoo import CHART_URL, YahooQuoteSource, extract_base_symbol, format_symbol


def _response(payload=None, status: int = 200, json_error: bool = False) -> MagicMock:
    r = MagicMock()
    r.status_code = status
    if status >= 400:
        r.raise_for_status.side_effect = requests.HTTPError(f"{status} Client Error")
    if json_error:
        r.json.side_effect = ValueError("not json")
    else:
        r.json.return_value = payload
    return r


def _chart(meta: dict, opens=None) -> dict:
    return {"chart": {"result": [{"meta": meta, "indicators": {"quote": [{"open": opens or []}]}}]}}


class TestStatic:
    def test_known_symbol(self) -> None:
        q = StaticQuoteSource({("ACME", "NSE"): 12.5}).get_price("ACME", "NSE")
        assert q.price == Decimal("12.50")
        assert q.symbol == "ACME"

    def test_unknown_symbol(self) -> None:
        with pytest.raises(QuoteUnavailable, match="ACME"):
            StaticQuoteSource().get_price("ACME", "NSE")


class TestSymbolMapping:
    def test_format(self) -> None:
        assert format_symbol("RELIANCE", "NSE") == "RELIANCE.NS"
        assert format_symbol("RELIANCE", "bse") == "RELIANCE.BO"
        assert format_symbol("AAPL", "NASDAQ") == "AAPL"

    def test_extract(self) -> None:
        assert extract_base_symbol("TCS.NS") == ("TCS", "NSE")
        assert extract_base_symbol("TCS.BO") == ("TCS", "BSE")
        assert extract_base_symbol("TCS") == ("TCS", "NSE")


class TestYahoo:
    def test_maps_chart_meta(self) -> None:
        session = MagicMock()
        session.get.return_value = _response(
            _chart(
                {
                    "regularMarketPrice": 2456.75,
                    "regularMarketDayHigh": 2470.0,
                    "regularMarketDayLow": 2440.1,
                    "chartPreviousClose": 2450.5,
                    "regularMarketVolume": 1500000,
                },
                opens=[None, 2448.0],
            )
        )
        q = YahooQuoteSource(session=session, timeout=3).get_price("RELIANCE", "NSE")
        session.get.assert_called_once_with(CHART_URL + "RELIANCE.NS", timeout=3)
        assert q.price == Decimal("2456.75")
        assert q.high == Decimal("2470.00")
        assert q.low == Decimal("2440.10")
        assert q.open == Decimal("2448.00")
        assert q.previous_close == Decimal("2450.50")
        assert q.volume == 1500000

    def test_missing_fields_fall_back_to_price(self) -> None:
        session = MagicMock()
        session.get.return_value = _response(_chart({"regularMarketPrice": 100}))
        q = YahooQuoteSource(session=session).get_price("TCS", "BSE")
        assert q.high == q.low == q.open == q.previous_close == Decimal("100.00")
        assert q.volume == 0

    @pytest.mark.parametrize(
        "response",
        [
            _response(status=404),
            _response(json_error=True),
            _response({"chart": {"result": None, "error": {"code": "Not Found"}}}),
            _response(_chart({})),
        ],
    )
    def test_failures_raise_quote_unavailable(self, response) -> None:
        session = MagicMock()
        session.get.return_value = response
        with pytest.raises(QuoteUnavailable):
            YahooQuoteSource(session=session).get_price("NOPE", "NSE")

    def test_timeout_raises_quote_unavailable(self) -> None:
        session = MagicMock()
        session.get.side_effect = requests.Timeout("read timed out")
        with pytest.raises(QuoteUnavailable, match="timed out"):
            YahooQuoteSource(session=session).get_price("INFY", "NSE")

    def test_search_filters_indian_equities(self) -> None:
        session = MagicMock()
        session.get.return_value = _response(
            {
                "quotes": [
                    {"symbol": "INFY.NS", "quoteType": "EQUITY", "longname": "Infosys Limited"},
                    {"symbol": "INFY.BO", "quoteType": "EQUITY", "shortname": "INFOSYS LTD"},
                    {"symbol": "INFY", "quoteType": "EQUITY", "longname": "Infosys ADR"},
                    {"symbol": "^NSEI", "quoteType": "INDEX"},
                ]
            }
        )
        found = YahooQuoteSource(session=session).search_symbols("infosys")
        assert found == [
            {"symbol": "INFY", "exchange": "NSE", "name": "Infosys Limited"},
            {"symbol": "INFY", "exchange": "BSE", "name": "INFOSYS LTD"},
        ]

    def test_search_failure_returns_empty(self) -> None:
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("offline")
        assert YahooQuoteSource(session=session).search_symbols("x") == []


@pytest.fixture
def alpaca_modules():
    """Mock the alpaca SDK modules so tests run without alpaca-py installed."""
    alpaca = ModuleType("alpaca")
    alpaca_data = ModuleType("alpaca.data")
    alpaca_data_historical = ModuleType("alpaca.data.historical")
    alpaca_data_requests = ModuleType("alpaca.data.requests")
    alpaca_data_enums = ModuleType("alpaca.data.enums")

    client_cls = MagicMock()
    alpaca_data_historical.StockHistoricalDataClient = client_cls
    alpaca_data_requests.StockSnapshotRequest = MagicMock()
    alpaca_data_enums.DataFeed = MagicMock()

    mods = {
        "alpaca": alpaca,
        "alpaca.data": alpaca_data,
        "alpaca.data.historical": alpaca_data_historical,
        "alpaca.data.requests": alpaca_data_requests,
        "alpaca.data.enums": alpaca_data_enums,
    }
    with patch.dict(sys.modules, mods):
        sys.modules.pop("quotes.alpaca_quotes", None)
        yield client_cls


class TestAlpaca:
    def test_requires_keys(self, alpaca_modules) -> None:
        from quotes.alpaca_quotes import AlpacaQuoteSource

        with pytest.raises(ValueError, match="APCA_API_KEY_ID"):
            AlpacaQuoteSource("", "")

    def test_maps_snapshot(self, alpaca_modules) -> None:
        from quotes.alpaca_quotes import AlpacaQuoteSource

        snapshot = SimpleNamespace(
            latest_trade=SimpleNamespace(price=187.345),
            daily_bar=SimpleNamespace(open=185.0, high=188.0, low=184.5, volume=1234567.0),
            previous_daily_bar=SimpleNamespace(close=186.0),
        )
        alpaca_modules.return_value.get_stock_snapshot.return_value = {"AAPL": snapshot}
        q = AlpacaQuoteSource("key", "secret").get_price("AAPL", "NASDAQ")
        assert q.price == Decimal("187.35")
        assert q.exchange == "NASDAQ"
        assert q.high == Decimal("188.00")
        assert q.previous_close == Decimal("186.00")
        assert q.volume == 1234567

    def test_sdk_error_is_quote_unavailable(self, alpaca_modules) -> None:
        from quotes.alpaca_quotes import AlpacaQuoteSource

        alpaca_modules.return_value.get_stock_snapshot.side_effect = RuntimeError("403 forbidden")
        with pytest.raises(QuoteUnavailable, match="403"):
            AlpacaQuoteSource("key", "secret").get_price("AAPL", "NASDAQ")

    def test_missing_snapshot(self, alpaca_modules) -> None:
        from quotes.alpaca_quotes import AlpacaQuoteSource

        alpaca_modules.return_value.get_stock_snapshot.return_value = {}
        with pytest.raises(QuoteUnavailable, match="no snapshot"):
            AlpacaQuoteSource("key", "secret").get_price("AAPL", "NASDAQ")


class TestFactory:
    def test_static(self) -> None:
        assert isinstance(get_quote_source("static"), StaticQuoteSource)

    def test_yahoo(self) -> None:
        assert isinstance(get_quote_source(" Yahoo ", timeout=2), YahooQuoteSource)

    def test_alpaca(self, alpaca_modules) -> None:
        source = get_quote_source("alpaca", api_key="k", api_secret="s")
        alpaca_modules.assert_called_once_with("k", "s")
        assert type(source).__name__ == "AlpacaQuoteSource"

    def test_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown quote source"):
            get_quote_source("bloomberg")
