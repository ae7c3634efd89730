"""Tests for structured JSON event logger."""

import io
import json
from unittest.mock import patch

import pytest

from cli.structured_log import StructuredEventLogger


@pytest.fixture
def buf() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(buf: io.StringIO) -> StructuredEventLogger:
    return StructuredEventLogger("sweep", enabled=True, stream=buf)


class TestEmit:
    """Basic event emission and format."""

    def test_sweep_start_json(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.sweep_start(pending=5)
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "sweep_start"
        assert record["source"] == "sweep"
        assert record["pending"] == 5
        assert "ts" in record

    def test_order_settled(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.order_settled(12, "INFY", "BUY", 10, "1480.25")
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "order_settled"
        assert record["order_id"] == 12
        assert record["symbol"] == "INFY"
        assert record["side"] == "BUY"
        assert record["qty"] == 10
        assert record["price"] == "1480.25"

    def test_quote_unavailable(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.quote_unavailable(3, "TCS", "NSE", "timeout")
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "quote_unavailable"
        assert record["exchange"] == "NSE"
        assert record["reason"] == "timeout"

    def test_order_rejected(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.order_rejected(reason="Need 100.00, available 5.00", order_id=9)
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "order_rejected"
        assert record["order_id"] == 9
        assert record["reason"] == "Need 100.00, available 5.00"

    def test_sweep_complete(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.sweep_complete(settled=3, failed=1)
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "sweep_complete"
        assert record["settled"] == 3
        assert record["failed"] == 1
        assert record["timed_out"] == 0

    def test_error_event(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.error(message="DB locked", detail="OperationalError")
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "error"
        assert record["message"] == "DB locked"
        assert record["detail"] == "OperationalError"

    def test_shutdown(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.shutdown(ticks=42)
        record = json.loads(buf.getvalue().strip())
        assert record["event"] == "shutdown"
        assert record["ticks"] == 42


class TestDisabled:
    """When structured_logs=False, nothing is written to stream."""

    def test_no_output_when_disabled(self, buf: io.StringIO) -> None:
        logger = StructuredEventLogger("sweep", enabled=False, stream=buf)
        logger.sweep_start(pending=1)
        logger.order_settled(1, "X", "BUY", 1, "1.00")
        logger.shutdown(ticks=1)
        assert buf.getvalue() == ""

    def test_record_still_returned(self, buf: io.StringIO) -> None:
        logger = StructuredEventLogger("sweep", enabled=False, stream=buf)
        record = logger.sweep_start(pending=2)
        assert record["pending"] == 2


class TestWebhook:
    """Only settlement-level events are POSTed; failures are logged, never raised."""

    def test_posts_alert_events_only(self, buf: io.StringIO) -> None:
        logger = StructuredEventLogger("sweep", stream=buf, webhook_url=" https://hooks.example.com/x ")
        with patch("cli.structured_log.urllib.request.urlopen") as urlopen:
            logger.sweep_start(pending=1)
            logger.order_settled(1, "X", "BUY", 1, "1.00")
        assert urlopen.call_count == 1
        req = urlopen.call_args[0][0]
        assert req.full_url == "https://hooks.example.com/x"
        assert json.loads(req.data)["event"] == "order_settled"

    def test_webhook_failure_is_swallowed(self, buf: io.StringIO) -> None:
        logger = StructuredEventLogger("sweep", stream=buf, webhook_url="https://hooks.example.com/x")
        with patch("cli.structured_log.urllib.request.urlopen", side_effect=OSError("refused")):
            record = logger.error(message="boom")
        assert record["event"] == "error"


class TestMultipleEvents:
    """Multiple events produce multiple JSON lines."""

    def test_newline_delimited(self, logger: StructuredEventLogger, buf: io.StringIO) -> None:
        logger.sweep_start(pending=0)
        logger.sweep_complete(settled=0, failed=0)
        lines = buf.getvalue().strip().split("\n")
        assert len(lines) == 2
        assert json.loads(lines[0])["event"] == "sweep_start"
        assert json.loads(lines[1])["event"] == "sweep_complete"
