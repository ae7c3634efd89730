"""
Structured JSON event logger for container observability.

Emits one JSON object per line to stderr. Events are designed to be
parsed by log aggregators (Grafana Loki, CloudWatch, ELK).

Optional webhook: when configured, settlement-level events (order_settled,
order_rejected, error) are POSTed to the URL.
"""

from __future__ import annotations

import json
import logging
import sys
import urllib.request
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("ledger.events")


class StructuredEventLogger:
    """Emit structured JSON events to stderr and optional webhook."""

    def __init__(
        self,
        source: str = "sweep",
        *,
        enabled: bool = True,
        webhook_url: str = "",
        stream: Any = None,
    ) -> None:
        self._source = source
        self._enabled = enabled
        self._webhook_url = webhook_url.strip()
        self._stream = stream or sys.stderr
        self._ALERT_EVENTS = {
            "order_settled",
            "order_rejected",
            "error",
        }

    def _emit(self, event_type: str, **fields: Any) -> dict:
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            "source": self._source,
            **fields,
        }
        if self._enabled:
            self._stream.write(json.dumps(record, default=str) + "\n")
            self._stream.flush()

        if self._webhook_url and event_type in self._ALERT_EVENTS:
            self._post_webhook(record)

        return record

    def _post_webhook(self, record: dict) -> None:
        try:
            data = json.dumps(record, default=str).encode("utf-8")
            req = urllib.request.Request(
                self._webhook_url,
                data=data,
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            urllib.request.urlopen(req, timeout=5)
        except Exception as exc:
            logger.warning("Webhook POST failed: %s", exc)

    def sweep_start(self, pending: int) -> dict:
        return self._emit("sweep_start", pending=pending)

    def order_settled(
        self,
        order_id: int,
        symbol: str,
        side: str,
        qty: int,
        price: str,
    ) -> dict:
        return self._emit(
            "order_settled",
            order_id=order_id,
            symbol=symbol,
            side=side,
            qty=qty,
            price=price,
        )

    def quote_unavailable(self, order_id: int, symbol: str, exchange: str, reason: str) -> dict:
        return self._emit(
            "quote_unavailable",
            order_id=order_id,
            symbol=symbol,
            exchange=exchange,
            reason=reason,
        )

    def order_rejected(self, reason: str, order_id: int | None = None) -> dict:
        return self._emit("order_rejected", order_id=order_id, reason=reason)

    def sweep_complete(self, settled: int, failed: int, timed_out: int = 0) -> dict:
        return self._emit(
            "sweep_complete",
            settled=settled,
            failed=failed,
            timed_out=timed_out,
        )

    def error(self, message: str, detail: str = "") -> dict:
        return self._emit("error", message=message, detail=detail)

    def shutdown(self, ticks: int) -> dict:
        return self._emit("shutdown", ticks=ticks)
