"""
Structured journal: append-only JSON lines. One line per order lifecycle event.
"""

import json
import threading
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any


def _serialize(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if hasattr(obj, "__dict__") and not isinstance(obj, type):
        return {k: _serialize(v) for k, v in vars(obj).items() if not k.startswith("_")}
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(x) for x in obj]
    return obj


class JournalWriter:
    """Append-only journal. Each line is a JSON object with event type and payload."""

    def __init__(self, path: str | Path, *, echo_stdout: bool = False) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._echo = echo_stdout
        self._lock = threading.Lock()

    def _write(self, event_type: str, payload: dict) -> None:
        record = {"ts_utc": datetime.now(timezone.utc).isoformat(), "event": event_type, **payload}
        line = json.dumps(_serialize(record)) + "\n"
        with self._lock:
            with open(self._path, "a") as f:
                f.write(line)
        if self._echo:
            print(line.rstrip())

    def order_created(self, order: Any, **extra: Any) -> None:
        self._write(
            "order_created",
            {
                "order_id": order.id,
                "symbol": order.symbol,
                "exchange": order.exchange,
                "side": order.side,
                "qty": order.quantity,
                "limit_price": order.limit_price,
                "take_profit": order.take_profit,
                "stop_loss": order.stop_loss,
                **extra,
            },
        )

    def trade(self, trade: Any, **extra: Any) -> None:
        self._write(
            "trade",
            {
                "trade_id": trade.id,
                "order_id": trade.order_id,
                "symbol": trade.symbol,
                "exchange": trade.exchange,
                "side": trade.side,
                "qty": trade.quantity,
                "price": trade.price,
                "total_value": trade.total_value,
                **extra,
            },
        )

    def order_cancelled(self, order_id: int, **extra: Any) -> None:
        self._write("order_cancelled", {"order_id": order_id, **extra})

    def order_rejected(self, order_id: int, reason: str, **extra: Any) -> None:
        self._write("order_rejected", {"order_id": order_id, "reason": reason, **extra})
