"""
Sweep: re-evaluate every PENDING order against a fresh quote and settle the
ones whose limit has been crossed.

One tick fans out over a bounded thread pool. A failing or slow quote only
affects its own order; the order stays PENDING and is retried next tick.
SweepScheduler runs ticks on a fixed period until stopped; stopping waits for
in-flight settlements instead of abandoning them.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable

from ledger.models import Order
from quotes.source import QuoteSource, QuoteUnavailable
from settlement.engine import SettlementEngine, evaluate_execution_condition
from settlement.errors import SettlementError

logger = logging.getLogger("ledger.sweep")

SETTLED = "settled"
WAITING = "waiting"
ALREADY_TERMINAL = "terminal"


@dataclass
class SweepReport:
    """Outcome of one tick, keyed by order id."""

    pending: int = 0
    settled: list[int] = field(default_factory=list)
    waiting: list[int] = field(default_factory=list)
    failures: dict[int, str] = field(default_factory=dict)
    rejected: dict[int, str] = field(default_factory=dict)
    timed_out: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def evaluated(self) -> int:
        return len(self.settled) + len(self.waiting) + len(self.failures) + len(self.rejected)


class Sweeper:
    """Runs single sweep ticks for one user."""

    def __init__(
        self,
        engine: SettlementEngine,
        quotes: QuoteSource,
        user_id: int,
        *,
        max_workers: int = 4,
        order_timeout: float = 10.0,
        events: Any = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._engine = engine
        self._quotes = quotes
        self._user_id = user_id
        self._max_workers = max_workers
        self._order_timeout = order_timeout
        self._events = events
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="sweep")
        self._in_flight: set[int] = set()
        self._guard = threading.Lock()

    def _evaluate(self, order: Order) -> tuple[str, str]:
        try:
            quote = self._quotes.get_price(order.symbol, order.exchange)
            self._engine.record_quote(quote)
            if not evaluate_execution_condition(order, quote.price):
                return WAITING, str(quote.price)
            trade = self._engine.settle(order.id, quote.price)
            if trade is None:
                return ALREADY_TERMINAL, ""
            return SETTLED, str(trade.price)
        finally:
            with self._guard:
                self._in_flight.discard(order.id)

    def run_once(self) -> SweepReport:
        """Evaluate all PENDING orders once. Never raises for a single order's failure."""
        started = time.monotonic()
        orders = self._engine.list_active_orders(self._user_id)
        report = SweepReport(pending=len(orders))
        if self._events is not None:
            self._events.sweep_start(pending=len(orders))

        futures: dict[Future, Order] = {}
        for order in orders:
            with self._guard:
                if order.id in self._in_flight:
                    report.skipped.append(order.id)
                    continue
                self._in_flight.add(order.id)
            futures[self._pool.submit(self._evaluate, order)] = order

        # Each order gets order_timeout once a worker picks it up.
        waves = math.ceil(len(futures) / self._max_workers) if futures else 0
        done, not_done = wait(futures, timeout=self._order_timeout * waves if waves else None)

        for fut in done:
            order = futures[fut]
            try:
                outcome, detail = fut.result()
            except QuoteUnavailable as exc:
                logger.warning("Order %d: %s", order.id, exc)
                report.failures[order.id] = str(exc)
                if self._events is not None:
                    self._events.quote_unavailable(order.id, order.symbol, order.exchange, exc.reason)
                continue
            except SettlementError as exc:
                logger.warning("Order %d rejected at settlement: %s", order.id, exc)
                report.rejected[order.id] = str(exc)
                if self._events is not None:
                    self._events.order_rejected(reason=str(exc), order_id=order.id)
                continue
            except Exception as exc:
                logger.exception("Order %d: evaluation failed", order.id)
                report.failures[order.id] = f"{type(exc).__name__}: {exc}"
                if self._events is not None:
                    self._events.error(message=f"order {order.id} evaluation failed", detail=str(exc))
                continue

            if outcome == SETTLED:
                report.settled.append(order.id)
                if self._events is not None:
                    self._events.order_settled(
                        order.id, order.symbol, order.side.value, order.quantity, detail
                    )
            elif outcome == WAITING:
                report.waiting.append(order.id)
            else:
                report.skipped.append(order.id)

        for fut in not_done:
            order = futures[fut]
            logger.warning("Order %d: quote/settle still running after %.1fs", order.id, self._order_timeout)
            report.timed_out.append(order.id)

        report.duration_seconds = time.monotonic() - started
        logger.info(
            "Sweep: %d pending, %d settled, %d waiting, %d failed, %d rejected, %d timed out",
            report.pending,
            len(report.settled),
            len(report.waiting),
            len(report.failures),
            len(report.rejected),
            len(report.timed_out),
        )
        if self._events is not None:
            self._events.sweep_complete(
                settled=len(report.settled),
                failed=len(report.failures) + len(report.rejected),
                timed_out=len(report.timed_out),
            )
        return report

    def close(self, wait: bool = True) -> None:
        """Stop accepting work. wait=True lets in-flight settlements finish."""
        self._pool.shutdown(wait=wait)


class SweepScheduler:
    """
    Recurring sweep bound to a stop event.

    run_forever() blocks; start() runs the same loop on a background thread.
    stop() signals shutdown, waits for the loop, then drains the worker pool.
    """

    def __init__(
        self,
        sweeper: Sweeper,
        interval_seconds: float = 5.0,
        *,
        on_tick: Callable[[SweepReport], None] | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self._sweeper = sweeper
        self._interval = interval_seconds
        self._on_tick = on_tick
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return not self._stop.is_set()

    def run_forever(self) -> None:
        while not self._stop.is_set():
            started = time.monotonic()
            try:
                report = self._sweeper.run_once()
                if self._on_tick is not None:
                    self._on_tick(report)
            except Exception:
                logger.exception("Sweep tick failed; retrying next interval")
            self.ticks += 1
            elapsed = time.monotonic() - started
            self._stop.wait(max(0.0, self._interval - elapsed))

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, name="sweep-scheduler")
        self._thread.start()

    def request_stop(self) -> None:
        """Ask the loop to exit after the current tick. Safe from signal handlers."""
        self._stop.set()

    def stop(self, *, wait: bool = True) -> None:
        self._stop.set()
        if wait and self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        self._sweeper.close(wait=wait)
