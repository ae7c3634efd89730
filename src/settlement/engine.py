"""
Settlement engine: order creation, execution condition, settlement, cancellation.

Settlement is at-most-once per order. The PENDING check and every write
(order status, trade, position, balance) happen in one store transaction,
serialized per order id in-process and by the store's write lock across
processes. A failed settlement rolls back and leaves the order PENDING.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, Iterator

from ledger.models import (
    Bracket,
    Order,
    Position,
    Quote,
    Side,
    Stock,
    Trade,
    User,
    to_money,
    utcnow,
)
from ledger.store import LedgerSession, LedgerStore
from quotes.source import QuoteSource
from settlement.errors import (
    InsufficientFunds,
    InsufficientPosition,
    InvalidOrderSpec,
    OrderNotFound,
    SettlementError,
    UnknownInstrument,
)
from settlement.portfolio import PortfolioSummary, summarize

logger = logging.getLogger("ledger.engine")

# settle/cancel serialize on order_id % LOCK_STRIPES
LOCK_STRIPES = 64


@dataclass(frozen=True)
class OrderSpec:
    """Client request for a new limit order."""

    user_id: int
    symbol: str
    exchange: str
    side: Side
    quantity: int
    limit_price: Decimal | str | float
    take_profit: Bracket | None = None
    stop_loss: Bracket | None = None


def evaluate_execution_condition(order: Order, current_price: Decimal | str | float) -> bool:
    """BUY fills at or below the limit, SELL at or above. Exact 2-decimal comparison.

    Take-profit and stop-loss are stored on the order but not evaluated here.
    """
    price = to_money(current_price)
    limit = to_money(order.limit_price)
    if order.side is Side.BUY:
        return price <= limit
    return price >= limit


def _validated_price(value: Decimal | str | float, label: str) -> Decimal:
    try:
        price = to_money(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidOrderSpec(f"{label} is not a number: {value!r}") from exc
    if not price.is_finite() or price <= 0:
        raise InvalidOrderSpec(f"{label} must be positive, got {value}")
    return price


def _validate_spec(spec: OrderSpec) -> Decimal:
    if isinstance(spec.quantity, bool) or not isinstance(spec.quantity, int) or spec.quantity <= 0:
        raise InvalidOrderSpec(f"Quantity must be a positive integer, got {spec.quantity!r}")
    if not isinstance(spec.side, Side):
        raise InvalidOrderSpec(f"Side must be BUY or SELL, got {spec.side!r}")
    for label, bracket in (("Take-profit", spec.take_profit), ("Stop-loss", spec.stop_loss)):
        if bracket is not None:
            _validated_price(bracket.value, f"{label} value")
    return _validated_price(spec.limit_price, "Limit price")


class SettlementEngine:
    """
    Owns the order lifecycle against an injected LedgerStore.

    enforce_limits=True rejects BUYs the cash balance cannot cover and SELLs
    larger than the open position, both at creation and again at settlement.
    With enforce_limits=False balance may go negative and SELLs are not
    checked against the position.
    """

    def __init__(
        self,
        store: LedgerStore,
        *,
        enforce_limits: bool = True,
        journal=None,
    ) -> None:
        self._store = store
        self._enforce_limits = enforce_limits
        self._journal = journal
        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]

    @property
    def store(self) -> LedgerStore:
        return self._store

    @contextmanager
    def _order_lock(self, order_id: int) -> Iterator[None]:
        with self._locks[order_id % LOCK_STRIPES]:
            yield

    # ---------- setup ----------

    def ensure_user(self, username: str, initial_balance: Decimal | str | float) -> User:
        """Return the user, creating it with *initial_balance* on first use."""
        with self._store.transaction() as tx:
            user = tx.get_user_by_username(username)
            if user is None:
                user = tx.create_user(username, to_money(initial_balance))
                logger.info("Created user %s (id=%d) with balance %s", username, user.id, user.balance)
            return user

    def seed_catalog(self, stocks: Iterable[Stock]) -> int:
        """Insert catalog entries that are missing. Existing quotes are left alone."""
        added = 0
        with self._store.transaction() as tx:
            for stock in stocks:
                if tx.get_stock(stock.symbol, stock.exchange) is None:
                    tx.upsert_stock(stock)
                    added += 1
        if added:
            logger.info("Seeded %d stock(s) into catalog", added)
        return added

    def record_quote(self, quote: Quote) -> bool:
        """Apply a fresh quote to the catalog. False if the instrument is not listed."""
        with self._store.transaction() as tx:
            return tx.update_stock_quote(quote, utcnow())

    # ---------- order lifecycle ----------

    def create_order(self, spec: OrderSpec) -> Order:
        """Persist a PENDING order; settle it immediately if the last known price allows.

        Raises InvalidOrderSpec, UnknownInstrument, and (with enforce_limits)
        InsufficientFunds / InsufficientPosition.
        """
        limit_price = _validate_spec(spec)
        with self._store.transaction() as tx:
            user = tx.get_user(spec.user_id)
            if user is None:
                raise InvalidOrderSpec(f"Unknown user: {spec.user_id}")
            stock = tx.get_stock(spec.symbol, spec.exchange)
            if stock is None:
                raise UnknownInstrument(spec.symbol, spec.exchange)
            if self._enforce_limits:
                position = tx.get_position(spec.user_id, spec.symbol, spec.exchange)
                self._check_limits(spec.side, spec.quantity, limit_price, user, position)
            order = tx.create_order(
                user_id=spec.user_id,
                symbol=spec.symbol,
                exchange=spec.exchange,
                side=spec.side,
                quantity=spec.quantity,
                limit_price=limit_price,
                take_profit=spec.take_profit,
                stop_loss=spec.stop_loss,
            )
        logger.info(
            "Order %d created: %s %d %s/%s @ %s",
            order.id, order.side.value, order.quantity, order.symbol, order.exchange, order.limit_price,
        )
        if self._journal is not None:
            self._journal.order_created(order)

        if evaluate_execution_condition(order, stock.current_price):
            try:
                self.settle(order.id, stock.current_price)
            except SettlementError as exc:
                # Order stays PENDING; the sweep retries it.
                logger.warning("Immediate settlement of order %d rejected: %s", order.id, exc)
                if self._journal is not None:
                    self._journal.order_rejected(order.id, str(exc))
            return self.get_order(order.id)
        return order

    def settle(self, order_id: int, execution_price: Decimal | str | float) -> Trade | None:
        """Execute a PENDING order at *execution_price*. No-op (None) if not PENDING."""
        price = to_money(execution_price)
        with self._order_lock(order_id):
            with self._store.transaction() as tx:
                order = tx.get_order(order_id)
                if order is None or order.status.is_terminal:
                    logger.debug("Settle skipped for order %s: not pending", order_id)
                    return None
                user = tx.get_user(order.user_id)
                if user is None:
                    raise SettlementError(f"Order {order_id} references unknown user {order.user_id}")
                position = tx.get_position(order.user_id, order.symbol, order.exchange)
                if self._enforce_limits:
                    self._check_limits(order.side, order.quantity, price, user, position)

                now = utcnow()
                total = to_money(order.quantity * price)
                if not tx.mark_order_executed(order.id, price, now):
                    return None
                trade = tx.create_trade(order, price, total, now)
                self._apply_position(tx, order, position, price)
                self._apply_balance(tx, order, user, position, total)

        logger.info(
            "Order %d settled: %s %d %s/%s @ %s (total %s)",
            order.id, order.side.value, order.quantity, order.symbol, order.exchange, price, total,
        )
        if self._journal is not None:
            self._journal.trade(trade)
        return trade

    def cancel_order(self, order_id: int) -> bool:
        """PENDING -> CANCELLED. Returns False (no-op) for terminal or unknown orders."""
        with self._order_lock(order_id):
            with self._store.transaction() as tx:
                cancelled = tx.mark_order_cancelled(order_id)
        if cancelled:
            logger.info("Order %d cancelled", order_id)
            if self._journal is not None:
                self._journal.order_cancelled(order_id)
        else:
            logger.debug("Cancel of order %d ignored: not pending", order_id)
        return cancelled

    # ---------- settlement steps ----------

    @staticmethod
    def _check_limits(
        side: Side,
        quantity: int,
        price: Decimal,
        user: User,
        position: Position | None,
    ) -> None:
        if side is Side.BUY:
            cost = to_money(quantity * price)
            if cost > user.balance:
                raise InsufficientFunds(f"Need {cost}, available {user.balance}")
        else:
            held = position.quantity if position else 0
            if quantity > held:
                raise InsufficientPosition(f"Cannot sell {quantity}, holding {held}")

    @staticmethod
    def _apply_position(
        tx: LedgerSession,
        order: Order,
        position: Position | None,
        price: Decimal,
    ) -> None:
        if order.side is Side.BUY:
            if position is None:
                tx.create_position(order.user_id, order.symbol, order.exchange, order.quantity, price)
                return
            new_qty = position.quantity + order.quantity
            new_avg = to_money(
                (position.quantity * position.average_price + order.quantity * price) / new_qty
            )
            tx.update_position(position.id, new_qty, new_avg)
            return

        if position is None:
            return
        new_qty = position.quantity - order.quantity
        if new_qty <= 0:
            tx.delete_position(position.id)
        else:
            tx.update_position(position.id, new_qty, position.average_price)

    @staticmethod
    def _apply_balance(
        tx: LedgerSession,
        order: Order,
        user: User,
        position: Position | None,
        total: Decimal,
    ) -> None:
        if order.side is Side.BUY:
            tx.update_user_balance(user.id, user.balance - total)
        elif position is not None:
            tx.update_user_balance(user.id, user.balance + total)

    # ---------- read accessors ----------

    def get_user(self, user_id: int) -> User | None:
        with self._store.transaction(write=False) as tx:
            return tx.get_user(user_id)

    def get_order(self, order_id: int) -> Order:
        with self._store.transaction(write=False) as tx:
            order = tx.get_order(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def list_orders(self, user_id: int) -> list[Order]:
        with self._store.transaction(write=False) as tx:
            return tx.list_orders(user_id)

    def list_active_orders(self, user_id: int) -> list[Order]:
        with self._store.transaction(write=False) as tx:
            return tx.list_active_orders(user_id)

    def list_positions(self, user_id: int) -> list[Position]:
        with self._store.transaction(write=False) as tx:
            return tx.list_positions(user_id)

    def list_trades(self, user_id: int, limit: int | None = None) -> list[Trade]:
        with self._store.transaction(write=False) as tx:
            return tx.list_trades(user_id, limit)

    def get_trade_for_order(self, order_id: int) -> Trade | None:
        with self._store.transaction(write=False) as tx:
            return tx.get_trade_for_order(order_id)

    def get_stock(self, symbol: str, exchange: str) -> Stock | None:
        with self._store.transaction(write=False) as tx:
            return tx.get_stock(symbol, exchange)

    def list_stocks(self) -> list[Stock]:
        with self._store.transaction(write=False) as tx:
            return tx.list_stocks()

    def search_stocks(self, query: str) -> list[Stock]:
        with self._store.transaction(write=False) as tx:
            return tx.search_stocks(query)

    def portfolio_summary(self, user_id: int, quotes: QuoteSource) -> PortfolioSummary:
        """Cash plus every position marked to a live quote (cost when unavailable)."""
        with self._store.transaction(write=False) as tx:
            user = tx.get_user(user_id)
            positions = tx.list_positions(user_id)
        if user is None:
            raise SettlementError(f"Unknown user: {user_id}")
        return summarize(user.balance, positions, quotes)
