"""At-most-once settlement when immediate and sweep-triggered settles race."""

import threading
from decimal import Decimal

from ledger.models import OrderStatus, Side, User
from ledger.store import SqliteLedgerStore
from quotes.source import StaticQuoteSource
from settlement.engine import OrderSpec, SettlementEngine
from settlement.sweep import Sweeper


def _race(n: int, target) -> list:
    return _race_all([target] * n)


def _race_all(targets: list) -> list:
    barrier = threading.Barrier(len(targets))
    results: list = []
    lock = threading.Lock()

    def worker(target) -> None:
        barrier.wait()
        out = target()
        with lock:
            results.append(out)

    threads = [threading.Thread(target=worker, args=(t,)) for t in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_same_engine_settles_once(engine: SettlementEngine, user: User) -> None:
    order = engine.create_order(OrderSpec(user.id, "ACME", "NSE", Side.BUY, 10, "90.00"))
    results = _race(8, lambda: engine.settle(order.id, "90.00"))
    assert sum(r is not None for r in results) == 1
    assert len(engine.list_trades(user.id)) == 1
    assert engine.list_positions(user.id)[0].quantity == 10
    assert engine.get_user(user.id).balance == Decimal("99100.00")


def test_separate_engines_settle_once(store: SqliteLedgerStore, engine: SettlementEngine, user: User) -> None:
    """Two engines on one database file: the store's write lock is the only guard."""
    other = SettlementEngine(SqliteLedgerStore(store.path))
    order = engine.create_order(OrderSpec(user.id, "ACME", "NSE", Side.BUY, 10, "90.00"))
    engines = [engine, other] * 3
    idx = iter(range(len(engines)))
    pick = threading.Lock()

    def settle_with_next():
        with pick:
            eng = engines[next(idx)]
        return eng.settle(order.id, "90.00")

    results = _race(len(engines), settle_with_next)
    assert sum(r is not None for r in results) == 1
    assert len(engine.list_trades(user.id)) == 1


def test_sweep_and_direct_settle_race(engine: SettlementEngine, user: User) -> None:
    order = engine.create_order(OrderSpec(user.id, "ACME", "NSE", Side.BUY, 10, "90.00"))
    quotes = StaticQuoteSource({("ACME", "NSE"): "85.00"})
    sweeper = Sweeper(engine, quotes, user.id, max_workers=2)
    try:
        results = _race_all([sweeper.run_once, lambda: engine.settle(order.id, "88.00")])
    finally:
        sweeper.close()
    assert len(engine.list_trades(user.id)) == 1
    assert engine.get_order(order.id).status is OrderStatus.EXECUTED
    assert len(results) == 2
