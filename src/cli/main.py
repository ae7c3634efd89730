"""
CLI entry point: ledger init | stocks | quote | order | orders | positions | trades | portfolio | sweep | health.

Every command loads config from --config (default config.yaml), opens the
SQLite ledger, and prints human-readable output. Ledger events go to the journal.
"""

import logging
import sys
from functools import wraps
from pathlib import Path

import click
from dotenv import load_dotenv

from config import load_config

load_dotenv()

logger = logging.getLogger("ledger")


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


def _domain_errors(fn):
    """Render ledger, quote and validation failures as click errors (exit 1)."""
    from quotes.source import QuoteUnavailable
    from settlement.errors import SettlementError

    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (SettlementError, QuoteUnavailable, ValueError) as exc:
            raise click.ClickException(str(exc)) from exc

    return wrapper


@click.group()
@click.option("--config", "config_path", default="config.yaml", help="Path to config file.")
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """ledger: paper-trading limit orders settled against live quotes."""
    _setup_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ---------- ledger init ----------


@cli.command()
@click.pass_context
@_domain_errors
def init(ctx: click.Context) -> None:
    """Create the ledger database, the demo user, and seed the stock catalog."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.runtime import open_engine

    engine, user = open_engine(cfg, seed=True)
    click.echo(f"Ledger ready at {cfg.ledger.path}")
    click.echo(f"  User   : {user.username} (id={user.id})  cash {user.balance:,.2f}")
    click.echo(f"  Stocks : {len(engine.list_stocks())} in catalog")


# ---------- ledger stocks / quote ----------


@cli.command()
@click.option("--search", "query", default=None, help="Search NSE/BSE symbols by name or ticker.")
@click.pass_context
def stocks(ctx: click.Context, query: str | None) -> None:
    """List the stock catalog, or search the quote provider and then the catalog."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_search_results, format_stocks
    from cli.runtime import open_engine, open_quote_source

    engine, _ = open_engine(cfg)
    if not query:
        click.echo(format_stocks(engine.list_stocks()))
        return
    source = open_quote_source(cfg, engine)
    search = getattr(source, "search_symbols", None)
    matches = search(query) if search is not None else []
    if matches:
        click.echo(format_search_results(matches))
        return
    click.echo(format_stocks(engine.search_stocks(query)))


@cli.command()
@click.argument("symbol")
@click.option("--exchange", default="NSE", show_default=True, help="Exchange code (NSE or BSE).")
@click.pass_context
@_domain_errors
def quote(ctx: click.Context, symbol: str, exchange: str) -> None:
    """Fetch a fresh quote and record it in the catalog."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_quote
    from cli.runtime import open_engine, open_quote_source

    engine, _ = open_engine(cfg)
    source = open_quote_source(cfg, engine)
    q = source.get_price(symbol.upper(), exchange.upper())
    click.echo(format_quote(q))
    if not engine.record_quote(q):
        click.echo(f"\n  ({q.symbol}/{q.exchange} is not in the catalog; quote not recorded)")


# ---------- ledger order ----------


@cli.group()
def order() -> None:
    """Place or cancel limit orders."""


@order.command("place")
@click.argument("symbol")
@click.option("--side", type=click.Choice(["BUY", "SELL"], case_sensitive=False), required=True)
@click.option("--qty", type=int, required=True, help="Number of shares (> 0).")
@click.option("--limit", "limit_price", required=True, help="Limit price (> 0).")
@click.option("--exchange", default="NSE", show_default=True)
@click.option("--take-profit", default=None, help="Bracket TYPE:VALUE, e.g. PERCENTAGE:5.")
@click.option("--stop-loss", default=None, help="Bracket TYPE:VALUE, e.g. ABSOLUTE:95.50.")
@click.pass_context
@_domain_errors
def order_place(
    ctx: click.Context,
    symbol: str,
    side: str,
    qty: int,
    limit_price: str,
    exchange: str,
    take_profit: str | None,
    stop_loss: str | None,
) -> None:
    """Place a limit order. Settles immediately if the last known price allows."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_order
    from cli.runtime import open_engine
    from ledger.models import Bracket, Side
    from settlement.engine import OrderSpec

    engine, user = open_engine(cfg)
    spec = OrderSpec(
        user_id=user.id,
        symbol=symbol.upper(),
        exchange=exchange.upper(),
        side=Side(side.upper()),
        quantity=qty,
        limit_price=limit_price,
        take_profit=Bracket.parse(take_profit) if take_profit else None,
        stop_loss=Bracket.parse(stop_loss) if stop_loss else None,
    )
    placed = engine.create_order(spec)
    click.echo(format_order(placed))
    if placed.status.value == "EXECUTED":
        click.echo("  Settled immediately at the last known price.")
    else:
        click.echo("  Waiting for the limit price; run 'ledger sweep' to re-check.")


@order.command("cancel")
@click.argument("order_id", type=int)
@click.pass_context
@_domain_errors
def order_cancel(ctx: click.Context, order_id: int) -> None:
    """Cancel a pending order. Cancelling a settled or cancelled order does nothing."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.runtime import open_engine

    engine, _ = open_engine(cfg)
    current = engine.get_order(order_id)
    if engine.cancel_order(order_id):
        click.echo(f"Order #{order_id} cancelled.")
    else:
        click.echo(f"Order #{order_id} is {current.status.value}; nothing to cancel.")


# ---------- ledger orders / positions / trades / portfolio ----------


@cli.command()
@click.option("--active", is_flag=True, default=False, help="Only PENDING orders.")
@click.pass_context
def orders(ctx: click.Context, active: bool) -> None:
    """List orders, newest first (pending orders oldest first with --active)."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_orders
    from cli.runtime import open_engine

    engine, user = open_engine(cfg)
    listed = engine.list_active_orders(user.id) if active else engine.list_orders(user.id)
    click.echo(format_orders(listed))


@cli.command()
@click.pass_context
def positions(ctx: click.Context) -> None:
    """Show open positions at cost."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.runtime import open_engine

    engine, user = open_engine(cfg)
    held = engine.list_positions(user.id)
    if not held:
        click.echo("No open positions.")
        return
    for p in held:
        click.echo(
            f"  {p.symbol}/{p.exchange}: {p.quantity} @ avg {p.average_price:,.2f}"
            f"  (cost {p.investment:,.2f})"
        )


@cli.command()
@click.option("--limit", default=20, show_default=True, help="Number of recent trades to show.")
@click.pass_context
def trades(ctx: click.Context, limit: int) -> None:
    """Show recent trades, newest first."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_trades
    from cli.runtime import open_engine

    engine, user = open_engine(cfg)
    click.echo(format_trades(engine.list_trades(user.id, limit=limit)))


@cli.command()
@click.pass_context
@_domain_errors
def portfolio(ctx: click.Context) -> None:
    """Cash plus positions marked to live quotes, with unrealized P&L."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_portfolio
    from cli.runtime import open_engine, open_quote_source

    engine, user = open_engine(cfg)
    summary = engine.portfolio_summary(user.id, open_quote_source(cfg, engine))
    click.echo(format_portfolio(engine.get_user(user.id) or user, summary))


# ---------- ledger sweep ----------


@cli.command()
@click.option("--live", is_flag=True, default=False, help="Run continuously every sweep.interval_seconds until Ctrl+C.")
@click.pass_context
@_domain_errors
def sweep(ctx: click.Context, live: bool) -> None:
    """Re-check pending orders against fresh quotes and settle the crossed ones."""
    cfg = load_config(ctx.obj["config_path"])

    if live:
        from cli.scheduler import run_live_sweep
        run_live_sweep(cfg)
        return
    from cli.scheduler import build_sweeper, format_report

    sweeper = build_sweeper(cfg)
    try:
        report = sweeper.run_once()
    finally:
        sweeper.close(wait=True)
    click.echo(f"Sweep: {format_report(report)}")
    for order_id, reason in sorted(report.failures.items()):
        click.echo(f"  #{order_id}: {reason}")
    for order_id, reason in sorted(report.rejected.items()):
        click.echo(f"  #{order_id} rejected: {reason}")


# ---------- ledger health ----------


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check system health: config, ledger access, stock catalog.

    Exit code 0 = healthy, 1 = unhealthy. Designed for Docker HEALTHCHECK.
    """
    checks: list[tuple[str, bool, str]] = []

    try:
        cfg = load_config(ctx.obj["config_path"])
        checks.append(("config", True, f"loaded (quotes={cfg.quotes.source})"))
    except Exception as e:
        checks.append(("config", False, str(e)))
        _print_health(checks)
        raise SystemExit(1)

    if not Path(cfg.ledger.path).exists():
        checks.append(("ledger", False, f"{cfg.ledger.path} not found; run 'ledger init'"))
        _print_health(checks)
        raise SystemExit(1)

    try:
        from ledger.store import SqliteLedgerStore
        store = SqliteLedgerStore(cfg.ledger.path)
        with store.transaction(write=False) as tx:
            stock_count = len(tx.list_stocks())
            user = tx.get_user_by_username(cfg.ledger.demo_username)
        detail = f"{cfg.ledger.path}, user {cfg.ledger.demo_username} " + ("present" if user else "missing")
        checks.append(("ledger", True, detail))
        if stock_count > 0:
            checks.append(("catalog", True, f"{stock_count} stocks"))
        else:
            checks.append(("catalog", False, "no stocks; run 'ledger init'"))
    except Exception as e:
        checks.append(("ledger", False, str(e)))

    _print_health(checks)
    healthy = all(ok for _, ok, _ in checks)
    raise SystemExit(0 if healthy else 1)


def _print_health(checks: list[tuple[str, bool, str]]) -> None:
    for name, ok, detail in checks:
        status = "OK" if ok else "FAIL"
        click.echo(f"  [{status}] {name}: {detail}")
    healthy = all(ok for _, ok, _ in checks)
    click.echo(f"\nHealth: {'HEALTHY' if healthy else 'UNHEALTHY'}")


if __name__ == "__main__":
    cli()
