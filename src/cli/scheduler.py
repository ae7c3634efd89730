"""
Live sweep loop: re-evaluate pending orders every interval until Ctrl+C / SIGTERM.

Shutdown waits for in-flight settlements; nothing is aborted mid-transaction.
"""

from __future__ import annotations

import logging
import signal
import threading

import click

from cli.runtime import open_engine, open_quote_source
from cli.structured_log import StructuredEventLogger
from config.loader import AppConfig
from settlement.sweep import SweepReport, Sweeper, SweepScheduler

logger = logging.getLogger("ledger.scheduler")


def format_report(report: SweepReport) -> str:
    line = (
        f"{report.pending} pending | {len(report.settled)} settled | "
        f"{len(report.waiting)} waiting | {len(report.failures)} failed"
    )
    if report.rejected:
        line += f" | {len(report.rejected)} rejected"
    if report.timed_out:
        line += f" | {len(report.timed_out)} timed out"
    return line


def build_sweeper(cfg: AppConfig, events: StructuredEventLogger | None = None) -> Sweeper:
    engine, user = open_engine(cfg)
    return Sweeper(
        engine,
        open_quote_source(cfg, engine),
        user.id,
        max_workers=cfg.sweep.max_workers,
        order_timeout=cfg.sweep.quote_timeout_seconds,
        events=events,
    )


def run_live_sweep(cfg: AppConfig) -> int:
    """Run the sweep scheduler in the foreground. Returns the number of ticks run."""
    events = StructuredEventLogger(
        "sweep",
        enabled=cfg.alerting.structured_logs,
        webhook_url=cfg.alerting.webhook_url,
    )
    sweeper = build_sweeper(cfg, events)

    def on_tick(report: SweepReport) -> None:
        click.echo(f"[sweep] {format_report(report)}")

    scheduler = SweepScheduler(sweeper, cfg.sweep.interval_seconds, on_tick=on_tick)

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, lambda *_: scheduler.request_stop())

    click.echo(
        f"Sweep started: every {cfg.sweep.interval_seconds:g}s, "
        f"{cfg.sweep.max_workers} worker(s)  |  Ctrl+C to stop\n"
    )
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        click.echo("\nStopping; waiting for in-flight settlements ...")
    finally:
        scheduler.stop(wait=True)
        events.shutdown(ticks=scheduler.ticks)

    click.echo(f"Shut down after {scheduler.ticks} sweep(s). Goodbye.")
    return scheduler.ticks
