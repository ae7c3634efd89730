"""
Config loader: YAML file -> frozen dataclass tree.

API secrets resolved from environment variables (APCA_API_KEY_ID, APCA_API_SECRET_KEY).
Config file holds only non-secret values.
"""

import os
from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True)
class LedgerConfig:
    path: str = "data/ledger.db"
    demo_username: str = "demo"
    initial_balance: str = "100000.00"
    enforce_limits: bool = True
    catalog_path: str = ""


@dataclass(frozen=True)
class SweepConfig:
    interval_seconds: float = 5.0
    max_workers: int = 4
    quote_timeout_seconds: float = 10.0


@dataclass(frozen=True)
class QuotesConfig:
    source: str = "yahoo"
    timeout_seconds: float = 10.0
    api_key: str = ""
    api_secret: str = ""


@dataclass(frozen=True)
class JournalConfig:
    path: str = "data/journal.jsonl"
    echo_stdout: bool = False


@dataclass(frozen=True)
class AlertingConfig:
    structured_logs: bool = True
    webhook_url: str = ""


@dataclass(frozen=True)
class AppConfig:
    ledger: LedgerConfig
    sweep: SweepConfig
    quotes: QuotesConfig
    journal: JournalConfig
    alerting: AlertingConfig = AlertingConfig()


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """
    Load configuration from a YAML file.

    API keys are resolved from environment variables:
      - APCA_API_KEY_ID
      - APCA_API_SECRET_KEY
    These follow Alpaca's standard env var names and are only needed
    when quotes.source is "alpaca".
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    l_raw = raw.get("ledger", {})
    enforce_limits = l_raw.get("enforce_limits", True)
    if not isinstance(enforce_limits, bool):
        raise ValueError(f"ledger.enforce_limits must be true or false, got {enforce_limits!r}")
    ledger_cfg = LedgerConfig(
        path=l_raw.get("path", "data/ledger.db"),
        demo_username=str(l_raw.get("demo_username", "demo")),
        initial_balance=str(l_raw.get("initial_balance", "100000.00")),
        enforce_limits=enforce_limits,
        catalog_path=str(l_raw.get("catalog_path", "") or ""),
    )

    s_raw = raw.get("sweep", {})
    sweep_cfg = SweepConfig(
        interval_seconds=float(s_raw.get("interval_seconds", 5.0)),
        max_workers=int(s_raw.get("max_workers", 4)),
        quote_timeout_seconds=float(s_raw.get("quote_timeout_seconds", 10.0)),
    )
    if sweep_cfg.interval_seconds <= 0:
        raise ValueError(f"sweep.interval_seconds must be positive, got {sweep_cfg.interval_seconds}")
    if sweep_cfg.max_workers < 1:
        raise ValueError(f"sweep.max_workers must be >= 1, got {sweep_cfg.max_workers}")
    if sweep_cfg.quote_timeout_seconds <= 0:
        raise ValueError(f"sweep.quote_timeout_seconds must be positive, got {sweep_cfg.quote_timeout_seconds}")

    q_raw = raw.get("quotes", {})
    quotes_cfg = QuotesConfig(
        source=str(q_raw.get("source", "yahoo")),
        timeout_seconds=float(q_raw.get("timeout_seconds", 10.0)),
        api_key=os.environ.get("APCA_API_KEY_ID", ""),
        api_secret=os.environ.get("APCA_API_SECRET_KEY", ""),
    )

    j_raw = raw.get("journal", {})
    j_cfg = JournalConfig(
        path=j_raw.get("path", "data/journal.jsonl"),
        echo_stdout=bool(j_raw.get("echo_stdout", False)),
    )

    a_raw = raw.get("alerting", {})
    a_cfg = AlertingConfig(
        structured_logs=bool(a_raw.get("structured_logs", True)),
        webhook_url=str(a_raw.get("webhook_url", "")),
    )

    return AppConfig(
        ledger=ledger_cfg,
        sweep=sweep_cfg,
        quotes=quotes_cfg,
        journal=j_cfg,
        alerting=a_cfg,
    )
