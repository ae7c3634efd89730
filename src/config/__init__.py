"""
Configuration loaders.

App config:  reads config.yaml, resolves env vars for secrets.
Catalog:     reads catalog.default.json (or override), validates against JSON Schema.
"""

from config.catalog import CatalogConfigError, load_catalog
from config.loader import (
    AlertingConfig,
    AppConfig,
    JournalConfig,
    LedgerConfig,
    QuotesConfig,
    SweepConfig,
    load_config,
)

__all__ = [
    # App config (YAML)
    "AlertingConfig",
    "AppConfig",
    "JournalConfig",
    "LedgerConfig",
    "QuotesConfig",
    "SweepConfig",
    "load_config",
    # Stock catalog (JSON + schema)
    "CatalogConfigError",
    "load_catalog",
]
