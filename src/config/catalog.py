"""
Stock catalog seed: JSON file -> list[Stock], validated against JSON Schema.

Default values: docs/config/catalog.default.json
Schema:         docs/config/catalog.schema.json

The seed only fills an empty or partial catalog; live quotes overwrite the
prices afterwards.

Usage:
    from config.catalog import load_catalog
    stocks = load_catalog()                    # loads default
    stocks = load_catalog("my_catalog.json")   # loads custom file
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import jsonschema

from ledger.models import Stock, to_money, utcnow

logger = logging.getLogger("ledger.config")


def _find_project_root() -> Path:
    """Walk up from this file looking for pyproject.toml.

    When running from source, finds the repo root.  When installed as a
    package, pyproject.toml won't exist; fall back to CWD.
    """
    candidate = Path(__file__).resolve().parent
    for _ in range(10):
        if (candidate / "pyproject.toml").exists():
            return candidate
        parent = candidate.parent
        if parent == candidate:
            break
        candidate = parent
    return Path.cwd()


_PROJECT_ROOT = _find_project_root()

DEFAULT_CATALOG_PATH = _PROJECT_ROOT / "docs" / "config" / "catalog.default.json"
DEFAULT_SCHEMA_PATH = _PROJECT_ROOT / "docs" / "config" / "catalog.schema.json"


class CatalogConfigError(Exception):
    """Raised when catalog loading or validation fails."""


def _validate_schema(data: Any, schema_path: Path) -> None:
    """Validate *data* against the JSON Schema at *schema_path*."""
    if not schema_path.exists():
        raise CatalogConfigError(f"Schema file not found: {schema_path}")
    with open(schema_path) as f:
        schema = json.load(f)
    try:
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as exc:
        raise CatalogConfigError(f"Catalog validation failed: {exc.message}") from exc


def _build_stock(entry: dict[str, Any]) -> Stock:
    price = to_money(str(entry["current_price"]))
    return Stock(
        id=0,
        symbol=entry["symbol"],
        exchange=entry["exchange"],
        name=entry["name"],
        current_price=price,
        previous_close=to_money(str(entry.get("previous_close", price))),
        day_high=to_money(str(entry.get("day_high", price))),
        day_low=to_money(str(entry.get("day_low", price))),
        day_open=to_money(str(entry.get("day_open", price))),
        volume=int(entry.get("volume", 0)),
        last_updated=utcnow(),
    )


def load_catalog(
    catalog_path: str | Path | None = None,
    schema_path: str | Path | None = None,
) -> list[Stock]:
    """Load and validate the seed catalog.

    Raises
    ------
    CatalogConfigError
        If the file is missing, unparseable, fails schema validation, or
        lists the same (symbol, exchange) twice.
    """
    cat_path = Path(catalog_path) if catalog_path else DEFAULT_CATALOG_PATH
    sch_path = Path(schema_path) if schema_path else DEFAULT_SCHEMA_PATH

    if not cat_path.exists():
        raise CatalogConfigError(f"Catalog file not found: {cat_path}")

    try:
        with open(cat_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise CatalogConfigError(f"Catalog is not valid JSON: {exc}") from exc

    _validate_schema(data, sch_path)

    stocks = [_build_stock(e) for e in data["stocks"]]
    keys = [(s.symbol, s.exchange) for s in stocks]
    dupes = sorted({k for k in keys if keys.count(k) > 1})
    if dupes:
        raise CatalogConfigError(f"Duplicate catalog entries: {dupes}")
    logger.debug("Loaded %d catalog entries from %s", len(stocks), cat_path)
    return stocks
