"""Idempotent SQLite upgrades for databases created by older releases.

``Base.metadata.create_all`` builds fresh schemas. These helpers only ADD what
an existing database lacks; nothing is dropped.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

# Older clients wrote the mode with a ``stock_`` prefix.
LEGACY_MODES = {"stock_insert": "insert", "stock_remove": "remove"}

DEVICE_OPTIONAL_COLUMNS: dict[str, str] = {
    "description": "TEXT",
    "image": "TEXT",
}

DEVICE_LOG_OPTIONAL_COLUMNS: dict[str, str] = {
    "price": "REAL",
    "vendor": "TEXT",
    "remarks": "TEXT",
}


def _column_names(engine: Engine, table: str) -> set[str]:
    with engine.connect() as conn:
        rows = conn.execute(text(f"PRAGMA table_info({table})")).mappings().all()
    return {record["name"] for record in rows}


def _add_column_sqlite(engine: Engine, table: str, col_def: str) -> None:
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col_def}"))


def _create_index_if_not_exists(engine: Engine, table: str, name: str, cols: Iterable[str]) -> None:
    cols_sql = ", ".join(cols)
    with engine.begin() as conn:
        conn.execute(text(f"CREATE INDEX IF NOT EXISTS {name} ON {table} ({cols_sql})"))


def _add_missing_columns(engine: Engine, table: str, wanted: dict[str, str]) -> list[str]:
    existing = _column_names(engine, table)
    if not existing:
        return []
    added = []
    for name, dtype in wanted.items():
        if name not in existing:
            _add_column_sqlite(engine, table, f"{name} {dtype}")
            added.append(name)
    return added


def _rewrite_legacy_modes(engine: Engine) -> int:
    total = 0
    with engine.begin() as conn:
        for legacy, current in LEGACY_MODES.items():
            result = conn.execute(
                text("UPDATE device_logs SET mode = :current WHERE mode = :legacy"),
                {"current": current, "legacy": legacy},
            )
            total += result.rowcount or 0
    return total


def run_migrations(engine: Engine) -> None:
    """Bring an existing SQLite schema up to what the models expect."""

    if engine.dialect.name != "sqlite":
        return

    added = _add_missing_columns(engine, "devices", DEVICE_OPTIONAL_COLUMNS)
    if added:
        logger.info("migrate.columns_added", extra={"extra_data": {"table": "devices", "columns": added}})

    if not _column_names(engine, "device_logs"):
        return

    added = _add_missing_columns(engine, "device_logs", DEVICE_LOG_OPTIONAL_COLUMNS)
    if added:
        logger.info("migrate.columns_added", extra={"extra_data": {"table": "device_logs", "columns": added}})

    rewritten = _rewrite_legacy_modes(engine)
    if rewritten:
        logger.info("migrate.legacy_modes_rewritten", extra={"extra_data": {"rows": rewritten}})

    _create_index_if_not_exists(engine, "device_logs", "ix_device_logs_device_id", ["device_id"])
