"""Idempotent, additive SQLite migrations for databases that predate a column."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

# Columns added after the first equipment schema shipped. Older databases
# only had id/name/category/status/location/system_color and the checkout triple.
EQUIPMENT_COLUMNS: dict[str, str] = {
    "original_system_color": "TEXT",
    "temporary_system_color": "TEXT",
    "replacement_id": "TEXT",
    "swapped_from_id": "TEXT",
    "due_date": "TEXT",
    "notes": "TEXT",
    "created_at": "TEXT",
    "updated_at": "TEXT",
    "version": "INTEGER DEFAULT 1 NOT NULL",
}

HISTORY_COLUMNS: dict[str, str] = {
    "details": "TEXT",
    "work_order": "TEXT",
}

EQUIPMENT_INDEXES: dict[str, list[str]] = {
    "ix_equipment_category": ["category"],
    "ix_equipment_system_color": ["system_color"],
    "ix_equipment_temporary_system_color": ["temporary_system_color"],
    "ix_equipment_work_order": ["work_order"],
}


def _column_names(engine: Engine, table: str) -> set[str]:
    with engine.connect() as conn:
        return {record["name"] for record in conn.execute(text(f"PRAGMA table_info({table})")).mappings().all()}


def _add_column_sqlite(engine: Engine, table: str, col_def: str) -> None:
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col_def}"))


def _create_index_if_not_exists(engine: Engine, table: str, name: str, cols: Iterable[str]) -> None:
    with engine.begin() as conn:
        conn.execute(text(f"CREATE INDEX IF NOT EXISTS {name} ON {table} ({', '.join(cols)})"))


def _add_missing(engine: Engine, table: str, needed: dict[str, str]) -> list[str]:
    existing = _column_names(engine, table)
    if not existing:
        # Table absent; create_all builds it fresh.
        return []
    added = []
    for name, dtype in needed.items():
        if name not in existing:
            _add_column_sqlite(engine, table, f"{name} {dtype}")
            added.append(name)
    return added


def run_migrations(engine: Engine) -> None:
    """Bring an existing SQLite schema up to what the models expect."""

    if engine.dialect.name != "sqlite":
        return

    added = _add_missing(engine, "equipment", EQUIPMENT_COLUMNS)
    if added:
        with engine.begin() as conn:
            # Rows that predate swaps are in their permanent system.
            conn.execute(
                text(
                    "UPDATE equipment SET original_system_color = system_color "
                    "WHERE original_system_color IS NULL AND temporary_system_color IS NULL"
                )
            )
            conn.execute(
                text(
                    "UPDATE equipment SET "
                    "created_at = COALESCE(created_at, strftime('%Y-%m-%dT%H:%M:%SZ', 'now')), "
                    "updated_at = COALESCE(updated_at, strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))"
                )
            )
        logger.info("db.migrated", extra={"extra_data": {"table": "equipment", "columns": added}})

    history_added = _add_missing(engine, "equipment_history", HISTORY_COLUMNS)
    if history_added:
        logger.info("db.migrated", extra={"extra_data": {"table": "equipment_history", "columns": history_added}})

    if _column_names(engine, "equipment"):
        for name, cols in EQUIPMENT_INDEXES.items():
            _create_index_if_not_exists(engine, "equipment", name, cols)
