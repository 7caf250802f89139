from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _ColumnSpec:
    name: str
    sql_type: str


@dataclass(frozen=True)
class _IndexSpec:
    name: str
    table: str
    column: str
    unique: bool = False
    where: str | None = None


def _table_exists(conn, table_name: str) -> bool:
    row = conn.execute(
        text("SELECT name FROM sqlite_master WHERE type='table' AND name=:name"), {"name": table_name}
    ).fetchone()
    return row is not None


def _existing_columns(conn, table_name: str) -> set[str]:
    rows = conn.execute(text(f'PRAGMA table_info("{table_name}")')).fetchall()
    return {r[1] for r in rows}  # name


def _index_exists(conn, index_name: str) -> bool:
    row = conn.execute(
        text("SELECT name FROM sqlite_master WHERE type='index' AND name=:name"), {"name": index_name}
    ).fetchone()
    return row is not None


def _add_column_if_missing(conn, *, table: str, col: _ColumnSpec) -> None:
    cols = _existing_columns(conn, table)
    if col.name in cols:
        return
    logger.info("Adding column %s.%s", table, col.name)
    conn.execute(text(f'ALTER TABLE "{table}" ADD COLUMN {col.name} {col.sql_type}'))


def _create_index_if_missing(conn, *, idx: _IndexSpec) -> None:
    if _index_exists(conn, idx.name):
        return
    unique = "UNIQUE " if idx.unique else ""
    where = f" WHERE {idx.where}" if idx.where else ""
    conn.execute(text(f'CREATE {unique}INDEX IF NOT EXISTS {idx.name} ON "{idx.table}" ({idx.column}){where}'))


def _demote_extra_active_periods(conn) -> None:
    # Databases written before the single-active index may hold several ACTIVE rows;
    # keep the newest one so the unique index can be built.
    rows = conn.execute(
        text("SELECT id FROM period WHERE status = 'ACTIVE' ORDER BY created_at DESC")
    ).fetchall()
    for row in rows[1:]:
        logger.warning("Demoting extra ACTIVE period %s to INACTIVE", row[0])
        conn.execute(text("UPDATE period SET status = 'INACTIVE' WHERE id = :id"), {"id": row[0]})


def apply_sqlite_migrations(engine: Engine) -> None:
    """Apply lightweight SQLite migrations for existing DB files.

    Notes:
    - Only ADD COLUMN / CREATE INDEX; anything heavier needs a real migration.
    - Table names are the SQLModel defaults (lowercased class names).
    """

    migrations: dict[str, list[_ColumnSpec]] = {
        "user": [
            _ColumnSpec("is_active", "BOOLEAN DEFAULT 1"),
            _ColumnSpec("experience", "INTEGER DEFAULT 0"),
            _ColumnSpec("tutor_id", "VARCHAR"),
        ],
        "period": [
            _ColumnSpec("total_weeks", "INTEGER DEFAULT 8"),
            _ColumnSpec("description", "VARCHAR"),
        ],
        "pointstransaction": [
            _ColumnSpec("point_reason_id", "VARCHAR"),
            _ColumnSpec("actor_id", "VARCHAR"),
        ],
        "experiencetransaction": [
            _ColumnSpec("actor_id", "VARCHAR"),
        ],
        "weeklyreport": [
            _ColumnSpec("comments", "VARCHAR"),
            _ColumnSpec("updated_at", "TIMESTAMP"),
        ],
        "weeklyreportquestion": [
            _ColumnSpec("is_active", "BOOLEAN DEFAULT 1"),
        ],
    }

    indexes: list[_IndexSpec] = [
        _IndexSpec("ix_user_is_active", "user", "is_active"),
        _IndexSpec("ix_user_tutor_id", "user", "tutor_id"),
        _IndexSpec("ix_pointstransaction_period_id", "pointstransaction", "period_id"),
        _IndexSpec("ix_experiencetransaction_period_id", "experiencetransaction", "period_id"),
        _IndexSpec("ix_weeklyreport_status", "weeklyreport", "status"),
        _IndexSpec("ux_period_single_active", "period", "status", unique=True, where="status = 'ACTIVE'"),
    ]

    with engine.begin() as conn:
        conn.execute(text("PRAGMA foreign_keys=ON"))

        for table, cols in migrations.items():
            if not _table_exists(conn, table):
                continue
            for col in cols:
                _add_column_if_missing(conn, table=table, col=col)

        if _table_exists(conn, "period"):
            _demote_extra_active_periods(conn)

        for idx in indexes:
            if not _table_exists(conn, idx.table):
                continue
            _create_index_if_missing(conn, idx=idx)
