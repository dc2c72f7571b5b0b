"""
Apply the ordered .sql files in backend/migrations to a SQLite database.

Applied file names are recorded in `_migrations`, so running the migrations
again only executes the files that are new.
"""
from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

logger = logging.getLogger("backend.migrate")


def ensure_migrations_table(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS _migrations (
            name        TEXT PRIMARY KEY,
            applied_at  TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    conn.commit()


def applied_migrations(conn: sqlite3.Connection) -> set[str]:
    return {row[0] for row in conn.execute("SELECT name FROM _migrations")}


def pending_migrations(conn: sqlite3.Connection, migrations_dir: Path = MIGRATIONS_DIR) -> list[Path]:
    done = applied_migrations(conn)
    return [path for path in sorted(migrations_dir.glob("*.sql")) if path.name not in done]


def apply_migrations(conn: sqlite3.Connection, migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """Apply every pending migration and return the names that ran."""
    ensure_migrations_table(conn)
    applied: list[str] = []
    for path in pending_migrations(conn, migrations_dir):
        sql = path.read_text(encoding="utf-8")
        try:
            conn.executescript(sql)
            conn.execute("INSERT INTO _migrations (name) VALUES (?)", (path.name,))
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            logger.error(f"Migration {path.name} failed")
            raise
        logger.info(f"Applied migration {path.name}")
        applied.append(path.name)
    return applied
