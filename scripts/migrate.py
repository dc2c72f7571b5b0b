#!/usr/bin/env python3
"""
Apply pending schema migrations to the configured SQLite database.

Usage: python scripts/migrate.py [path/to/forum_config.yaml]
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.db import connect
from backend.migrate import apply_migrations
from forumcore.config import load_config, resolve_database_path, setup_logging


def main(argv: list[str]) -> int:
    config = load_config(argv[1] if len(argv) > 1 else None)
    setup_logging(config, "backend.migrate")
    db_path = resolve_database_path(config)

    print(f"Database: {db_path}")
    conn = connect(db_path, enable_wal=config["database"].get("enable_wal", False))
    try:
        applied = apply_migrations(conn)
    finally:
        conn.close()

    if applied:
        for name in applied:
            print(f"[OK] Applied {name}")
    else:
        print("[OK] Schema is up to date")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
