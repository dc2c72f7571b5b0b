from __future__ import annotations

import sqlite3

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from forumcore.config import load_config, resolve_database_path
from forumcore.errors import ForumError

from .db import close_db, connect
from .migrate import apply_migrations
from .routes import BLUEPRINTS


def create_app(config: dict | None = None) -> Flask:
    """
    Build the persistence API.

    `config` is the mapping returned by `load_config`; the schema is brought
    up to date before the first request.
    """
    config = config or load_config()
    app = Flask(__name__)
    app.config["DATABASE_PATH"] = resolve_database_path(config)
    app.config["DATABASE_WAL"] = bool(config.get("database", {}).get("enable_wal", False))
    app.config["FORUM_CONFIG"] = config
    app.json.sort_keys = False

    conn = connect(app.config["DATABASE_PATH"], enable_wal=app.config["DATABASE_WAL"])
    try:
        applied = apply_migrations(conn)
    finally:
        conn.close()
    if applied:
        app.logger.info(f"Applied migrations: {', '.join(applied)}")

    app.teardown_appcontext(close_db)
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)

    @app.errorhandler(ForumError)
    def handle_forum_error(exc: ForumError):
        app.logger.info(f"{type(exc).__name__}: {exc.message}")
        return jsonify(exc.to_dict()), exc.status_code or 500

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"ok": False, "error": exc.description}), exc.code

    @app.errorhandler(sqlite3.Error)
    def handle_db_error(exc: sqlite3.Error):
        app.logger.exception("Database error")
        return jsonify({"ok": False, "error": f"Database error: {exc}"}), 500

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        app.logger.exception("Unhandled error")
        return jsonify({"ok": False, "error": "Internal server error"}), 500

    return app
