"""
Configuration and logging setup shared by the server, the client and scripts.

Settings come from a YAML file (forum_config.yaml by default) layered over
built-in defaults; `.env` values and the environment win over both.
"""
from __future__ import annotations

import copy
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "forum_config.yaml"

DEFAULTS: dict[str, Any] = {
    "database": {
        "path": "media_forum.db",
        "enable_wal": True,
    },
    "api": {
        "base_url": "http://127.0.0.1:5000/api",
        "timeout": 20,
    },
    "server": {
        "host": "127.0.0.1",
        "port": 5000,
    },
    "logging": {
        "level": "INFO",
        "file": "media_forum.log",
        "max_bytes": 10485760,
        "backup_count": 5,
    },
    "mutations": {
        "max_workers": 4,
    },
}

# environment variable -> (section, key, cast)
ENV_OVERRIDES = {
    "DATABASE_PATH": ("database", "path", str),
    "API_BASE_URL": ("api", "base_url", str),
    "APP_HOST": ("server", "host", str),
    "APP_PORT": ("server", "port", int),
    "LOG_LEVEL": ("logging", "level", str),
}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _merge(base: dict, overrides: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: str | os.PathLike | None = None) -> dict:
    """Load configuration from YAML, falling back to defaults when the file is absent."""
    load_dotenv()

    config_file = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    file_config: dict = {}
    if config_file.exists():
        with open(config_file, "r") as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"Configuration file must contain a mapping: {config_file}")
    elif config_path:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    config = _merge(DEFAULTS, file_config)

    for env_name, (section, key, cast) in ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw:
            config[section][key] = cast(raw)

    return config


def resolve_database_path(config: dict) -> str:
    """Absolute database path; relative paths are taken from the project root."""
    db_path = config.get("database", {}).get("path") or DEFAULTS["database"]["path"]
    if db_path == ":memory:" or os.path.isabs(db_path):
        return db_path
    return str(PROJECT_ROOT / db_path)


def setup_logging(config: dict, name: str | None = None) -> logging.Logger:
    """
    Attach a rotating file handler and a console handler to logger `name`.

    Calling it twice for the same logger does not duplicate handlers.
    """
    log_config = config.get("logging", {})
    log_level = getattr(logging, str(log_config.get("level", "INFO")).upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    if getattr(logger, "_forum_configured", False):
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    log_file = log_config.get("file")
    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=log_config.get("max_bytes", 10485760),
            backupCount=log_config.get("backup_count", 5),
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    logger._forum_configured = True
    return logger
