import logging

import pytest

from forumcore.config import load_config, resolve_database_path, setup_logging


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DATABASE_PATH", "API_BASE_URL", "APP_HOST", "APP_PORT", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def test_file_values_merge_over_defaults(tmp_path):
    path = tmp_path / "forum_config.yaml"
    path.write_text("server:\n  port: 8080\nmutations:\n  max_workers: 2\n")

    config = load_config(path)
    assert config["server"]["port"] == 8080
    assert config["server"]["host"] == "127.0.0.1"
    assert config["mutations"]["max_workers"] == 2
    assert config["api"]["timeout"] == 20


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "forum_config.yaml"
    path.write_text("server:\n  port: 8080\n")
    monkeypatch.setenv("APP_PORT", "9090")
    monkeypatch.setenv("DATABASE_PATH", "/tmp/other.db")

    config = load_config(path)
    assert config["server"]["port"] == 9090
    assert config["database"]["path"] == "/tmp/other.db"


def test_missing_explicit_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")


def test_relative_database_path_is_anchored():
    path = resolve_database_path({"database": {"path": "media_forum.db"}})
    assert path.endswith("media_forum.db")
    assert resolve_database_path({"database": {"path": ":memory:"}}) == ":memory:"


def test_setup_logging_installs_handlers_once(tmp_path):
    config = {"logging": {"level": "DEBUG", "file": str(tmp_path / "forum.log")}}
    logger = setup_logging(config, "forum-test")
    handlers = list(logger.handlers)
    setup_logging(config, "forum-test")

    assert logger.handlers == handlers
    assert logger.level == logging.DEBUG
    for handler in handlers:
        logger.removeHandler(handler)
        handler.close()
