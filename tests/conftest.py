import pytest

from backend import create_app
from forumcore.config import DEFAULTS, _merge


@pytest.fixture
def config(tmp_path):
    return _merge(
        DEFAULTS,
        {
            "database": {"path": str(tmp_path / "forum.db"), "enable_wal": False},
            "logging": {"file": None},
        },
    )


@pytest.fixture
def app(config):
    app = create_app(config)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
