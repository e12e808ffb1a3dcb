"""Shared test configuration: a throwaway SQLite file and fast bcrypt."""

import os
import tempfile

# Must happen before the app modules are imported: db_sqlalchemy reads DB_URL at import
_TMP_DIR = tempfile.mkdtemp(prefix="pastemd-tests-")
DB_PATH = os.path.join(_TMP_DIR, "pastes.db")
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{DB_PATH}"
os.environ["DISABLE_RATE_LIMIT"] = "1"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient

import rate_limit


def _fresh_client():
    if os.path.exists(DB_PATH):
        os.remove(DB_PATH)
    rate_limit.reset()
    from main import create_app
    return TestClient(create_app())


@pytest.fixture
def make_client():
    """Build a client after the test has adjusted its environment."""
    clients = []

    def _make():
        c = _fresh_client()
        c.__enter__()
        clients.append(c)
        return c

    yield _make
    for c in clients:
        c.__exit__(None, None, None)


@pytest.fixture
def client():
    with _fresh_client() as c:
        yield c


@pytest.fixture
def create_paste(client):
    def _create(**body):
        body.setdefault("content", "hello world")
        response = client.post("/api/new", json=body)
        assert response.status_code == 200, response.text
        return response.json()["payload"]

    return _create
