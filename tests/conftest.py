import os
import tempfile

# Settings are read once per process, so the environment has to be in place
# before any application module is imported.
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["PWD_ITERATIONS"] = "1000"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="catalog-uploads-")
os.environ["DATABASE_URL"] = ""
os.environ["DATABASE_NAME"] = ""

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import create_document, ensure_indexes, get_db
from main import app
from schemas import Game


@pytest.fixture
def db():
    database = mongomock.MongoClient().get_database("catalog_test")
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_game(db):
    """Insert a game straight into the store and return its id as a string."""
    def _make(title="Space Raiders", category="Action", price=19.99, **extra):
        game = Game(
            title=title,
            description=extra.pop("description", f"About {title}"),
            category=category,
            publisher=extra.pop("publisher", "Nebula Works"),
            price=price,
            **extra,
        )
        return str(create_document(db, "game", game))
    return _make


@pytest.fixture
def auth_headers(client):
    """Register + log in a user over HTTP and return (headers, user_id)."""
    def _login(username="alice", email="a@x.com", password="pw123"):
        r = client.post("/api/register", json={"username": username, "email": email, "password": password})
        assert r.status_code == 201, r.text
        r = client.post("/api/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        body = r.json()
        return {"Authorization": f"Bearer {body['token']}"}, body["user"]["id"]
    return _login
