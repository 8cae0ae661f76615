"""Shared pytest fixtures for the test suite.

Fixture overview
----------------
db          — in-memory mongomock database patched in as ``database.db``
favorites   — favorites store backed by a temporary JSON file
client      — FastAPI TestClient wired to both of the above
make_user   — registers an account and returns its id and auth headers
jpeg        — a tiny image encoded as a base64 data URL
"""

from __future__ import annotations

import base64

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main
from favorites import FavoritesStore

JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00fake-jpeg-payload"


@pytest.fixture
def db(monkeypatch):
    mock_db = mongomock.MongoClient()["unimart_test"]
    monkeypatch.setattr(database, "db", mock_db)
    return mock_db


@pytest.fixture
def favorites(tmp_path, monkeypatch) -> FavoritesStore:
    store = FavoritesStore(tmp_path / "favorites.json")
    monkeypatch.setattr(main, "favorites_store", store)
    return store


@pytest.fixture
def client(db, favorites):
    with TestClient(main.app) as c:
        yield c


@pytest.fixture
def make_user(client):
    """Register a user and return ``{"id", "email", "headers"}``."""

    def _make(email: str, password: str = "secret123") -> dict:
        resp = client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "confirm_password": password},
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        return {
            "id": body["id"],
            "email": body["email"],
            "headers": {"Authorization": f"Bearer {body['token']}"},
        }

    return _make


@pytest.fixture
def jpeg() -> str:
    return "data:image/jpeg;base64," + base64.b64encode(JPEG_BYTES).decode()


@pytest.fixture
def product_form(jpeg) -> dict:
    return {
        "name": "Calculus Textbook",
        "price": "450",
        "description": "Used for one semester, good condition",
        "contact": "0771234567",
        "images": [jpeg],
    }
