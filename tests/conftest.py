from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

import pytest
from fastapi.testclient import TestClient

from book_catalog.api.server import create_app
from book_catalog.auth.crud import DuplicateEmail
from book_catalog.config import Config
from book_catalog.util.time import utcnow_iso


TEST_SECRET = "test-secret-do-not-use-0123456789abcdef"


class FakeIdentityStore:
    """In-memory IdentityStore for exercising the auth operations without a DB."""

    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        for row in self.rows.values():
            if row["email"] == email:
                return dict(row)
        return None

    def find_by_id(self, identity_id: str) -> Optional[Dict[str, Any]]:
        row = self.rows.get(identity_id)
        return dict(row) if row is not None else None

    def insert(self, *, email: str, username: Optional[str], password_hash: str) -> Dict[str, Any]:
        if any(r["email"] == email for r in self.rows.values()):
            raise DuplicateEmail(email)
        row = {
            "id": uuid.uuid4().hex,
            "email": email,
            "username": username,
            "password_hash": password_hash,
            "created_at": utcnow_iso(),
        }
        self.rows[row["id"]] = row
        return dict(row)


@pytest.fixture
def store() -> FakeIdentityStore:
    return FakeIdentityStore()


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "book_catalog_test.sqlite")


@pytest.fixture
def cfg(db_path) -> Config:
    return Config(
        DB_DSN=db_path,
        AUTH_JWT_SECRET=TEST_SECRET,
        AUTH_TOKEN_EXPIRES_IN="7d",
        AUTH_PASSWORD_SCHEME="pbkdf2_sha256",
        CORS_ALLOW_ORIGINS="",
        INIT_DB_ON_STARTUP=True,
    )


@pytest.fixture
def client(cfg):
    # Context manager runs the startup hook (schema creation).
    with TestClient(create_app(cfg)) as c:
        yield c


def register_and_login(c: TestClient, email: str = "reader@example.com", password: str = "password1") -> Dict[str, str]:
    r = c.post("/auth/register", json={"email": email, "password": password})
    assert r.status_code == 201, r.json()
    r = c.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.json()
    return {"Authorization": f"Bearer {r.json()['data']['access_token']}"}


@pytest.fixture
def auth_headers(client) -> Dict[str, str]:
    return register_and_login(client)
