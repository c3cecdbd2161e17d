from __future__ import annotations

import uuid
from typing import Any, Dict, Optional, Protocol

from book_catalog.db import is_unique_violation
from book_catalog.util.time import utcnow_iso


class DuplicateEmail(Exception):
    """Raised by a store when the storage layer rejects a second identity for an email."""


class IdentityStore(Protocol):
    """Persistence capability needed by the credential/session operations."""

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]: ...

    def find_by_id(self, identity_id: str) -> Optional[Dict[str, Any]]: ...

    def insert(
        self,
        *,
        email: str,
        username: Optional[str],
        password_hash: str,
    ) -> Dict[str, Any]: ...


def public_identity(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    """Profile view of an identity: id, username, email. Never the hash."""
    d = dict(row)
    return {"id": d["id"], "username": d.get("username"), "email": d["email"]}


def identity_summary(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    """Registration view of an identity: id, email, created_at."""
    d = dict(row)
    return {"id": d["id"], "email": d["email"], "created_at": d["created_at"]}


class SqlIdentityStore:
    """IdentityStore backed by the `users` table on an open connection (see db.connect)."""

    def __init__(self, conn: Any):
        self.conn = conn

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        if not email:
            return None
        row = self.conn.execute("SELECT * FROM users WHERE email=?", (email,)).fetchone()
        return dict(row) if row is not None else None

    def find_by_id(self, identity_id: str) -> Optional[Dict[str, Any]]:
        if not identity_id:
            return None
        row = self.conn.execute("SELECT * FROM users WHERE id=?", (str(identity_id),)).fetchone()
        return dict(row) if row is not None else None

    def insert(
        self,
        *,
        email: str,
        username: Optional[str],
        password_hash: str,
    ) -> Dict[str, Any]:
        row = {
            "id": uuid.uuid4().hex,
            "email": email,
            "username": username,
            "password_hash": password_hash,
            "created_at": utcnow_iso(),
        }
        try:
            self.conn.execute(
                """
                INSERT INTO users (id, email, username, password_hash, created_at)
                VALUES (?,?,?,?,?)
                """,
                (row["id"], row["email"], row["username"], row["password_hash"], row["created_at"]),
            )
        except Exception as e:
            if is_unique_violation(e):
                raise DuplicateEmail(email) from e
            raise
        return row
