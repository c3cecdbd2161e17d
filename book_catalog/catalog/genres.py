from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from book_catalog.db import is_foreign_key_violation, is_unique_violation
from book_catalog.errors import ConflictError, NotFoundError, ValidationError
from book_catalog.util.time import utcnow_iso


def _clean_name(name: Optional[str]) -> str:
    n = (name or "").strip()
    if not n:
        raise ValidationError("Genre name is required")
    return n


def get_genre(conn: Any, genre_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute("SELECT * FROM genres WHERE id=?", (str(genre_id),)).fetchone()
    return dict(row) if row is not None else None


def create_genre(conn: Any, name: Optional[str]) -> Dict[str, Any]:
    n = _clean_name(name)

    existing = conn.execute("SELECT 1 FROM genres WHERE name=?", (n,)).fetchone()
    if existing is not None:
        raise ConflictError("Genre already exists")

    now = utcnow_iso()
    genre = {"id": uuid.uuid4().hex, "name": n, "created_at": now, "updated_at": now}
    try:
        conn.execute(
            "INSERT INTO genres (id, name, created_at, updated_at) VALUES (?,?,?,?)",
            (genre["id"], genre["name"], now, now),
        )
    except Exception as e:
        if is_unique_violation(e):
            raise ConflictError("Genre already exists") from e
        raise
    return genre


def list_genres(conn: Any) -> List[Dict[str, Any]]:
    """All genres ordered by name, each with its books."""
    genres = [dict(r) for r in conn.execute("SELECT * FROM genres ORDER BY name ASC").fetchall()]

    books_by_genre: Dict[str, List[Dict[str, Any]]] = {g["id"]: [] for g in genres}
    for r in conn.execute("SELECT * FROM books ORDER BY created_at DESC").fetchall():
        b = dict(r)
        books_by_genre.setdefault(b["genre_id"], []).append(b)

    for g in genres:
        g["books"] = books_by_genre.get(g["id"], [])
    return genres


def update_genre(conn: Any, genre_id: str, name: Optional[str]) -> Dict[str, Any]:
    n = _clean_name(name)

    genre = get_genre(conn, genre_id)
    if genre is None:
        raise NotFoundError("Genre not found")

    clash = conn.execute(
        "SELECT 1 FROM genres WHERE name=? AND id<>?", (n, str(genre_id))
    ).fetchone()
    if clash is not None:
        raise ConflictError("Genre already exists")

    now = utcnow_iso()
    try:
        conn.execute("UPDATE genres SET name=?, updated_at=? WHERE id=?", (n, now, str(genre_id)))
    except Exception as e:
        if is_unique_violation(e):
            raise ConflictError("Genre already exists") from e
        raise
    genre.update({"name": n, "updated_at": now})
    return genre


def delete_genre(conn: Any, genre_id: str) -> None:
    if get_genre(conn, genre_id) is None:
        raise NotFoundError("Genre not found")

    in_use = conn.execute("SELECT 1 FROM books WHERE genre_id=? LIMIT 1", (str(genre_id),)).fetchone()
    if in_use is not None:
        raise ConflictError("Genre still has books")

    try:
        conn.execute("DELETE FROM genres WHERE id=?", (str(genre_id),))
    except Exception as e:
        if is_foreign_key_violation(e):
            raise ConflictError("Genre still has books") from e
        raise
