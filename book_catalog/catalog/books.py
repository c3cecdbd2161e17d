from __future__ import annotations

import math
import uuid
from typing import Any, Dict, List, Mapping, Optional

from book_catalog.db import is_foreign_key_violation, is_unique_violation
from book_catalog.errors import ConflictError, NotFoundError, ValidationError
from book_catalog.util.time import utcnow_iso

from .genres import get_genre


DEFAULT_PAGE = 1
DEFAULT_LIMIT = 5
MAX_LIMIT = 100

# INTEGER columns are signed 64-bit on both engines.
INT_MIN = -(2**63)
INT_MAX = 2**63 - 1

REQUIRED_FIELDS = ("title", "writer", "price", "stock_quantity", "genre_id")
MUTABLE_FIELDS = (
    "title",
    "writer",
    "publisher",
    "publication_year",
    "description",
    "price",
    "stock_quantity",
    "genre_id",
)

_SELECT_WITH_GENRE = """
SELECT
    b.*,
    g.name AS genre_name,
    g.created_at AS genre_created_at,
    g.updated_at AS genre_updated_at
FROM books b
JOIN genres g ON g.id = b.genre_id
"""


def _blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


def _to_float(name: str, v: Any) -> float:
    if isinstance(v, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        f = float(v)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{name} must be a number")
    if not math.isfinite(f):
        raise ValidationError(f"{name} must be a number")
    if f < 0:
        raise ValidationError(f"{name} must not be negative")
    return f


def _to_int(name: str, v: Any) -> int:
    if isinstance(v, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(v, int):
        n = v
    else:
        try:
            f = float(v)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be an integer")
        if not math.isfinite(f) or not f.is_integer():
            raise ValidationError(f"{name} must be an integer")
        n = int(f)
    if not INT_MIN <= n <= INT_MAX:
        raise ValidationError(f"{name} is out of range")
    return n


def _book_from_row(row: Any) -> Dict[str, Any]:
    d = dict(row)
    genre = {
        "id": d["genre_id"],
        "name": d.pop("genre_name"),
        "created_at": d.pop("genre_created_at"),
        "updated_at": d.pop("genre_updated_at"),
    }
    d["genre"] = genre
    return d


def _normalize(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Coerce the book fields present in `fields` to their stored types."""
    out: Dict[str, Any] = {}
    for k in MUTABLE_FIELDS:
        if k not in fields:
            continue
        v = fields[k]
        if k in REQUIRED_FIELDS and _blank(v):
            raise ValidationError(f"{k} is required")
        if k == "price":
            out[k] = _to_float(k, v)
        elif k == "stock_quantity":
            n = _to_int(k, v)
            if n < 0:
                raise ValidationError("stock_quantity must not be negative")
            out[k] = n
        elif k == "publication_year":
            out[k] = None if _blank(v) else _to_int(k, v)
        elif k == "genre_id":
            out[k] = str(v).strip()
        elif isinstance(v, str):
            out[k] = v.strip() if k in REQUIRED_FIELDS else v
        else:
            out[k] = v
    return out


def _ensure_genre(conn: Any, genre_id: str) -> None:
    if get_genre(conn, genre_id) is None:
        raise ValidationError("Unknown genre_id")


def _ensure_title_free(conn: Any, title: str, exclude_id: Optional[str] = None) -> None:
    if exclude_id is None:
        row = conn.execute("SELECT 1 FROM books WHERE title=?", (title,)).fetchone()
    else:
        row = conn.execute(
            "SELECT 1 FROM books WHERE title=? AND id<>?", (title, exclude_id)
        ).fetchone()
    if row is not None:
        raise ConflictError("Book title already exists")


def _raise_constraint_error(e: Exception) -> None:
    """Map storage constraint failures that slipped past the pre-checks."""
    if is_unique_violation(e):
        raise ConflictError("Book title already exists") from e
    if is_foreign_key_violation(e):
        raise ValidationError("Unknown genre_id") from e


def get_book(conn: Any, book_id: str) -> Dict[str, Any]:
    row = conn.execute(_SELECT_WITH_GENRE + " WHERE b.id=?", (str(book_id),)).fetchone()
    if row is None:
        raise NotFoundError("Book not found")
    return _book_from_row(row)


def create_book(conn: Any, payload: Mapping[str, Any]) -> Dict[str, Any]:
    if any(_blank(payload.get(k)) for k in REQUIRED_FIELDS):
        raise ValidationError("title, writer, price, stock_quantity and genre_id are required")

    data = _normalize({k: payload.get(k) for k in MUTABLE_FIELDS})
    _ensure_title_free(conn, data["title"])
    _ensure_genre(conn, data["genre_id"])

    now = utcnow_iso()
    book_id = uuid.uuid4().hex
    try:
        conn.execute(
            """
            INSERT INTO books (
                id, title, writer, publisher, publication_year, description,
                price, stock_quantity, genre_id, created_at, updated_at
            ) VALUES (?,?,?,?,?,?,?,?,?,?,?)
            """,
            (
                book_id,
                data["title"],
                data["writer"],
                data.get("publisher"),
                data.get("publication_year"),
                data.get("description"),
                data["price"],
                data["stock_quantity"],
                data["genre_id"],
                now,
                now,
            ),
        )
    except Exception as e:
        _raise_constraint_error(e)
        raise
    return get_book(conn, book_id)


def list_books(
    conn: Any,
    *,
    title: Optional[str] = None,
    page: int = DEFAULT_PAGE,
    limit: int = DEFAULT_LIMIT,
) -> List[Dict[str, Any]]:
    """Newest first, optionally filtered by a case-insensitive title substring."""
    page = page if page and page >= 1 else DEFAULT_PAGE
    limit = min(limit if limit and limit >= 1 else DEFAULT_LIMIT, MAX_LIMIT)
    offset = (page - 1) * limit

    sql = _SELECT_WITH_GENRE
    params: List[Any] = []
    t = (title or "").strip()
    if t:
        sql += " WHERE LOWER(b.title) LIKE ?"
        params.append(f"%{t.lower()}%")
    sql += " ORDER BY b.created_at DESC, b.id DESC LIMIT ? OFFSET ?"
    params.extend([limit, offset])

    return [_book_from_row(r) for r in conn.execute(sql, params).fetchall()]


def update_book(conn: Any, book_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Partial update; keys outside MUTABLE_FIELDS are ignored."""
    current = get_book(conn, book_id)

    data = _normalize(changes)
    if not data:
        return current

    if "title" in data:
        _ensure_title_free(conn, data["title"], exclude_id=current["id"])
    if "genre_id" in data:
        _ensure_genre(conn, data["genre_id"])

    data["updated_at"] = utcnow_iso()
    sets = ", ".join([f"{k}=?" for k in data])
    params = list(data.values()) + [current["id"]]
    try:
        conn.execute(f"UPDATE books SET {sets} WHERE id=?", params)
    except Exception as e:
        _raise_constraint_error(e)
        raise
    return get_book(conn, current["id"])


def delete_book(conn: Any, book_id: str) -> None:
    cur = conn.execute("DELETE FROM books WHERE id=?", (str(book_id),))
    if int(cur.rowcount or 0) == 0:
        raise NotFoundError("Book not found")
