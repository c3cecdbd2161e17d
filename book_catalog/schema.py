"""Database schema for the book catalog service.

SQLite is the default engine; Postgres is supported as well.

Timestamps are ISO-8601 TEXT (UTC, with 'Z') for portability across engines.
ISO strings sort lexicographically in time order, so `ORDER BY created_at`
behaves correctly.

Primary keys are uuid4 hex strings generated by the application.

NOTE: The Postgres schema is generated from the SQLite schema with a small set of
transformations (types + pragmas).
"""

from __future__ import annotations

import re


SCHEMA_SQLITE = r"""
PRAGMA foreign_keys = ON;

-- Users / Auth
-- Email is the unique login key; username is only a display label.
-- Only password hashes are stored. Tokens are stateless JWTs.
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    username TEXT,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS genres (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS books (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL UNIQUE,
    writer TEXT NOT NULL,
    publisher TEXT,
    publication_year INTEGER,
    description TEXT,
    price REAL NOT NULL,
    stock_quantity INTEGER NOT NULL,
    genre_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (genre_id) REFERENCES genres(id)
);
CREATE INDEX IF NOT EXISTS idx_books_genre ON books (genre_id);
CREATE INDEX IF NOT EXISTS idx_books_created ON books (created_at);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    # Remove SQLite pragmas
    lines: list[str] = []
    for line in ddl.splitlines():
        if line.strip().upper().startswith("PRAGMA "):
            continue
        lines.append(line)
    out = "\n".join(lines)

    # Types
    out = re.sub(r"\bREAL\b", "DOUBLE PRECISION", out)
    out = re.sub(r"\bINTEGER\b", "BIGINT", out)
    return out


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    d = (dialect or "").lower()
    if d.startswith("post"):
        return SCHEMA_POSTGRES
    return SCHEMA_SQLITE
