import os
from dataclasses import dataclass, field
from typing import Optional

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # If python-dotenv isn't installed or .env isn't present, that's fine.
    pass


def _env_str(*names: str, default: Optional[str] = None) -> Optional[str]:
    """Return the first non-blank value among several environment variables."""
    for name in names:
        raw = os.environ.get(name)
        if raw is not None and raw.strip():
            return raw.strip()
    return default


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    Values are read from the environment when the instance is created, so tests
    can build one after patching env vars (or pass explicit keyword arguments).

    IMPORTANT: Provide the JWT secret via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Core
    # -----------------
    # Preferred: set BOOK_CATALOG_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: BOOK_CATALOG_DB_PATH for SQLite.
    DB_DSN: str = field(
        default_factory=lambda: _env_str(
            "BOOK_CATALOG_DATABASE_URL",
            "DATABASE_URL",
            "BOOK_CATALOG_DB_PATH",
            default="./book_catalog.sqlite",
        )
    )

    # -----------------
    # Auth (JWT)
    # -----------------
    # No default on purpose: a missing secret must not stop the API from booting,
    # login requests report it as a server configuration error instead.
    AUTH_JWT_SECRET: Optional[str] = field(
        default_factory=lambda: _env_str("JWT_SECRET", "AUTH_JWT_SECRET")
    )
    # Duration string: "7d", "12h", "30m", "45s" or plain seconds.
    AUTH_TOKEN_EXPIRES_IN: str = field(
        default_factory=lambda: _env_str("JWT_EXPIRES_IN", "AUTH_TOKEN_EXPIRES_IN", default="7d")
    )
    # passlib scheme used for new password hashes.
    AUTH_PASSWORD_SCHEME: str = field(
        default_factory=lambda: _env_str("AUTH_PASSWORD_SCHEME", default="pbkdf2_sha256")
    )

    # -----------------
    # HTTP
    # -----------------
    API_HOST: str = field(default_factory=lambda: _env_str("API_HOST", default="0.0.0.0"))
    API_PORT: int = field(default_factory=lambda: int(_env_str("API_PORT", default="8000")))

    # Comma-separated origins. Leave empty when the API sits behind the same origin.
    CORS_ALLOW_ORIGINS: str = field(
        default_factory=lambda: _env_str(
            "CORS_ALLOW_ORIGINS",
            default="http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
        )
    )

    # Create tables on API startup.
    INIT_DB_ON_STARTUP: bool = field(
        default_factory=lambda: _env_bool("INIT_DB_ON_STARTUP", True) is True
    )


def load_config() -> Config:
    return Config()
