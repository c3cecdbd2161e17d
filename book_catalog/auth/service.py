"""Credential & session operations: registration, login, profile lookup.

Each operation takes its persistence collaborator (an IdentityStore) explicitly
and either returns a plain dict / token or raises a ServiceError subclass.
Unexpected failures from the store or the hasher are logged here and surfaced
as a generic InternalError so no internal detail reaches the client.
"""

from __future__ import annotations

import functools
import re
import traceback
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, TypeVar, Union

from book_catalog.errors import (
    AuthError,
    ConfigError,
    ConflictError,
    InternalError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from book_catalog.util.time import parse_duration

from .crud import DuplicateEmail, IdentityStore, identity_summary, public_identity
from .security import DEFAULT_PASSWORD_SCHEME, create_access_token, hash_password, verify_password


EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8

# Same message for unknown email and wrong password (no user enumeration).
INVALID_CREDENTIALS = "Invalid credentials"
REQUIRED_FIELDS = "Email and password are required"

F = TypeVar("F", bound=Callable[..., Any])


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def _operation(name: str) -> Callable[[F], F]:
    def wrap(fn: F) -> F:
        @functools.wraps(fn)
        def inner(*args: Any, **kwargs: Any) -> Any:
            try:
                return fn(*args, **kwargs)
            except ServiceError:
                raise
            except Exception as e:
                _debug(f"{name} error: {e!r}\n{traceback.format_exc()}")
                raise InternalError() from e

        return inner  # type: ignore[return-value]

    return wrap


@_operation("register")
def register(
    store: IdentityStore,
    email: Optional[str],
    password: Optional[str],
    username: Optional[str] = None,
    *,
    password_scheme: str = DEFAULT_PASSWORD_SCHEME,
) -> Dict[str, Any]:
    """Create an identity and return {id, email, created_at}."""
    if not email or not password:
        raise ValidationError(REQUIRED_FIELDS)
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email format")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    if store.find_by_email(email) is not None:
        raise ConflictError("Email already registered")

    password_hash = hash_password(password, scheme=password_scheme)
    try:
        row = store.insert(
            email=email,
            username=(username or "").strip() or None,
            password_hash=password_hash,
        )
    except DuplicateEmail:
        # Lost the race against a concurrent registration for the same email.
        raise ConflictError("Email already registered")

    _debug(f"Registered identity id={row['id']}")
    return identity_summary(row)


@functools.lru_cache(maxsize=None)
def _dummy_hash(scheme: str) -> str:
    return hash_password("no-such-identity-placeholder", scheme=scheme)


def _token_lifetime(expires_in: Union[timedelta, str, int]) -> timedelta:
    if isinstance(expires_in, timedelta):
        return expires_in
    try:
        return parse_duration(expires_in)
    except ValueError:
        raise ConfigError("JWT expiry not configured correctly")


@_operation("login")
def login(
    store: IdentityStore,
    email: Optional[str],
    password: Optional[str],
    *,
    secret: Optional[str],
    expires_in: Union[timedelta, str, int],
    password_scheme: str = DEFAULT_PASSWORD_SCHEME,
    now: Optional[datetime] = None,
) -> str:
    """Verify credentials and return a signed access token.

    `expires_in` is a timedelta or a raw duration ("7d", "30m", seconds). Server
    configuration (secret, expiry) is only checked once the credentials verify.
    """
    if not email or not password:
        raise ValidationError(REQUIRED_FIELDS)

    row = store.find_by_email(email)
    if row is None:
        # Unknown emails cost one verification, same as a wrong password.
        verify_password(password, _dummy_hash(password_scheme), scheme=password_scheme)
        raise AuthError(INVALID_CREDENTIALS)
    if not verify_password(password, str(row["password_hash"]), scheme=password_scheme):
        raise AuthError(INVALID_CREDENTIALS)

    if not secret:
        raise ConfigError("JWT secret not configured")
    lifetime = _token_lifetime(expires_in)

    return create_access_token(
        secret=secret,
        identity_id=str(row["id"]),
        email=str(row["email"]),
        expires_in=lifetime,
        now=now,
    )


@_operation("get_profile")
def get_profile(store: IdentityStore, identity_id: Optional[str]) -> Dict[str, Any]:
    """Return {id, username, email} for an already-verified identity context."""
    if not identity_id:
        raise AuthError("Unauthorized")

    row = store.find_by_id(identity_id)
    if row is None:
        raise NotFoundError("User not found")
    return public_identity(row)
