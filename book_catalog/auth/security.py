from __future__ import annotations

from datetime import datetime, timedelta
from functools import lru_cache
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from book_catalog.util.time import utcnow


_JWT_ALG = "HS256"
DEFAULT_PASSWORD_SCHEME = "pbkdf2_sha256"


@lru_cache(maxsize=None)
def _context(scheme: str) -> CryptContext:
    # pbkdf2_sha256 hashes stay verifiable after switching the default scheme.
    schemes = list(dict.fromkeys([scheme, DEFAULT_PASSWORD_SCHEME]))
    return CryptContext(schemes=schemes, default=scheme, deprecated="auto")


def hash_password(password: str, *, scheme: str = DEFAULT_PASSWORD_SCHEME) -> str:
    """Salted, deliberately slow one-way hash of `password`."""
    if not password:
        raise ValueError("password_blank")
    return _context(scheme).hash(password)


def verify_password(
    password: str,
    password_hash: str,
    *,
    scheme: str = DEFAULT_PASSWORD_SCHEME,
) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _context(scheme).verify(password, password_hash)
    except ValueError:
        # Unknown / malformed hash format.
        return False


def create_access_token(
    *,
    secret: str,
    identity_id: str,
    email: str,
    expires_in: timedelta,
    now: Optional[datetime] = None,
) -> str:
    """Sign a stateless bearer token for an identity.

    `now` is the issue time; tests pass a past value to simulate an elapsed window.
    """
    if not secret:
        raise ValueError("jwt_secret_blank")

    issued = now or utcnow()
    exp = issued + expires_in

    payload: Dict[str, Any] = {
        "sub": str(identity_id),
        "email": email,
        "iat": int(issued.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def decode_access_token(*, token: str, secret: str) -> Dict[str, Any]:
    """Verify signature and expiry. Raises jwt.InvalidTokenError subclasses."""
    if not token:
        raise ValueError("token_blank")
    if not secret:
        raise ValueError("jwt_secret_blank")
    return jwt.decode(token, secret, algorithms=[_JWT_ALG], options={"require": ["sub", "exp"]})
