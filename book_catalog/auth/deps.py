from __future__ import annotations

from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from book_catalog.errors import AuthError, ConfigError

from .security import decode_access_token


_bearer = HTTPBearer(auto_error=False)


def get_identity_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Optional[str]:
    """Resolve `Authorization: Bearer <jwt>` to an identity id.

    Returns None when no token was sent, so the operation itself decides whether
    an anonymous caller is acceptable. A token that is present but invalid,
    expired or signed with another secret is rejected here with 401.
    """

    if credentials is None or not credentials.credentials:
        return None

    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise ConfigError("Server configuration missing")
    if not cfg.AUTH_JWT_SECRET:
        # Nothing could have been issued without a secret.
        raise AuthError("Unauthorized")

    try:
        payload = decode_access_token(token=credentials.credentials, secret=cfg.AUTH_JWT_SECRET)
    except (jwt.InvalidTokenError, ValueError):
        raise AuthError("Unauthorized")

    sub = payload.get("sub")
    if not sub:
        raise AuthError("Unauthorized")
    return str(sub)


def require_identity(identity_id: Optional[str] = Depends(get_identity_context)) -> str:
    if not identity_id:
        raise AuthError("Unauthorized")
    return identity_id
