"""Authentication helpers.

Auth is intentionally lightweight:

- Users table (email + password hash, optional display username)
- Stateless JWT access tokens, sent as `Authorization: Bearer <token>`

The operations in `service` take their IdentityStore explicitly, so they can be
exercised against an in-memory fake as well as the SQL-backed store.
"""

from .crud import IdentityStore, SqlIdentityStore
from .deps import get_identity_context, require_identity
from .service import get_profile, login, register

__all__ = [
    "IdentityStore",
    "SqlIdentityStore",
    "get_identity_context",
    "require_identity",
    "get_profile",
    "login",
    "register",
]
