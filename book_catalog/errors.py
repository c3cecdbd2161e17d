"""Service error taxonomy.

Each error carries the HTTP status the API maps it to and a message that is
safe to show to clients. Anything that is not a ServiceError is treated as an
internal error by the API layer and never described to the caller.
"""

from __future__ import annotations


class ServiceError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    status_code = 400
    default_message = "Invalid request"


class AuthError(ServiceError):
    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(ServiceError):
    status_code = 404
    default_message = "Not found"


class ConflictError(ServiceError):
    status_code = 409
    default_message = "Conflict"


class ConfigError(ServiceError):
    """Server misconfiguration (e.g. missing JWT secret). Not the client's fault."""

    status_code = 500
    default_message = "Server misconfigured"


class InternalError(ServiceError):
    status_code = 500
    default_message = "Internal server error"
