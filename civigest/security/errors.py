"""
Error taxonomy for the access core.

Every error is an `HTTPException`, so raising it from a dependency or a
service is enough for FastAPI to produce the right response.
"""

from __future__ import annotations

from fastapi import HTTPException, status


class AccessError(HTTPException):
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request rejected"

    def __init__(self, detail: str | None = None) -> None:
        headers = {"WWW-Authenticate": "Bearer"} if self.status_code == status.HTTP_401_UNAUTHORIZED else None
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail, headers=headers)


class InvalidCredential(AccessError):
    """Bad signature, malformed or expired token, or failed login."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid credentials"


class UnknownOrInactiveAccount(AccessError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Account not found or inactive"


class InactiveTenant(AccessError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "The account's region is inactive"


class Forbidden(AccessError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"


class NotFound(AccessError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class Conflict(AccessError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


class BadRequest(AccessError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad request"
