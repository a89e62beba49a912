"""Canonical error kinds.

Repositories and services raise these; the exception handler registered in
``main`` turns each one into exactly one HTTP status.
"""

from __future__ import annotations

from fastapi import status


class GameHangarError(Exception):
    """Base class for every error the API knows how to report."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    title: str = "Internal error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.title
        super().__init__(self.detail)


class NotFoundError(GameHangarError):
    status_code = status.HTTP_404_NOT_FOUND
    title = "Not found"


class ConflictError(GameHangarError):
    """Stale version on a versioned update, or a uniqueness clash."""

    status_code = status.HTTP_409_CONFLICT
    title = "Record conflict"


class ValidationFailed(GameHangarError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    title = "Validation failed"


class AuthMissingError(GameHangarError):
    status_code = status.HTTP_401_UNAUTHORIZED
    title = "Authentication required"


class AuthInvalidError(GameHangarError):
    """Credentials were supplied but do not match."""

    status_code = status.HTTP_401_UNAUTHORIZED
    title = "Invalid credentials"


class ForbiddenError(GameHangarError):
    status_code = status.HTTP_403_FORBIDDEN
    title = "Forbidden"


class ObjectTooLargeError(GameHangarError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    title = "The object for upload is too large"


class ObjectNotFoundError(GameHangarError):
    status_code = status.HTTP_404_NOT_FOUND
    title = "Specified object does not exist or was not created"


class UpstreamError(GameHangarError):
    """The database or the object store failed underneath us."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    title = "Upstream failure"


class InternalError(GameHangarError):
    pass
