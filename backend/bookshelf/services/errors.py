"""Service-layer exceptions mapped to HTTP error envelopes."""

from typing import Any


class ServiceError(Exception):
    """Base class for errors a handler can raise to produce an error response.

    Each subclass fixes the HTTP status; ``errors`` becomes the ``errors``
    member of the response envelope.
    """

    status_code: int = 400

    def __init__(self, message: str, errors: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationFailure(ServiceError):
    """Request data failed validation (400). ``errors`` maps field -> reason."""

    status_code = 400


class ForbiddenError(ServiceError):
    """Authenticated, but not allowed to touch this resource (403)."""

    status_code = 403


class NotFoundError(ServiceError):
    """Resource does not exist (404)."""

    status_code = 404


class ConflictError(ServiceError):
    """Duplicate resource (409)."""

    status_code = 409


class ServerFailure(ServiceError):
    """Infrastructure or unexpected failure (500)."""

    status_code = 500
