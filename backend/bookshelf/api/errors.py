"""Error envelopes and the exception handlers that produce them."""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from bookshelf.services.auth import AuthError
from bookshelf.services.errors import ServiceError

logger = logging.getLogger(__name__)

BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


def error_response(
    status_code: int,
    message: str,
    errors: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build a ``{"success": false, "message", "errors"}`` response."""
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "errors": errors},
        headers=headers,
    )


def auth_error_response(exc: AuthError) -> JSONResponse:
    """401 for an authentication failure, naming the failure in ``errors.code``."""
    return error_response(
        401,
        exc.message,
        {"auth": True, "code": exc.code, "details": exc.details},
        headers=BEARER_CHALLENGE,
    )


def server_error_response(message: str, details: str) -> JSONResponse:
    return error_response(500, message, {"server": True, "details": details})


def _field_errors(exc: RequestValidationError) -> dict[str, str]:
    """Collapse pydantic errors to one reason per field."""
    errors: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
        message = str(error.get("msg", "Invalid value"))
        # pydantic prefixes messages raised from validators
        message = message.removeprefix("Value error, ")
        errors.setdefault(field, message)
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers so every error leaves the app in the error envelope."""

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
        log_fn = logger.error if exc.status_code >= 500 else logger.info
        log_fn(f"{exc.status_code} {request.method} {request.url.path}: {exc.message}")
        return error_response(exc.status_code, exc.message, exc.errors)

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
        logger.warning(f"Authentication failed ({exc.code}) for {request.method} {request.url.path}")
        return auth_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return error_response(400, "Invalid request data", _field_errors(exc))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return server_error_response("Internal server error", "An unexpected error occurred")
