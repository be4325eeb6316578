"""Bearer-token authentication middleware for the books API.

Every /api/* request except the public auth and health endpoints must carry
``Authorization: Bearer <token>``. The verified user is stored on
``request.state`` for route handlers and the response cache.
"""

import logging

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from bookshelf.api.errors import auth_error_response, server_error_response
from bookshelf.core.logging import bind_log_context, log_context
from bookshelf.services.auth import AuthBackendError, AuthError
from bookshelf.services.auth_guard import AuthGuard

logger = logging.getLogger(__name__)

PROTECTED_PREFIX = "/api"

# Exact paths under /api that handle their own authentication
PUBLIC_PATHS = frozenset(
    {
        "/api/auth/login",
        "/api/auth/register",
        "/api/health",
    }
)


def requires_auth(method: str, path: str) -> bool:
    # CORS preflight requests are answered by CORSMiddleware
    if method == "OPTIONS":
        return False
    if path in PUBLIC_PATHS:
        return False
    return path == PROTECTED_PREFIX or path.startswith(PROTECTED_PREFIX + "/")


class AuthGuardMiddleware(BaseHTTPMiddleware):
    """Reject unauthenticated /api/* requests before any handler or cache lookup runs.

    - 401 with the failure name in ``errors.code`` if the token is rejected
    - 500 if the user store cannot be reached (never reported as an auth failure)
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        with log_context(method=request.method, path=request.url.path):
            return await self._authenticate(request, call_next)

    async def _authenticate(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path

        if not requires_auth(request.method, path):
            return await call_next(request)

        guard: AuthGuard = request.app.state.auth_guard
        try:
            authentication = await guard.authenticate(request.headers.get("Authorization"))
        except AuthError as e:
            logger.warning(f"Rejected {request.method} {path}: {e.code}")
            return auth_error_response(e)
        except AuthBackendError:
            return server_error_response(
                "Authentication unavailable",
                "The user store could not be reached; try again later",
            )

        request.state.authentication = authentication
        request.state.user = authentication.user
        bind_log_context(user_id=authentication.user.id)
        return await call_next(request)
