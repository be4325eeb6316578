"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, Request, status

from bookshelf.api.deps import get_auth_service, get_authentication, get_current_user
from bookshelf.models.user import User
from bookshelf.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    SessionResponse,
    TokenResponse,
    UserResponse,
)
from bookshelf.schemas.common import Envelope
from bookshelf.services.auth import AuthService, PrincipalNotFoundError
from bookshelf.services.auth_guard import AuthGuard, Authentication

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _session(auth_service: AuthService, user: User) -> SessionResponse:
    tokens = auth_service.create_tokens(user)
    return SessionResponse(**tokens, user=UserResponse.model_validate(user))


@router.post(
    "/register",
    response_model=Envelope[SessionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    data: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> Envelope[SessionResponse]:
    """Create an account and log it in.

    Returns 409 if the email is already registered.
    """
    user = await auth_service.register(data.name, data.email, data.password)
    return Envelope(message="User registered successfully", data=_session(auth_service, user))


@router.post("/login", response_model=Envelope[SessionResponse])
async def login(
    data: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> Envelope[SessionResponse]:
    """Authenticate with email and password and get an access token.

    Unknown emails and wrong passwords get the same 401. Five consecutive
    failures lock the account for a while.
    """
    user = await auth_service.authenticate(data.email, data.password)
    logger.info(f"User logged in: {user.email}")
    return Envelope(message="Login successful", data=_session(auth_service, user))


@router.post("/logout", response_model=Envelope[None])
async def logout(
    request: Request,
    authentication: Authentication = Depends(get_authentication),
) -> Envelope[None]:
    """Revoke the token used for this request."""
    guard: AuthGuard = request.app.state.auth_guard
    guard.revoke(authentication.token, authentication.expires_at)
    logger.info(f"User logged out: {authentication.user.email}")
    return Envelope(message="Logout successful")


@router.post("/change-password", response_model=Envelope[TokenResponse])
async def change_password(
    data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> Envelope[TokenResponse]:
    """Change the password.

    Every token issued before the change stops working; the response carries
    a replacement token for this client.
    """
    # The guard's copy of the user belongs to another session
    user = await auth_service.get_user_by_id(current_user.id)
    if user is None:
        raise PrincipalNotFoundError()

    changed_at = await auth_service.change_password(
        user, data.current_password, data.new_password
    )
    tokens = auth_service.create_tokens(user, issued_at=changed_at)
    return Envelope(message="Password changed successfully", data=TokenResponse(**tokens))


@router.get("/me", response_model=Envelope[UserResponse])
async def get_current_user_info(
    current_user: User = Depends(get_current_user),
) -> Envelope[UserResponse]:
    """Get current authenticated user information."""
    return Envelope(message="Authenticated user", data=UserResponse.model_validate(current_user))
