"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from gatekeeper.dependencies import CurrentUser, get_auth_service, get_current_user
from gatekeeper.exceptions import AuthErrorKind, BearerTokenError
from gatekeeper.routers.errors import raise_for_result
from gatekeeper.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    TokenClaimsResponse,
    UpdateProfileRequest,
    UserResponse,
)
from gatekeeper.services.auth import AuthResult, AuthService

logger = logging.getLogger("gatekeeper")

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])

FORGOT_PASSWORD_MESSAGE = "If an account exists with that email, a password reset link has been sent."


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(user=UserResponse.model_validate(result.user), token=result.token)  # type: ignore[arg-type]


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(body: RegisterRequest, auth_service: AuthService = Depends(get_auth_service)) -> AuthResponse:
    """Register a new user account."""
    result = await auth_service.register(body.email, body.password, body.name)
    raise_for_result(result)
    return _auth_response(result)


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, auth_service: AuthService = Depends(get_auth_service)) -> AuthResponse:
    """Authenticate and receive a bearer token."""
    result = await auth_service.login(body.email, body.password)
    raise_for_result(result)
    return _auth_response(result)


@router.get("/verify", response_model=TokenClaimsResponse)
async def verify_token(token: str, auth_service: AuthService = Depends(get_auth_service)) -> TokenClaimsResponse:
    """Verify a bearer token and return its claims."""
    try:
        claims = auth_service.verify_bearer_token(token)
    except BearerTokenError as e:
        raise HTTPException(status_code=401, detail=e.message) from None

    return TokenClaimsResponse(
        user_id=claims.user_id,
        email=claims.email,
        issued_at=claims.issued_at,
        expires_at=claims.expires_at,
    )


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest, auth_service: AuthService = Depends(get_auth_service)
) -> MessageResponse:
    """Request a password reset. The response never reveals whether the account exists."""
    await auth_service.request_password_reset(body.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest, auth_service: AuthService = Depends(get_auth_service)
) -> MessageResponse:
    """Set a new password using a reset token."""
    result = await auth_service.reset_password(body.token, body.new_password)
    raise_for_result(result)
    return MessageResponse(message="Password reset successfully")


@router.get("/profile", response_model=UserResponse)
async def get_profile(
    user: CurrentUser = Depends(get_current_user), auth_service: AuthService = Depends(get_auth_service)
) -> UserResponse:
    """Get the current user's profile."""
    result = await auth_service.get_profile(user.user_id)
    raise_for_result(result)
    return UserResponse.model_validate(result.user)


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    body: UpdateProfileRequest,
    user: CurrentUser = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    """Update the current user's name and/or email."""
    result = await auth_service.update_profile(user.user_id, name=body.name, email=body.email)
    raise_for_result(result)
    return UserResponse.model_validate(result.user)


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    user: CurrentUser = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Change the current user's password."""
    result = await auth_service.change_password(user.user_id, body.current_password, body.new_password)
    # A wrong current password is a bad request here, not a failed authentication.
    raise_for_result(result, overrides={AuthErrorKind.INVALID_CREDENTIALS: 400})
    return MessageResponse(message="Password changed successfully")


@router.post("/logout", response_model=MessageResponse)
async def logout(user: CurrentUser = Depends(get_current_user)) -> MessageResponse:
    """Bearer tokens are stateless; the client discards its token."""
    return MessageResponse(message="Logout successful")
