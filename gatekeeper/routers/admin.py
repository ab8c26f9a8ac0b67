"""Administrative endpoints: account activation and reset-token maintenance."""

from fastapi import APIRouter, Depends, Query

from gatekeeper.dependencies import get_auth_service, require_admin
from gatekeeper.routers.errors import raise_for_result
from gatekeeper.schemas.auth import CleanupResponse, ResetStatsResponse, UserListResponse, UserResponse
from gatekeeper.services.auth import AuthService

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.get("/users", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserListResponse:
    """List users, newest first."""
    result = await auth_service.list_users(page=page, limit=limit)
    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in result.users],
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
    )


@router.post("/users/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(user_id: str, auth_service: AuthService = Depends(get_auth_service)) -> UserResponse:
    result = await auth_service.deactivate_account(user_id)
    raise_for_result(result)
    return UserResponse.model_validate(result.user)


@router.post("/users/{user_id}/reactivate", response_model=UserResponse)
async def reactivate_user(user_id: str, auth_service: AuthService = Depends(get_auth_service)) -> UserResponse:
    result = await auth_service.reactivate_account(user_id)
    raise_for_result(result)
    return UserResponse.model_validate(result.user)


@router.get("/password-resets/stats", response_model=ResetStatsResponse)
async def password_reset_stats(auth_service: AuthService = Depends(get_auth_service)) -> ResetStatsResponse:
    return ResetStatsResponse(**await auth_service.password_reset_stats())


@router.post("/password-resets/cleanup", response_model=CleanupResponse)
async def cleanup_password_resets(auth_service: AuthService = Depends(get_auth_service)) -> CleanupResponse:
    """Delete expired reset tokens now instead of waiting for the scheduled sweep."""
    return CleanupResponse(removed=await auth_service.cleanup_expired_tokens())
