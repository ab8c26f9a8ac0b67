"""Mapping from credential-service results to HTTP errors."""

from fastapi import HTTPException

from gatekeeper.exceptions import AuthErrorKind
from gatekeeper.services.auth import AuthResult

ERROR_STATUS = {
    AuthErrorKind.INVALID_INPUT: 400,
    AuthErrorKind.CONFLICT: 409,
    AuthErrorKind.INVALID_CREDENTIALS: 401,
    AuthErrorKind.ACCOUNT_DEACTIVATED: 403,
    AuthErrorKind.INVALID_TOKEN: 400,
    AuthErrorKind.TOKEN_EXPIRED: 400,
    AuthErrorKind.NOT_FOUND: 404,
}


def raise_for_result(result: AuthResult, overrides: dict[AuthErrorKind, int] | None = None) -> None:
    """Raise an HTTPException for a failed result; do nothing on success."""
    if result.success:
        return
    status_code = (overrides or {}).get(result.error_kind) or ERROR_STATUS.get(result.error_kind, 400)
    raise HTTPException(
        status_code=status_code,
        detail=result.error,
        headers={"X-Error-Code": result.error_kind.value} if result.error_kind else None,
    )
