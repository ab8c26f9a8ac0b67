"""FastAPI dependencies: store, credential service and authenticated user."""

import hmac
from dataclasses import dataclass

from fastapi import BackgroundTasks, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from gatekeeper.config import get_settings
from gatekeeper.database import get_db
from gatekeeper.events import EventDispatcher
from gatekeeper.exceptions import BearerTokenError
from gatekeeper.notifications import build_notifier
from gatekeeper.services.auth import AuthService
from gatekeeper.store import CredentialStore, SQLAlchemyCredentialStore


@dataclass
class CurrentUser:
    """Authenticated user context."""

    user_id: str
    email: str
    name: str


_dispatcher: EventDispatcher | None = None


def get_event_dispatcher() -> EventDispatcher:
    """Get singleton event dispatcher instance."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = EventDispatcher(build_notifier(get_settings()))
    return _dispatcher


def get_store(db: AsyncSession = Depends(get_db)) -> CredentialStore:
    """Credential store bound to this request's session."""
    return SQLAlchemyCredentialStore(db)


def get_auth_service(
    background_tasks: BackgroundTasks,
    store: CredentialStore = Depends(get_store),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> AuthService:
    # Mail goes out after the response is sent, so response time does not depend on the provider.
    return AuthService(store, dispatcher=dispatcher, defer=background_tasks.add_task)


def extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


async def get_current_user(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> CurrentUser:
    """Validate the Bearer token and load its user. Raises 401 if invalid."""
    token = extract_bearer_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        claims = auth_service.verify_bearer_token(token)
    except BearerTokenError as e:
        raise HTTPException(status_code=401, detail=e.message) from None

    user = await auth_service.store.find_user_by_id(claims.user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")

    return CurrentUser(user_id=user.id, email=user.email, name=user.name)


def require_admin(x_admin_key: str | None = Header(default=None)) -> None:
    """Guard admin endpoints with the shared ADMIN_API_KEY."""
    admin_key = get_settings().ADMIN_API_KEY
    if not admin_key:
        raise HTTPException(status_code=404, detail="Not found")
    if not x_admin_key or not hmac.compare_digest(x_admin_key, admin_key):
        raise HTTPException(status_code=403, detail="Admin key required")
