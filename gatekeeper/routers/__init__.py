"""API routers."""

from gatekeeper.routers.admin import router as admin_router
from gatekeeper.routers.auth import router as auth_router

__all__ = ["auth_router", "admin_router"]
