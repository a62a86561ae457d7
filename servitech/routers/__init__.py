"""API routers."""

from servitech.routers.auth import router as auth_router
from servitech.routers.user import router as user_router

__all__ = ["auth_router", "user_router"]
