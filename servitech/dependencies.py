"""Authentication dependencies for FastAPI routes."""

from collections.abc import Callable

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from servitech import messages
from servitech.database import get_db
from servitech.models.user import Role, User
from servitech.services.auth import get_auth_service
from servitech.services.jwt import get_session_issuer


def get_bearer_token(request: Request) -> str:
    """Extract the bearer token from the Authorization header. Raises 401 if absent."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail=messages.UNAUTHENTICATED)
    token = auth_header[7:].strip()
    if not token:
        raise HTTPException(status_code=401, detail=messages.UNAUTHENTICATED)
    return token


def get_current_user(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token to a user. Raises 401 if invalid, expired or revoked."""
    result = get_session_issuer().check(db, token)
    if not result.success:
        raise HTTPException(status_code=401, detail=messages.UNAUTHENTICATED)
    return result.user


def require_roles(*roles: Role) -> Callable[..., User]:
    """Build a dependency that admits only users holding one of ``roles``."""

    def dependency(user: User = Depends(get_current_user)) -> User:
        result = get_auth_service().authorize(user, roles)
        if not result.success:
            raise HTTPException(status_code=403, detail=result.error)
        return user

    return dependency
