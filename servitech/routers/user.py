"""Current-user API endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from servitech import messages, responses
from servitech.database import get_db
from servitech.dependencies import get_current_user
from servitech.models.user import User
from servitech.schemas.user import UpdatePasswordRequest, UpdateProfileRequest, UserResponse
from servitech.services.auth import get_auth_service

router = APIRouter(prefix="/api/v1/user", tags=["User"])


@router.get("/profile")
def profile(user: User = Depends(get_current_user)) -> JSONResponse:
    """Return the authenticated user."""
    return responses.success(data={"user": UserResponse.model_validate(user)}, message=messages.INFO_RETRIEVED)


@router.put("/profile")
def update_profile(
    body: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> JSONResponse:
    """Update name and phone of the authenticated user."""
    result = get_auth_service().update_profile(db, user, body.name, body.phone)
    return responses.success(data={"user": UserResponse.model_validate(result.user)}, message=messages.INFO_UPDATED)


@router.put("/password")
def update_password(
    body: UpdatePasswordRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> JSONResponse:
    """Change the password after checking the current one."""
    result = get_auth_service().update_password(db, user, body.old_password, body.password)
    if not result.success:
        return responses.validation_error("old_password", result.error)
    return responses.success(message=messages.PASSWORD_UPDATED)
