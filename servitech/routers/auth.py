"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.responses import Response

from servitech import messages, responses
from servitech.database import get_db
from servitech.dependencies import get_bearer_token
from servitech.outcomes import AuthFailure
from servitech.rate_limit import limiter
from servitech.schemas.auth import LoginRequest, RegisterRequest, ResetPasswordRequest, SendResetLinkRequest
from servitech.schemas.user import UserResponse
from servitech.services.auth import get_auth_service
from servitech.templating import TYPE_ERROR, TYPE_SUCCESS, render_reset_result

logger = logging.getLogger("servitech")

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


@router.post("/register")
@limiter.limit("5/minute")
def register(request: Request, body: RegisterRequest, db: Session = Depends(get_db)) -> JSONResponse:
    """Register a new user account with the default role."""
    auth_service = get_auth_service()
    result = auth_service.register(db, body.name, body.email, body.password, body.phone)

    if not result.success:
        return responses.validation_error("email", result.error)

    return responses.success(
        data={"user": UserResponse.model_validate(result.user)},
        message=messages.REGISTERED,
        status=201,
    )


@router.post("/login")
@limiter.limit("10/minute")
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)) -> JSONResponse:
    """Authenticate and receive a bearer token.

    Unknown email (400) and wrong password (401) are reported differently,
    which lets a caller probe for registered addresses.
    """
    auth_service = get_auth_service()
    result = auth_service.login(db, body.email, body.password)

    if result.failure is AuthFailure.UNKNOWN_IDENTITY:
        return responses.error(message=result.error, errors={"email": [result.error]}, status=400)
    if not result.success:
        return responses.error(message=result.error, errors={"password": [result.error]}, status=401)

    return responses.success(
        data={
            "user": UserResponse.model_validate(result.user),
            "token": result.token,
            "expires_in": result.expires_in,
        },
        message=messages.LOGGED_IN,
    )


@router.post("/logout")
def logout(token: str = Depends(get_bearer_token), db: Session = Depends(get_db)) -> JSONResponse:
    """Invalidate the presented bearer token."""
    auth_service = get_auth_service()
    result = auth_service.logout(db, token)

    if not result.success:
        message = messages.ALREADY_LOGGED_OUT if result.failure is AuthFailure.ALREADY_INVALIDATED else result.error
        return responses.error(message=message, status=401)

    return responses.success(message=messages.LOGGED_OUT)


@router.post("/send-reset-link")
@limiter.limit("3/minute")
def send_reset_link(request: Request, body: SendResetLinkRequest, db: Session = Depends(get_db)) -> JSONResponse:
    """Email a one-time password reset link. The secret is never part of the response."""
    auth_service = get_auth_service()
    result = auth_service.request_password_reset(db, body.email)

    if result.failure is AuthFailure.UNKNOWN_IDENTITY:
        return responses.validation_error("email", result.error)
    if not result.success:
        return responses.error(message=result.error, status=500)

    return responses.success(message=messages.RESET_LINK_SENT)


@router.put("/reset-password")
@limiter.limit("5/minute")
def reset_password(request: Request, body: ResetPasswordRequest, db: Session = Depends(get_db)) -> Response:
    """Reset the password with an emailed secret. Always answers with an HTML page."""
    auth_service = get_auth_service()
    result = auth_service.reset_password(db, body.email, body.token, body.password)

    if not result.success:
        return render_reset_result(request, result.error, TYPE_ERROR)
    return render_reset_result(request, messages.PASSWORD_RESET, TYPE_SUCCESS)
