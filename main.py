"""ServITech - admin backend authentication API."""

import logging
import time

from fastapi import Depends, FastAPI, Form, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import ValidationError
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from servitech import messages, responses
from servitech.config import get_settings
from servitech.database import get_db
from servitech.outcomes import TransientStoreFailure
from servitech.rate_limit import limiter
from servitech.routers import auth_router, user_router
from servitech.schemas.auth import ResetPasswordRequest
from servitech.services.auth import get_auth_service
from servitech.templating import TYPE_ERROR, TYPE_SUCCESS, render_reset_result, templates

# Logging
logger = logging.getLogger("servitech")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

for warning in get_settings().validate():
    logger.warning("CONFIG %s", warning)

app = FastAPI(title="ServITech", version="0.1.0")
app.state.limiter = limiter


# --- Security headers middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Content-Security-Policy"] = (
            "default-src 'self'; style-src 'self' 'unsafe-inline'; form-action 'self'"
        )
        # Reset pages carry the secret in the query string
        if request.url.path.endswith("reset-password"):
            response.headers["Cache-Control"] = "no-store"
        return response


# --- Audit logging middleware ---
class AuditLogMiddleware(BaseHTTPMiddleware):
    AUDIT_PATHS = ("/api/v1/auth/", "/api/v1/user/password", "/reset-password")

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start) * 1000

        # Path only: query strings may hold reset secrets
        path = request.url.path
        method = request.method
        if method in ("POST", "PUT") and path.startswith(self.AUDIT_PATHS):
            logger.info(
                "AUDIT %s %s -> %d (%.0fms) from %s",
                method,
                path,
                response.status_code,
                duration_ms,
                request.client.host if request.client else "unknown",
            )

        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(AuditLogMiddleware)

# API routers
app.include_router(auth_router)
app.include_router(user_router)


# --- Rate limit error handler ---
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Handle rate limit exceeded."""
    if request.url.path.startswith("/api/"):
        return responses.error(message="Too many requests. Please try again later.", status=429)
    return HTMLResponse(content="<h1>429</h1><p>Too many requests. Please try again later.</p>", status_code=429)


# --- Validation errors -> 422 envelope ---
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures as ``errors: {field: [messages]}``."""
    return responses.error(message=messages.VALIDATION_FAILED, errors=field_errors(exc.errors()), status=422)


# --- HTTP errors -> envelope for API, plain HTML for web ---
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    """Handle HTTP exceptions."""
    if request.url.path.startswith("/api/"):
        response = responses.error(message=str(exc.detail), status=exc.status_code)
        if exc.headers:
            response.headers.update(exc.headers)
        return response
    return HTMLResponse(
        content=f"<h1>{exc.status_code}</h1><p>{exc.detail}</p>",
        status_code=exc.status_code,
    )


@app.exception_handler(TransientStoreFailure)
async def store_failure_handler(request: Request, exc: TransientStoreFailure) -> JSONResponse:
    logger.error("Datastore unavailable on %s %s", request.method, request.url.path)
    return responses.error(message="Service temporarily unavailable. Please try again.", status=500)


def field_errors(errors) -> dict[str, list[str]]:
    """Group pydantic error entries by their field name."""
    grouped: dict[str, list[str]] = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        field = loc[-1] if loc else "body"
        message = err.get("msg", "Invalid value").removeprefix("Value error, ")
        grouped.setdefault(field, []).append(message)
    return grouped


# --- Health check ---
@app.get("/api/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "app": "servitech", "version": "0.1.0"}


# --- Web routes ---
@app.get("/reset-password", response_class=HTMLResponse)
def reset_password_page(request: Request, token: str | None = None, email: str | None = None) -> Response:
    """Render the form linked from the reset email."""
    return templates.TemplateResponse(request, "reset_password.html", {"token": token, "email": email})


@app.post("/reset-password", response_class=HTMLResponse)
@limiter.limit("5/minute")
def reset_password_submit(
    request: Request,
    email: str = Form(""),
    token: str = Form(""),
    password: str = Form(""),
    password_confirmation: str = Form(""),
    db: Session = Depends(get_db),
) -> Response:
    """Handle the reset form submission and render the outcome."""
    try:
        body = ResetPasswordRequest(
            email=email,
            token=token,
            password=password,
            password_confirmation=password_confirmation,
        )
    except ValidationError as exc:
        first = next(iter(field_errors(exc.errors()).values()))[0]
        return render_reset_result(request, first, TYPE_ERROR)

    result = get_auth_service().reset_password(db, body.email, body.token, body.password)
    if not result.success:
        return render_reset_result(request, result.error, TYPE_ERROR)
    return render_reset_result(request, messages.PASSWORD_RESET, TYPE_SUCCESS)
