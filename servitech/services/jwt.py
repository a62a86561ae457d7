"""JWT session issuer."""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from servitech import messages
from servitech.config import get_settings
from servitech.database import run_in_transaction
from servitech.models.revoked_token import RevokedToken
from servitech.models.user import User
from servitech.outcomes import AuthFailure, AuthResult, ConfigurationError
from servitech.services.hashing import PasswordHasher, get_password_hasher

logger = logging.getLogger("servitech")


@dataclass
class IssuedToken:
    """A freshly minted bearer token and its lifetime in seconds."""

    token: str
    expires_in: int


class SessionIssuer:
    """Mints, checks and invalidates bearer tokens bound to a user."""

    def __init__(self, hasher: PasswordHasher | None = None) -> None:
        settings = get_settings()
        if not settings.JWT_SECRET_KEY:
            raise ConfigurationError("JWT_SECRET_KEY must not be empty")
        self.secret_key = settings.JWT_SECRET_KEY
        self.algorithm = settings.JWT_ALGORITHM
        self.expire_minutes = settings.JWT_EXPIRE_MINUTES
        self.hasher = hasher or get_password_hasher()

    def authenticate(self, db: Session, email: str, password: str) -> AuthResult:
        """Authenticate a user by email and password."""
        user = db.query(User).filter(User.email == email).first()
        if not user:
            return AuthResult.fail(AuthFailure.UNKNOWN_IDENTITY, messages.USER_NOT_FOUND)

        if not self.hasher.verify(password, user.password_hash):
            return AuthResult.fail(AuthFailure.INVALID_SECRET, messages.WRONG_PASSWORD)

        user.last_login_at = datetime.utcnow()
        db.commit()
        return AuthResult.ok(user)

    def issue(self, user: User) -> IssuedToken:
        """Create a JWT token for the given user."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
            "jti": secrets.token_urlsafe(16),
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
        }
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return IssuedToken(token=token, expires_in=self.expire_minutes * 60)

    def decode_token(self, token: str) -> dict[str, Any] | None:
        """Decode and validate a JWT token. Returns None if invalid."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None
        if "sub" not in payload or "jti" not in payload:
            return None
        return payload

    def check(self, db: Session, token: str) -> AuthResult:
        """Resolve a bearer token to its user, or fail UNAUTHENTICATED."""
        payload = self.decode_token(token)
        if not payload:
            return AuthResult.fail(AuthFailure.UNAUTHENTICATED, messages.UNAUTHENTICATED)

        if db.get(RevokedToken, payload["jti"]) is not None:
            return AuthResult.fail(AuthFailure.UNAUTHENTICATED, messages.UNAUTHENTICATED)

        try:
            user = db.get(User, int(payload["sub"]))
        except ValueError:
            user = None
        if not user:
            return AuthResult.fail(AuthFailure.UNAUTHENTICATED, messages.UNAUTHENTICATED)

        return AuthResult.ok(user)

    def invalidate(self, db: Session, token: str) -> AuthResult:
        """Revoke a token. Revoking an unusable token reports ALREADY_INVALIDATED."""
        payload = self.decode_token(token)
        if not payload:
            return AuthResult.fail(AuthFailure.ALREADY_INVALIDATED, messages.ALREADY_LOGGED_OUT)

        def revoke() -> bool:
            if db.get(RevokedToken, payload["jti"]) is not None:
                return False
            db.add(
                RevokedToken(
                    jti=payload["jti"],
                    user_id=int(payload["sub"]),
                    expires_at=datetime.fromtimestamp(payload["exp"], timezone.utc).replace(tzinfo=None),
                )
            )
            try:
                db.commit()
            except IntegrityError:
                # Same jti inserted by a concurrent logout
                db.rollback()
                return False
            return True

        if not run_in_transaction(db, revoke):
            return AuthResult.fail(AuthFailure.ALREADY_INVALIDATED, messages.ALREADY_LOGGED_OUT)

        logger.info("Session %s revoked for user %s", payload["jti"], payload["sub"])
        return AuthResult.ok()

    def purge_revoked(self, db: Session, now: datetime | None = None) -> int:
        """Drop revocation rows for tokens that have expired anyway. Returns rows removed.

        Housekeeping only; run it from an external scheduler (cron, a periodic
        job) against a fresh session.
        """
        result = db.execute(delete(RevokedToken).where(RevokedToken.expires_at <= (now or datetime.utcnow())))
        db.commit()
        return result.rowcount or 0


_session_issuer: SessionIssuer | None = None


def get_session_issuer() -> SessionIssuer:
    """Get singleton session issuer instance."""
    global _session_issuer
    if _session_issuer is None:
        _session_issuer = SessionIssuer()
    return _session_issuer
