"""Authentication service."""

import logging
from collections.abc import Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from servitech import messages
from servitech.models.user import Role, User
from servitech.outcomes import AuthFailure, AuthResult, LoginResult, NotificationError
from servitech.services.hashing import PasswordHasher, get_password_hasher
from servitech.services.jwt import SessionIssuer, get_session_issuer
from servitech.services.notifications import Notifier, get_notifier
from servitech.services.password_reset import ResetTokenLedger, get_reset_token_ledger

logger = logging.getLogger("servitech")


class AuthService:
    """Handles registration, sessions and the password lifecycle."""

    def __init__(
        self,
        hasher: PasswordHasher | None = None,
        issuer: SessionIssuer | None = None,
        ledger: ResetTokenLedger | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.hasher = hasher or get_password_hasher()
        self.issuer = issuer or get_session_issuer()
        self.ledger = ledger or get_reset_token_ledger()
        self._notifier = notifier

    @property
    def notifier(self) -> Notifier:
        if self._notifier is None:
            self._notifier = get_notifier()
        return self._notifier

    def register(self, db: Session, name: str, email: str, password: str, phone: str | None = None) -> AuthResult:
        """Register a new user with the default role."""
        email = email.strip()
        if db.query(User).filter(User.email == email).first():
            return AuthResult.fail(AuthFailure.EMAIL_TAKEN, messages.EMAIL_TAKEN)

        user = User(
            email=email,
            password_hash=self.hasher.hash(password),
            name=name.strip(),
            phone=phone.strip() if phone else None,
            role=Role.USER,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same email
            db.rollback()
            return AuthResult.fail(AuthFailure.EMAIL_TAKEN, messages.EMAIL_TAKEN)
        db.refresh(user)

        logger.info("Registered user %s", user.id)
        return AuthResult.ok(user)

    def login(self, db: Session, email: str, password: str) -> LoginResult:
        """Authenticate credentials and mint a bearer token."""
        result = self.issuer.authenticate(db, email, password)
        if not result.success:
            logger.info("Login failed: %s", result.failure.value)
            return LoginResult(success=False, failure=result.failure, error=result.error)

        issued = self.issuer.issue(result.user)
        return LoginResult(success=True, user=result.user, token=issued.token, expires_in=issued.expires_in)

    def logout(self, db: Session, token: str) -> AuthResult:
        """Invalidate a token that currently resolves to a user."""
        current = self.issuer.check(db, token)
        if not current.success:
            return current

        result = self.issuer.invalidate(db, token)
        if not result.success:
            return result
        return AuthResult.ok(current.user)

    def request_password_reset(self, db: Session, email: str) -> AuthResult:
        """Issue a reset secret and email it. The secret never leaves this method otherwise."""
        issued = self.ledger.issue(db, email)
        if not issued.success:
            return AuthResult.fail(issued.failure, issued.error)

        try:
            self.notifier.send_reset_link(issued.user, issued.raw_secret)
        except NotificationError:
            logger.exception("Could not send reset link to user %s", issued.user.id)
            return AuthResult.fail(AuthFailure.NOTIFICATION_FAILED, messages.RESET_LINK_NOT_SENT)

        return AuthResult.ok(issued.user)

    def reset_password(self, db: Session, email: str, raw_secret: str, new_password: str) -> AuthResult:
        """Consume a reset secret and set ``new_password`` in the same transaction."""
        result = self.ledger.consume(db, email, raw_secret, self.hasher.hash(new_password))
        if not result.success:
            return AuthResult.fail(result.failure, result.error)

        try:
            self.notifier.send_reset_success(result.user)
        except NotificationError:
            logger.warning("Could not send reset confirmation to user %s", result.user.id, exc_info=True)

        return AuthResult.ok(result.user)

    def update_password(self, db: Session, user: User, old_password: str, new_password: str) -> AuthResult:
        """Change the password of an authenticated user after checking the old one."""
        if not self.hasher.verify(old_password, user.password_hash):
            return AuthResult.fail(AuthFailure.WRONG_OLD_PASSWORD, messages.OLD_PASSWORD_MISMATCH)

        user.password_hash = self.hasher.hash(new_password)
        db.commit()
        logger.info("Password updated for user %s", user.id)
        return AuthResult.ok(user)

    def authorize(self, user: User, allowed_roles: Iterable[Role]) -> AuthResult:
        """Allow the call only if the user's role is in ``allowed_roles``."""
        if user.role not in set(allowed_roles):
            logger.warning("User %s with role %s denied", user.id, user.role.value)
            return AuthResult.fail(AuthFailure.FORBIDDEN, messages.FORBIDDEN)
        return AuthResult.ok(user)

    def update_profile(self, db: Session, user: User, name: str | None, phone: str | None) -> AuthResult:
        """Update the basic information of an authenticated user."""
        if name is not None:
            user.name = name.strip()
        if phone is not None:
            user.phone = phone.strip() or None
        db.commit()
        db.refresh(user)
        return AuthResult.ok(user)


_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """Get singleton auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
