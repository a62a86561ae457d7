"""Password reset token ledger.

Each forgot-password request appends a row holding the bcrypt hash of a
random secret. The raw secret leaves this module exactly once, in the return
value of ``issue``, so it can be emailed. A row authorizes at most one
password change: ``consume`` claims it with a conditional UPDATE inside the
same transaction that writes the new password hash, so concurrent consumers
of the same secret cannot both succeed.
"""

import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from servitech import messages
from servitech.config import get_settings
from servitech.database import run_in_transaction
from servitech.models.password_reset import PasswordResetToken, ResetState
from servitech.models.user import User
from servitech.outcomes import AuthFailure, LedgerResult
from servitech.services.hashing import PasswordHasher, get_password_hasher

logger = logging.getLogger("servitech")

SECRET_BYTES = 32

# Newest requests a presented secret is compared against
RECENT_REQUESTS_SCANNED = 3


class ResetTokenLedger:
    """Issues, verifies and consumes password reset secrets."""

    def __init__(self, hasher: PasswordHasher | None = None, expire_minutes: int | None = None) -> None:
        self.hasher = hasher or get_password_hasher()
        self.expire_minutes = expire_minutes or get_settings().PASSWORD_RESET_EXPIRE_MINUTES

    def issue(self, db: Session, email: str) -> LedgerResult:
        """Create a new reset request for ``email`` and return its raw secret.

        Any still-live request for the same email is superseded in the same
        transaction, so only the newest emailed link can work.
        """
        user = db.query(User).filter(User.email == email).first()
        if not user:
            return LedgerResult.fail(AuthFailure.UNKNOWN_IDENTITY, messages.USER_NOT_FOUND)

        raw_secret = secrets.token_urlsafe(SECRET_BYTES)
        token_hash = self.hasher.hash(raw_secret)

        def write() -> PasswordResetToken:
            now = datetime.utcnow()
            # Row lock on the account serializes concurrent issues (no-op on SQLite)
            db.query(User).filter(User.id == user.id).with_for_update().one()
            db.execute(
                update(PasswordResetToken)
                .where(
                    PasswordResetToken.email == email,
                    PasswordResetToken.consumed_at.is_(None),
                    PasswordResetToken.superseded_at.is_(None),
                )
                .values(superseded_at=now)
            )
            entry = PasswordResetToken(
                email=email,
                token_hash=token_hash,
                created_at=now,
                expires_at=now + timedelta(minutes=self.expire_minutes),
            )
            db.add(entry)
            db.commit()
            db.refresh(entry)
            return entry

        entry = run_in_transaction(db, write)
        logger.info("Password reset requested for user %s (request %s)", user.id, entry.id)
        return LedgerResult(success=True, raw_secret=raw_secret, entry=entry, user=user)

    def verify(self, db: Session, email: str, raw_secret: str, now: datetime | None = None) -> LedgerResult:
        """Check ``raw_secret`` against the email's newest ledger rows without changing them.

        Only the ``RECENT_REQUESTS_SCANNED`` most recent requests are compared,
        which bounds the bcrypt work a guessed secret can cost. A secret from an
        older request reads as invalid.
        """
        user = db.query(User).filter(User.email == email).first()
        if not user:
            return LedgerResult.fail(AuthFailure.UNKNOWN_IDENTITY, messages.USER_NOT_FOUND)

        entries = (
            db.query(PasswordResetToken)
            .filter(PasswordResetToken.email == email)
            .order_by(PasswordResetToken.created_at.desc(), PasswordResetToken.id.desc())
            .limit(RECENT_REQUESTS_SCANNED)
            .all()
        )
        entry = next((e for e in entries if self.hasher.verify(raw_secret, e.token_hash)), None)
        if entry is None:
            return LedgerResult.fail(AuthFailure.INVALID_TOKEN, messages.RESET_TOKEN_INVALID)

        if entry.state(now) is not ResetState.ISSUED:
            return LedgerResult.fail(AuthFailure.EXPIRED_TOKEN, messages.RESET_TOKEN_EXPIRED)

        return LedgerResult(success=True, entry=entry, user=user)

    def consume(self, db: Session, email: str, raw_secret: str, new_password_hash: str) -> LedgerResult:
        """Verify the secret, mark it consumed and store the new password hash atomically."""

        def work() -> LedgerResult:
            now = datetime.utcnow()
            result = self.verify(db, email, raw_secret, now=now)
            if not result.success:
                db.rollback()
                return result

            claimed = db.execute(
                update(PasswordResetToken)
                .where(
                    PasswordResetToken.id == result.entry.id,
                    PasswordResetToken.consumed_at.is_(None),
                    PasswordResetToken.superseded_at.is_(None),
                    PasswordResetToken.expires_at > now,
                )
                .values(consumed_at=now)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                # Another request consumed or superseded it after our read
                db.rollback()
                return LedgerResult.fail(AuthFailure.INVALID_TOKEN, messages.RESET_TOKEN_INVALID)

            # Any other request left live by overlapping issues dies with this one
            db.execute(
                update(PasswordResetToken)
                .where(
                    PasswordResetToken.email == email,
                    PasswordResetToken.id != result.entry.id,
                    PasswordResetToken.consumed_at.is_(None),
                    PasswordResetToken.superseded_at.is_(None),
                )
                .values(superseded_at=now)
                .execution_options(synchronize_session=False)
            )
            db.execute(
                update(User)
                .where(User.id == result.user.id)
                .values(password_hash=new_password_hash, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            return result

        result = run_in_transaction(db, work)
        if result.success:
            db.refresh(result.user)
            logger.info("Password reset completed for user %s (request %s)", result.user.id, result.entry.id)
        else:
            logger.warning("Password reset rejected: %s", result.failure.value)
        return result


_ledger: ResetTokenLedger | None = None


def get_reset_token_ledger() -> ResetTokenLedger:
    """Get singleton reset token ledger instance."""
    global _ledger
    if _ledger is None:
        _ledger = ResetTokenLedger()
    return _ledger
