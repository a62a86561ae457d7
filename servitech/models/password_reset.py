"""Password reset ledger model."""

import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from servitech.database import Base


class ResetState(str, enum.Enum):
    """Lifecycle state of a reset request, derived from its timestamps."""

    ISSUED = "issued"
    CONSUMED = "consumed"
    SUPERSEDED = "superseded"
    EXPIRED = "expired"


class PasswordResetToken(Base):
    """One outstanding (or spent) password reset request.

    Only the bcrypt hash of the emailed secret is stored. Rows are kept after
    use for audit; ``consumed_at`` and ``superseded_at`` close them.
    """

    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(256), nullable=False, index=True)
    token_hash = Column(String(256), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
    consumed_at = Column(DateTime, nullable=True)
    superseded_at = Column(DateTime, nullable=True)

    def state(self, now: datetime | None = None) -> ResetState:
        """Compute the current state; every state but ISSUED is terminal."""
        if self.consumed_at is not None:
            return ResetState.CONSUMED
        if self.superseded_at is not None:
            return ResetState.SUPERSEDED
        if (now or datetime.utcnow()) >= self.expires_at:
            return ResetState.EXPIRED
        return ResetState.ISSUED

    def __repr__(self) -> str:
        return f"<PasswordResetToken id={self.id} email={self.email} state={self.state().value}>"
