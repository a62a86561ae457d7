"""Typed outcomes shared by the authentication services."""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from servitech.models.password_reset import PasswordResetToken
    from servitech.models.user import User


class AuthFailure(str, Enum):
    """Reasons an authentication or credential operation can fail."""

    UNKNOWN_IDENTITY = "unknown_identity"
    INVALID_SECRET = "invalid_secret"
    INVALID_TOKEN = "invalid_token"
    EXPIRED_TOKEN = "expired_token"
    UNAUTHENTICATED = "unauthenticated"
    ALREADY_INVALIDATED = "already_invalidated"
    FORBIDDEN = "forbidden"
    EMAIL_TAKEN = "email_taken"
    WRONG_OLD_PASSWORD = "wrong_old_password"
    NOTIFICATION_FAILED = "notification_failed"


class ConfigurationError(RuntimeError):
    """Raised when required configuration (e.g. signing material) is missing."""


class TransientStoreFailure(RuntimeError):
    """Raised when the datastore stays unavailable after one retry."""


class NotificationError(RuntimeError):
    """Raised by a mail backend when a message could not be handed off."""


@dataclass
class AuthResult:
    """Result of an authentication attempt."""

    success: bool
    failure: AuthFailure | None = None
    error: str | None = None
    user: "User | None" = None

    @classmethod
    def ok(cls, user: "User | None" = None) -> "AuthResult":
        return cls(success=True, user=user)

    @classmethod
    def fail(cls, failure: AuthFailure, error: str) -> "AuthResult":
        return cls(success=False, failure=failure, error=error)


@dataclass
class LoginResult(AuthResult):
    """Successful login carries the minted bearer token."""

    token: str | None = None
    expires_in: int | None = None


@dataclass
class LedgerResult:
    """Result of a reset-token ledger operation.

    ``raw_secret`` is only populated by ``issue`` and must be handed straight
    to the notifier.
    """

    success: bool
    failure: AuthFailure | None = None
    error: str | None = None
    raw_secret: str | None = None
    entry: "PasswordResetToken | None" = None
    user: "User | None" = None

    @classmethod
    def fail(cls, failure: AuthFailure, error: str) -> "LedgerResult":
        return cls(success=False, failure=failure, error=error)
