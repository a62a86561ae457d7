"""Tests for the session issuer, password hasher and transaction helper."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
from jose import jwt
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from servitech.database import run_in_transaction
from servitech.models.revoked_token import RevokedToken
from servitech.models.user import User
from servitech.outcomes import AuthFailure, ConfigurationError, TransientStoreFailure
from servitech.services.hashing import PasswordHasher
from servitech.services.jwt import SessionIssuer


@pytest.fixture(name="issuer")
def issuer_fixture() -> SessionIssuer:
    return SessionIssuer(hasher=PasswordHasher(rounds=4))


class TestAuthenticate:
    """Tests for credential checks."""

    def test_valid_credentials(self, db_session: Session, issuer: SessionIssuer, test_user: dict):
        result = issuer.authenticate(db_session, test_user["email"], test_user["password"])
        assert result.success
        assert result.user.id == test_user["user_id"]

    def test_unknown_identity(self, db_session: Session, issuer: SessionIssuer):
        result = issuer.authenticate(db_session, "ghost@example.com", "password123")
        assert result.failure is AuthFailure.UNKNOWN_IDENTITY

    def test_invalid_secret(self, db_session: Session, issuer: SessionIssuer, test_user: dict):
        result = issuer.authenticate(db_session, test_user["email"], "wrong-password")
        assert result.failure is AuthFailure.INVALID_SECRET


class TestIssueAndCheck:
    """Tests for minting and resolving tokens."""

    def test_issue_embeds_identity_and_role(self, db_session: Session, issuer: SessionIssuer, test_user: dict):
        user = db_session.get(User, test_user["user_id"])
        issued = issuer.issue(user)
        assert issued.expires_in == 3600

        claims = jwt.get_unverified_claims(issued.token)
        assert claims["sub"] == str(user.id)
        assert claims["role"] == "user"
        assert claims["exp"] - claims["iat"] == 3600
        assert claims["jti"]

    def test_tokens_are_unique(self, db_session: Session, issuer: SessionIssuer, test_user: dict):
        user = db_session.get(User, test_user["user_id"])
        assert issuer.issue(user).token != issuer.issue(user).token

    def test_check_resolves_user(self, db_session: Session, issuer: SessionIssuer, test_user: dict):
        result = issuer.check(db_session, test_user["token"])
        assert result.success
        assert result.user.id == test_user["user_id"]

    def test_check_rejects_expired(self, db_session: Session, issuer: SessionIssuer, test_user: dict):
        issuer.expire_minutes = -1
        token = issuer.issue(db_session.get(User, test_user["user_id"])).token
        assert issuer.check(db_session, token).failure is AuthFailure.UNAUTHENTICATED

    def test_check_rejects_foreign_signature(self, db_session: Session, issuer: SessionIssuer, test_user: dict):
        claims = jwt.get_unverified_claims(test_user["token"])
        forged = jwt.encode(claims, "some-other-key", algorithm="HS256")
        assert issuer.check(db_session, forged).failure is AuthFailure.UNAUTHENTICATED

    def test_check_rejects_garbage(self, db_session: Session, issuer: SessionIssuer):
        assert issuer.check(db_session, "not-a-token").failure is AuthFailure.UNAUTHENTICATED

    def test_missing_signing_key_is_fatal(self):
        settings = MagicMock(JWT_SECRET_KEY="", JWT_ALGORITHM="HS256", JWT_EXPIRE_MINUTES=60)
        with patch("servitech.services.jwt.get_settings", return_value=settings):
            with pytest.raises(ConfigurationError):
                SessionIssuer()


class TestInvalidate:
    """Tests for logout-style invalidation."""

    def test_invalidate_then_check_fails(self, db_session: Session, issuer: SessionIssuer, test_user: dict):
        assert issuer.invalidate(db_session, test_user["token"]).success
        assert issuer.check(db_session, test_user["token"]).failure is AuthFailure.UNAUTHENTICATED

    def test_invalidate_is_idempotent(self, db_session: Session, issuer: SessionIssuer, test_user: dict):
        issuer.invalidate(db_session, test_user["token"])
        again = issuer.invalidate(db_session, test_user["token"])
        assert again.failure is AuthFailure.ALREADY_INVALIDATED
        assert db_session.query(RevokedToken).count() == 1

    def test_invalidate_garbage_token(self, db_session: Session, issuer: SessionIssuer):
        assert issuer.invalidate(db_session, "garbage").failure is AuthFailure.ALREADY_INVALIDATED

    def test_revocation_visible_to_other_sessions(self, session_factory, issuer: SessionIssuer):
        """A logout in one worker is seen by the next check in another."""
        setup = session_factory()
        user = User(email="carol@example.com", password_hash=issuer.hasher.hash("Password1"), name="Carol")
        setup.add(user)
        setup.commit()
        token = issuer.issue(user).token
        setup.close()

        worker_a, worker_b = session_factory(), session_factory()
        assert issuer.check(worker_b, token).success
        assert issuer.invalidate(worker_a, token).success
        assert issuer.check(worker_b, token).failure is AuthFailure.UNAUTHENTICATED
        worker_a.close()
        worker_b.close()

    def test_purge_revoked_drops_only_expired(self, db_session: Session, issuer: SessionIssuer, test_user: dict):
        issuer.invalidate(db_session, test_user["token"])
        db_session.add(
            RevokedToken(jti="old", user_id=test_user["user_id"], expires_at=datetime.utcnow() - timedelta(hours=1))
        )
        db_session.commit()

        assert issuer.purge_revoked(db_session) == 1
        assert issuer.check(db_session, test_user["token"]).failure is AuthFailure.UNAUTHENTICATED


class TestPasswordHasher:
    """Tests for the bcrypt wrapper."""

    def test_hash_and_verify(self):
        hasher = PasswordHasher(rounds=4)
        hashed = hasher.hash("Secret123!")
        assert hashed != "Secret123!"
        assert hasher.verify("Secret123!", hashed)
        assert not hasher.verify("secret123!", hashed)

    def test_salted(self):
        hasher = PasswordHasher(rounds=4)
        assert hasher.hash("same-input") != hasher.hash("same-input")

    def test_malformed_hash(self):
        assert not PasswordHasher(rounds=4).verify("anything", "not-a-bcrypt-hash")


class TestRunInTransaction:
    """Tests for the single-retry transaction helper."""

    def make_error(self) -> OperationalError:
        return OperationalError("UPDATE users", {}, Exception("database is locked"))

    def test_retries_once(self):
        db = MagicMock()
        work = MagicMock(side_effect=[self.make_error(), "done"])
        assert run_in_transaction(db, work) == "done"
        assert work.call_count == 2
        db.rollback.assert_called_once()

    def test_second_failure_is_transient_store_failure(self):
        db = MagicMock()
        work = MagicMock(side_effect=[self.make_error(), self.make_error()])
        with pytest.raises(TransientStoreFailure):
            run_in_transaction(db, work)
        assert work.call_count == 2
