"""Pytest configuration and fixtures."""

import os
import re

# Must be set before servitech.config is imported
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("MAIL_BACKEND", "memory")
os.environ.setdefault("APP_URL", "http://testserver")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from servitech.database import Base, get_db
from servitech.models.password_reset import PasswordResetToken  # noqa: F401
from servitech.models.revoked_token import RevokedToken  # noqa: F401
from servitech.models.user import User  # noqa: F401
from servitech.services.auth import AuthService
from servitech.services.notifications import MemoryOutbox, get_notifier

TEST_EMAIL = "alice@example.com"
TEST_PASSWORD = "Secret123!"


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="session_factory")
def session_factory_fixture(tmp_path):
    """File-backed SQLite database whose sessions use independent connections."""
    engine = create_engine(f"sqlite:///{tmp_path / 'servitech.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()


@pytest.fixture(name="outbox")
def outbox_fixture() -> MemoryOutbox:
    """The in-memory mail backend, emptied for each test."""
    backend = get_notifier().backend
    assert isinstance(backend, MemoryOutbox)
    backend.sent.clear()
    yield backend
    backend.sent.clear()


@pytest.fixture(name="client")
def client_fixture(db_session: Session):
    """Create a test client with overridden DB dependency and disabled rate limiting."""
    from main import app
    from servitech.rate_limit import limiter

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture(name="auth_service")
def auth_service_fixture() -> AuthService:
    return AuthService()


@pytest.fixture(name="test_user")
def test_user_fixture(db_session: Session, auth_service: AuthService):
    """Create a test user and return its data with a valid bearer token."""
    result = auth_service.register(db_session, "Alice", TEST_EMAIL, TEST_PASSWORD, phone="555-0100")
    login = auth_service.login(db_session, TEST_EMAIL, TEST_PASSWORD)

    return {
        "user_id": result.user.id,
        "email": TEST_EMAIL,
        "password": TEST_PASSWORD,
        "token": login.token,
    }


@pytest.fixture(name="read_reset_secret")
def read_reset_secret_fixture(outbox: MemoryOutbox):
    """Return a function pulling the raw reset secret out of the last emailed link."""

    def read() -> str:
        match = re.search(r"token=([A-Za-z0-9_\-]+)", outbox.sent[-1].html)
        assert match, "no reset link in email"
        return match.group(1)

    return read
