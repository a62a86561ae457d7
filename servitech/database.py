"""Database session management."""

import logging
from collections.abc import Callable, Generator
from typing import TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from servitech.config import get_settings
from servitech.outcomes import TransientStoreFailure

logger = logging.getLogger("servitech")

settings = get_settings()
engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    connect_args={"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

T = TypeVar("T")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def get_db() -> Generator[Session, None, None]:
    """Yield a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def run_in_transaction(db: Session, work: Callable[[], T]) -> T:
    """Run ``work`` against ``db``, retrying once if the store reports a transient error.

    ``work`` owns its commit/rollback. An ``OperationalError`` (lock timeout,
    dropped connection) rolls the session back and the unit is attempted a
    second time; a second failure is raised as ``TransientStoreFailure``.
    """
    try:
        return work()
    except OperationalError:
        db.rollback()
        logger.warning("Transient database error, retrying once", exc_info=True)

    try:
        return work()
    except OperationalError as exc:
        db.rollback()
        raise TransientStoreFailure("Database unavailable") from exc
