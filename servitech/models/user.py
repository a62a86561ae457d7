"""User model."""

import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, Integer, String

from servitech.database import Base


class Role(str, enum.Enum):
    """Closed set of roles a user can hold."""

    ADMIN = "admin"
    EMPLOYEE = "employee"
    USER = "user"


class User(Base):
    """Application user."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(256), unique=True, nullable=False, index=True)
    password_hash = Column(String(256), nullable=False)
    role = Column(
        Enum(Role, name="user_role", values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
        default=Role.USER,
    )
    name = Column(String(256), nullable=False)
    phone = Column(String(32), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login_at = Column(DateTime, nullable=True)
