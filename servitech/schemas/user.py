"""Pydantic schemas for user endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field

from servitech.models.user import Role
from servitech.schemas.auth import NewPassword


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: str | None
    role: Role
    created_at: datetime

    model_config = {"from_attributes": True}


class UpdateProfileRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=256)
    phone: str | None = Field(default=None, max_length=32)


class UpdatePasswordRequest(NewPassword):
    old_password: str = Field(min_length=8)
