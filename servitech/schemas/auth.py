"""Pydantic schemas for authentication endpoints."""

from pydantic import BaseModel, EmailStr, Field, ValidationInfo, field_validator

BCRYPT_MAX_BYTES = 72


class NewPassword(BaseModel):
    """A new password with its confirmation field."""

    password: str = Field(min_length=8)
    password_confirmation: str

    @field_validator("password")
    @classmethod
    def password_fits_hash(cls, value: str) -> str:
        if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise ValueError(f"The password may not be greater than {BCRYPT_MAX_BYTES} bytes.")
        return value

    @field_validator("password_confirmation")
    @classmethod
    def password_confirmed(cls, value: str, info: ValidationInfo) -> str:
        if "password" in info.data and value != info.data["password"]:
            raise ValueError("The password field confirmation does not match.")
        return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RegisterRequest(NewPassword):
    name: str = Field(min_length=1, max_length=256)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=32)


class SendResetLinkRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(NewPassword):
    email: EmailStr
    token: str = Field(min_length=1)
