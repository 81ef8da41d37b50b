"""Request/response schemas for auth endpoints."""

import re
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


def validate_phone(v: str) -> str:
    v = v.strip()
    if sum(ch.isdigit() for ch in v) < 10:
        raise ValueError("Phone must have at least 10 digits")
    return v


def validate_username(v: str) -> str:
    v = v.strip()
    if not USERNAME_PATTERN.match(v):
        raise ValueError(
            "Username can only contain letters, numbers, underscores, and hyphens"
        )
    return v


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: EmailStr = Field(..., description="Account email")
    password: str = Field(..., min_length=1, max_length=128, description="Password")


class TokenResponse(BaseModel):
    """JWT access token returned after successful login."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")


class RegisterRequest(BaseModel):
    """Public registration. No role field: registration always creates a User."""

    firstname: str = Field(..., min_length=1, max_length=100)
    lastname: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=8, max_length=128)
    phone: str = Field(..., min_length=10, max_length=32)

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        return validate_username(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        return validate_phone(v)


class PasswordChangeRequest(BaseModel):
    """Change password for the authenticated account."""

    old_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)

    @model_validator(mode="after")
    def new_differs_from_old(self) -> "PasswordChangeRequest":
        if self.new_password == self.old_password:
            raise ValueError("New password must be different from old password")
        return self


class CurrentUser(BaseModel):
    """Authenticated actor (account id, username, claimed role rank) for dependency injection."""

    id: int
    username: str
    role: int | str | None = Field(
        default=None,
        description="Role claim from the token (rank or name); normalized by the authorization gate",
    )

    class Config:
        from_attributes = True


class AccountOut(BaseModel):
    """Account as returned by the API (no credential data)."""

    id: int
    first_name: str
    last_name: str
    username: str
    email: str
    email_verified: bool
    phone: str
    phone_verified: bool
    role: int
    status: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class RegisterResponse(BaseModel):
    """Response for POST /auth/register."""

    message: str
    user: AccountOut
