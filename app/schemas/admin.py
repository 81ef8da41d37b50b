"""Request/response schemas for admin user management endpoints."""

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.schemas.auth import AccountOut, validate_phone, validate_username

# Role as sent by clients: numeric rank or role name; normalized by RoleHierarchy.
RoleInput = int | str


class AdminCreateUserRequest(BaseModel):
    """Create an account with a role at most equal to the caller's."""

    firstname: str = Field(..., min_length=1, max_length=100)
    lastname: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=8, max_length=128)
    phone: str = Field(..., min_length=10, max_length=32)
    role: RoleInput = Field(..., description="Role rank (1-5) or name, e.g. 'Moderator'")

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        return validate_username(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        return validate_phone(v)


class AdminUpdateUserRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    firstname: str | None = Field(default=None, min_length=1, max_length=100)
    lastname: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    username: str | None = Field(default=None, min_length=3, max_length=50)
    phone: str | None = Field(default=None, min_length=10, max_length=32)
    role: RoleInput | None = None

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str | None) -> str | None:
        return None if v is None else validate_username(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str | None) -> str | None:
        return None if v is None else validate_phone(v)


class RoleChangeRequest(BaseModel):
    """New role for an account."""

    role: RoleInput


class PasswordSetRequest(BaseModel):
    """Admin override of an account's password (no old password needed)."""

    password: str = Field(..., min_length=8, max_length=128)


class UserResponse(BaseModel):
    """Single account with a message."""

    message: str
    user: AccountOut


class UsersListResponse(BaseModel):
    """Paged account list (admin only)."""

    page: int
    limit: int
    count: int
    users: list[AccountOut]
    search_term: str | None = None


class DashboardStats(BaseModel):
    """Account totals by status."""

    total_users: int
    active_users: int
    inactive_users: int
    pending_users: int


class DashboardStatsResponse(BaseModel):
    message: str
    stats: DashboardStats
