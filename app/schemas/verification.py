"""Schemas for verification codes and password reset: purposes, results, requests."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, EmailStr, Field, field_validator


class VerificationPurpose(str, Enum):
    """Flow a verification record belongs to; part of the record's identity key."""

    EMAIL = "email"
    PHONE = "phone"
    PASSWORD_RESET = "password_reset"


# Purposes handled by start_verification / confirm_verification (6-digit codes).
CODE_PURPOSES: frozenset[VerificationPurpose] = frozenset(
    {VerificationPurpose.EMAIL, VerificationPurpose.PHONE}
)


class ConsumeResult(str, Enum):
    """Outcome of consuming a code or token. Returned, never raised."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    ALREADY_USED = "already_used"
    EXPIRED = "expired"
    MISMATCH = "mismatch"


class VerificationStart(BaseModel):
    """Result of issuing a code or token and attempting delivery."""

    account_id: int
    purpose: VerificationPurpose
    expires_at: datetime
    delivered: bool = Field(..., description="False when the delivery channel failed")
    delivery_error: str | None = Field(
        default=None,
        description="Delivery failure reason; the issued code stays valid for a resend.",
    )


class VerificationSendResponse(BaseModel):
    """Response for send endpoints (email code, SMS code, password reset request)."""

    message: str
    expires_at: datetime | None = None
    delivered: bool | None = None


class VerificationCodeRequest(BaseModel):
    """6-digit code typed by the user."""

    code: str = Field(..., description="6-digit verification code")

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        v = v.strip()
        if len(v) != 6 or not v.isdigit():
            raise ValueError("Code must be exactly 6 digits")
        return v


class PhoneSendRequest(BaseModel):
    """Optional carrier used to reach the phone through its email-to-SMS gateway."""

    carrier: str | None = Field(default=None, description="Carrier key, e.g. att, verizon")


class PasswordResetRequest(BaseModel):
    """Request a password reset link by email."""

    email: EmailStr


class PasswordResetConfirm(BaseModel):
    """Complete a password reset with the emailed token."""

    token: str = Field(..., min_length=1, max_length=512)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("token")
    @classmethod
    def strip_token(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Token is required")
        return v


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class CarriersResponse(BaseModel):
    """Supported SMS carriers."""

    carriers: list[str]
