"""Pydantic request/response schemas."""

from app.schemas.auth import CurrentUser, LoginRequest, RegisterRequest, TokenResponse
from app.schemas.health import HealthResponse
from app.schemas.verification import (
    ConsumeResult,
    VerificationPurpose,
    VerificationStart,
)

__all__ = [
    "ConsumeResult",
    "CurrentUser",
    "HealthResponse",
    "LoginRequest",
    "RegisterRequest",
    "TokenResponse",
    "VerificationPurpose",
    "VerificationStart",
]
