"""Email/phone verification and password reset endpoints.

Each ConsumeResult maps to its own client-facing status and message so users can
tell a wrong code from an expired or already used one.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.v1.auth import get_current_user, hashing_failed
from app.core.config import get_settings
from app.core.database import get_db
from app.schemas.auth import CurrentUser
from app.schemas.verification import (
    CarriersResponse,
    ConsumeResult,
    MessageResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    PhoneSendRequest,
    VerificationCodeRequest,
    VerificationPurpose,
    VerificationSendResponse,
    VerificationStart,
)
from app.services import accounts
from app.services.credentials import HashingError
from app.services.delivery import SMS_GATEWAYS
from app.services.verification import VerificationEngine

logger = logging.getLogger(__name__)
router = APIRouter()

# Same answer whether or not the email belongs to an account (no account enumeration).
RESET_REQUEST_MESSAGE = "If the email is registered and verified, a password reset link has been sent."

_FAILURE_STATUS: dict[ConsumeResult, int] = {
    ConsumeResult.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ConsumeResult.EXPIRED: status.HTTP_400_BAD_REQUEST,
    ConsumeResult.ALREADY_USED: status.HTTP_400_BAD_REQUEST,
    ConsumeResult.MISMATCH: status.HTTP_400_BAD_REQUEST,
}


def _failure_detail(result: ConsumeResult, noun: str) -> str:
    if result is ConsumeResult.NOT_FOUND:
        return f"No {noun} found. Please request a new one."
    if result is ConsumeResult.EXPIRED:
        return f"The {noun} has expired. Please request a new one."
    if result is ConsumeResult.ALREADY_USED:
        return f"The {noun} has already been used."
    return f"Invalid {noun}."


def raise_for_result(result: ConsumeResult, noun: str) -> None:
    """Raise the HTTPException for any result other than SUCCESS."""
    if result is ConsumeResult.SUCCESS:
        return
    raise HTTPException(
        status_code=_FAILURE_STATUS[result],
        detail=_failure_detail(result, noun),
    )


def get_verification_engine(
    db: Annotated[Session, Depends(get_db)],
) -> VerificationEngine:
    """Dependency: verification engine bound to the request's session."""
    return VerificationEngine(db, get_settings())


def _send_response(start: VerificationStart, what: str) -> VerificationSendResponse:
    if start.delivered:
        message = f"{what} sent"
    else:
        message = f"{what} issued but could not be delivered; please request a resend"
    return VerificationSendResponse(
        message=message,
        expires_at=start.expires_at,
        delivered=start.delivered,
    )


def _start(
    engine: VerificationEngine,
    account_id: int,
    purpose: VerificationPurpose,
    carrier: str | None = None,
) -> VerificationStart:
    try:
        return engine.start_verification(account_id, purpose, carrier=carrier)
    except accounts.AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e


@router.get("/verify/carriers", response_model=CarriersResponse)
def get_carriers() -> CarriersResponse:
    """List carriers supported for SMS delivery."""
    return CarriersResponse(carriers=sorted(SMS_GATEWAYS))


@router.post("/verify/email/send", response_model=VerificationSendResponse)
def send_email_verification(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    engine: Annotated[VerificationEngine, Depends(get_verification_engine)],
) -> VerificationSendResponse:
    """Issue (or re-issue) a 6-digit email verification code and email it."""
    start = _start(engine, current_user.id, VerificationPurpose.EMAIL)
    return _send_response(start, "Verification code")


@router.post("/verify/email/confirm", response_model=MessageResponse)
def confirm_email_verification(
    body: VerificationCodeRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    engine: Annotated[VerificationEngine, Depends(get_verification_engine)],
) -> MessageResponse:
    """Confirm the emailed code; marks the email verified on success."""
    result = engine.confirm_verification(current_user.id, VerificationPurpose.EMAIL, body.code)
    raise_for_result(result, "verification code")
    return MessageResponse(message="Email verified successfully")


@router.post("/verify/phone/send", response_model=VerificationSendResponse)
def send_sms_verification(
    body: PhoneSendRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    engine: Annotated[VerificationEngine, Depends(get_verification_engine)],
) -> VerificationSendResponse:
    """Issue (or re-issue) a 6-digit SMS code via the carrier's email-to-SMS gateway."""
    if body.carrier is not None and body.carrier.strip().lower() not in SMS_GATEWAYS:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid carrier",
        )
    start = _start(engine, current_user.id, VerificationPurpose.PHONE, carrier=body.carrier)
    return _send_response(start, "Verification code")


@router.post("/verify/phone/verify", response_model=MessageResponse)
def verify_sms_code(
    body: VerificationCodeRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    engine: Annotated[VerificationEngine, Depends(get_verification_engine)],
) -> MessageResponse:
    """Confirm the SMS code; marks the phone verified on success."""
    result = engine.confirm_verification(current_user.id, VerificationPurpose.PHONE, body.code)
    raise_for_result(result, "verification code")
    return MessageResponse(message="Phone verified successfully")


@router.post("/password/reset-request", response_model=VerificationSendResponse)
def request_password_reset(
    body: PasswordResetRequest,
    db: Annotated[Session, Depends(get_db)],
    engine: Annotated[VerificationEngine, Depends(get_verification_engine)],
) -> VerificationSendResponse:
    """Email a password reset link. Requires an existing account with a verified email."""
    account = accounts.find_by_email(db, body.email)
    if account is None or not account.email_verified:
        logger.info(
            "Password reset requested for unknown or unverified email",
            extra={"account_found": account is not None},
        )
        return VerificationSendResponse(message=RESET_REQUEST_MESSAGE)
    start = engine.start_password_reset(account.id)
    if not start.delivered:
        logger.warning("Password reset link not delivered", extra={"account_id": account.id})
    return VerificationSendResponse(message=RESET_REQUEST_MESSAGE)


@router.post("/password/reset", response_model=MessageResponse)
def reset_password(
    body: PasswordResetConfirm,
    engine: Annotated[VerificationEngine, Depends(get_verification_engine)],
) -> MessageResponse:
    """Set a new password using the emailed reset token."""
    try:
        result = engine.complete_password_reset(body.token, body.password)
    except HashingError as e:
        raise hashing_failed(e) from e
    raise_for_result(result, "reset token")
    return MessageResponse(message="Password reset successfully")
