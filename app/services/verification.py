"""Verification engine: issue, deliver and consume email/phone codes and password reset tokens.

Email and phone codes are 6-digit numeric strings with short lifetimes. Password
reset uses a high-entropy URL-safe token, since it travels in a link rather than
being typed. Delivery failures are reported, never rolled back: the issued code
stays valid and the user may ask for a resend.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.schemas.verification import (
    CODE_PURPOSES,
    ConsumeResult,
    VerificationPurpose,
    VerificationStart,
)
from app.services import accounts
from app.services.code_store import CodeStore, as_utc
from app.services.credentials import CredentialUpdater
from app.services.delivery import DeliveryError, EmailSender, SmsSender

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

CODE_LENGTH = 6


def generate_numeric_code(length: int = CODE_LENGTH) -> str:
    """Uniformly random numeric code, zero-padded to a fixed width."""
    return f"{secrets.randbelow(10**length):0{length}d}"


def generate_reset_token(nbytes: int) -> str:
    return secrets.token_urlsafe(nbytes)


class VerificationEngine:
    """Orchestrates the three verification flows over CodeStore and CredentialUpdater."""

    def __init__(
        self,
        session: Session,
        settings: Settings,
        code_store: CodeStore | None = None,
        credentials: CredentialUpdater | None = None,
        email_sender: EmailSender | None = None,
        sms_sender: SmsSender | None = None,
    ) -> None:
        self._session = session
        self._settings = settings
        self._store = code_store or CodeStore(session)
        self._credentials = credentials or CredentialUpdater(session)
        self._email = email_sender or EmailSender(settings)
        self._sms = sms_sender or SmsSender(settings)

    def _code_ttl(self, purpose: VerificationPurpose) -> timedelta:
        if purpose == VerificationPurpose.EMAIL:
            return timedelta(minutes=self._settings.EMAIL_CODE_TTL_MINUTES)
        return timedelta(minutes=self._settings.PHONE_CODE_TTL_MINUTES)

    def _deliver(
        self, account_id: int, purpose: VerificationPurpose, send: Callable[[], None]
    ) -> tuple[bool, str | None]:
        try:
            send()
        except DeliveryError as e:
            logger.warning(
                "Verification delivery failed",
                extra={
                    "account_id": account_id,
                    "purpose": purpose.value,
                    "channel": e.channel,
                    "reason": e.message[:500],
                },
            )
            return False, e.message
        return True, None

    def start_verification(
        self,
        subject_id: int,
        purpose: VerificationPurpose,
        carrier: str | None = None,
    ) -> VerificationStart:
        """
        Issue a fresh 6-digit code for email or phone and send it.

        Re-issuing replaces any outstanding code for the same purpose only; an
        email code never invalidates a phone code and vice versa.
        Raises AccountNotFoundError for an unknown account.
        """
        if purpose not in CODE_PURPOSES:
            raise ValueError(f"start_verification does not handle purpose {purpose.value}")
        account = accounts.get_account(self._session, subject_id)
        email, phone = account.email, account.phone

        code = generate_numeric_code()
        ttl = self._code_ttl(purpose)
        record = self._store.issue(subject_id, purpose, code, ttl)
        expires_at = as_utc(record.expires_at)
        minutes = int(ttl.total_seconds() // 60)

        if purpose == VerificationPurpose.EMAIL:
            body = (
                f"Your verification code is {code}.\n"
                f"It expires in {minutes} minutes."
            )
            delivered, error = self._deliver(
                subject_id,
                purpose,
                lambda: self._email.send(email, "Verify your email address", body),
            )
        else:
            text = f"Your verification code is {code}. It expires in {minutes} minutes."
            delivered, error = self._deliver(
                subject_id, purpose, lambda: self._sms.send(phone, text, carrier)
            )

        return VerificationStart(
            account_id=subject_id,
            purpose=purpose,
            expires_at=expires_at,
            delivered=delivered,
            delivery_error=error,
        )

    def confirm_verification(
        self,
        subject_id: int,
        purpose: VerificationPurpose,
        candidate_secret: str,
    ) -> ConsumeResult:
        """Consume the code; on success mark the account's matching verified flag."""
        if purpose not in CODE_PURPOSES:
            raise ValueError(f"confirm_verification does not handle purpose {purpose.value}")
        result = self._store.consume(subject_id, purpose, candidate_secret)
        if result is ConsumeResult.SUCCESS:
            accounts.mark_verified(self._session, subject_id, purpose)
        else:
            logger.info(
                "Verification not confirmed",
                extra={"account_id": subject_id, "purpose": purpose.value, "result": result.value},
            )
        return result

    def start_password_reset(self, subject_id: int) -> VerificationStart:
        """Issue a reset token for the account and email a reset link."""
        account = accounts.get_account(self._session, subject_id)
        email = account.email

        token = generate_reset_token(self._settings.PASSWORD_RESET_TOKEN_BYTES)
        ttl = timedelta(minutes=self._settings.PASSWORD_RESET_TTL_MINUTES)
        record = self._store.issue(subject_id, VerificationPurpose.PASSWORD_RESET, token, ttl)

        link = f"{self._settings.APP_BASE_URL}/reset-password?token={token}"
        body = (
            "A password reset was requested for your account.\n"
            f"Reset your password: {link}\n"
            f"This link expires in {self._settings.PASSWORD_RESET_TTL_MINUTES} minutes. "
            "If you did not request it, ignore this email."
        )
        delivered, error = self._deliver(
            subject_id,
            VerificationPurpose.PASSWORD_RESET,
            lambda: self._email.send(email, "Reset your password", body),
        )
        return VerificationStart(
            account_id=subject_id,
            purpose=VerificationPurpose.PASSWORD_RESET,
            expires_at=as_utc(record.expires_at),
            delivered=delivered,
            delivery_error=error,
        )

    def complete_password_reset(self, token: str, new_password: str) -> ConsumeResult:
        """
        Consume the reset token and replace the account's credential.

        Only SUCCESS changes the credential. HashingError propagates from
        CredentialUpdater after the token was consumed; the user must request a
        new reset in that case.
        """
        record = self._store.find_by_secret(VerificationPurpose.PASSWORD_RESET, token)
        if record is None:
            return ConsumeResult.NOT_FOUND
        account_id = record.account_id

        result = self._store.consume(account_id, VerificationPurpose.PASSWORD_RESET, token)
        if result is not ConsumeResult.SUCCESS:
            logger.info(
                "Password reset rejected",
                extra={"account_id": account_id, "result": result.value},
            )
            return result
        self._credentials.replace(account_id, new_password)
        return result
