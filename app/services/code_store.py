"""Verification code store: issue and consume single-use, time-bound codes and tokens.

Records are keyed by (account_id, purpose). The database is the single source of
truth: issuing is an atomic upsert on that key, and consuming marks the row with
a guarded UPDATE so that exactly one concurrent caller can succeed. Expiry is
evaluated lazily against the injected clock; nothing is cached in process.
"""

import hmac
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.models import VerificationCode
from app.models.base import upsert_insert
from app.schemas.verification import ConsumeResult, VerificationPurpose

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Columns overwritten when a new code replaces the existing row for the same key.
_REISSUE_COLUMNS = ("secret", "issued_at", "expires_at", "attempts", "consumed_at")


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite; stored values are UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _secrets_match(stored: str, candidate: str | None) -> bool:
    if not isinstance(candidate, str):
        return False
    return hmac.compare_digest(stored.encode("utf-8"), candidate.encode("utf-8"))


class CodeStore:
    """Sole writer of verification_codes. One instance per session/unit of work."""

    def __init__(self, session: Session, clock: Clock = utcnow) -> None:
        self._session = session
        self._clock = clock

    def get(
        self, subject_id: int, purpose: VerificationPurpose
    ) -> VerificationCode | None:
        """Read the current record for (subject_id, purpose) straight from the database."""
        stmt = (
            select(VerificationCode)
            .where(
                VerificationCode.account_id == subject_id,
                VerificationCode.purpose == purpose.value,
            )
            .execution_options(populate_existing=True)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def find_by_secret(
        self, purpose: VerificationPurpose, secret: str
    ) -> VerificationCode | None:
        """Locate a record by its secret when the caller does not know the subject."""
        if not secret:
            return None
        stmt = (
            select(VerificationCode)
            .where(
                VerificationCode.purpose == purpose.value,
                VerificationCode.secret == secret,
            )
            .execution_options(populate_existing=True)
        )
        return self._session.execute(stmt).scalars().first()

    def issue(
        self,
        subject_id: int,
        purpose: VerificationPurpose,
        secret: str,
        ttl: timedelta,
    ) -> VerificationCode:
        """
        Store a fresh record for (subject_id, purpose), replacing any previous one.

        The upsert keeps at most one row per key even under concurrent issues;
        the last writer wins. Attempts reset to 0 and consumed_at to NULL.
        """
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        if not secret:
            raise ValueError("secret must be non-empty")

        now = self._clock()
        stmt = upsert_insert(self._session, VerificationCode).values(
            account_id=subject_id,
            purpose=purpose.value,
            secret=secret,
            issued_at=now,
            expires_at=now + ttl,
            attempts=0,
            consumed_at=None,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["account_id", "purpose"],
            set_={col: stmt.excluded[col] for col in _REISSUE_COLUMNS},
        )
        self._session.execute(stmt)
        self._session.commit()

        record = self.get(subject_id, purpose)
        if record is None:
            raise RuntimeError("Verification record missing after upsert")
        logger.info(
            "Verification code issued",
            extra={
                "account_id": subject_id,
                "purpose": purpose.value,
                "expires_at": (now + ttl).isoformat(),
            },
        )
        return record

    def consume(
        self,
        subject_id: int,
        purpose: VerificationPurpose,
        candidate_secret: str | None,
    ) -> ConsumeResult:
        """
        Try to use the record for (subject_id, purpose) with candidate_secret.

        Checks run in order: existence, consumed, expired, match. A mismatch
        increments attempts; there is no lockout here (policy lives elsewhere).
        """
        record = self.get(subject_id, purpose)
        if record is None:
            return ConsumeResult.NOT_FOUND
        if record.consumed_at is not None:
            return ConsumeResult.ALREADY_USED

        now = self._clock()
        if now > as_utc(record.expires_at):
            return ConsumeResult.EXPIRED

        record_id = record.id
        stored_secret = record.secret
        if not _secrets_match(stored_secret, candidate_secret):
            self._session.execute(
                update(VerificationCode)
                .where(VerificationCode.id == record_id)
                .values(attempts=VerificationCode.attempts + 1)
            )
            self._session.commit()
            logger.warning(
                "Verification code mismatch",
                extra={"account_id": subject_id, "purpose": purpose.value},
            )
            return ConsumeResult.MISMATCH

        result = self._session.execute(
            update(VerificationCode)
            .where(
                VerificationCode.id == record_id,
                VerificationCode.consumed_at.is_(None),
                VerificationCode.secret == stored_secret,
            )
            .values(consumed_at=now)
        )
        self._session.commit()
        if result.rowcount == 1:
            logger.info(
                "Verification code consumed",
                extra={"account_id": subject_id, "purpose": purpose.value},
            )
            return ConsumeResult.SUCCESS

        # Lost a race: another caller consumed the row or a new code replaced it.
        current = self.get(subject_id, purpose)
        if current is None:
            return ConsumeResult.NOT_FOUND
        if current.consumed_at is not None:
            return ConsumeResult.ALREADY_USED
        return ConsumeResult.MISMATCH
