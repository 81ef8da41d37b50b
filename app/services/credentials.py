"""Credential updater: atomically replace an account's salted password hash.

Hashing happens before the database is touched, so a hashing failure never
leaves a partial update behind. The write is an upsert on account_id, keeping
exactly one credential row per account.
"""

import logging
from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.security import hash_password, verify_password
from app.models import AccountCredential
from app.models.base import upsert_insert

logger = logging.getLogger(__name__)

Hasher = Callable[[str], str]


class HashingError(Exception):
    """Raised when the password hashing collaborator fails; no credential was changed."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class CredentialUpdater:
    """Sole writer of account_credentials."""

    def __init__(self, session: Session, hasher: Hasher = hash_password) -> None:
        self._session = session
        self._hasher = hasher

    def get_hash(self, subject_id: int) -> str | None:
        stmt = (
            select(AccountCredential.salted_hash)
            .where(AccountCredential.account_id == subject_id)
            .execution_options(populate_existing=True)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def verify(self, subject_id: int, plain_password: str) -> bool:
        """True when plain_password matches the account's stored hash."""
        stored = self.get_hash(subject_id)
        if stored is None:
            return False
        return verify_password(plain_password, stored)

    def replace(self, subject_id: int, new_password: str, commit: bool = True) -> None:
        """
        Hash new_password and upsert it as the account's only credential.

        With commit=False the write joins the caller's transaction.
        """
        try:
            salted_hash = self._hasher(new_password)
        except Exception as e:
            logger.error(
                "Password hashing failed",
                extra={"account_id": subject_id, "error_type": type(e).__name__},
            )
            raise HashingError("Failed to hash password") from e
        if not salted_hash:
            raise HashingError("Password hasher returned an empty hash")

        stmt = upsert_insert(self._session, AccountCredential).values(
            account_id=subject_id,
            salted_hash=salted_hash,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["account_id"],
            set_={"salted_hash": stmt.excluded.salted_hash},
        )
        self._session.execute(stmt)
        if commit:
            self._session.commit()
        logger.info("Credential replaced", extra={"account_id": subject_id})
