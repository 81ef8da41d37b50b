"""Account state and admin queries: verified flags, status, listing, search, stats."""

import logging
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.models import Account
from app.schemas.verification import VerificationPurpose
from app.services.credentials import CredentialUpdater

logger = logging.getLogger(__name__)


class AccountNotFoundError(Exception):
    """Raised when an operation targets an account id that does not exist."""

    def __init__(self, account_id: int) -> None:
        self.account_id = account_id
        self.message = "User not found"
        super().__init__(self.message)


class DuplicateAccountError(Exception):
    """Raised when username, email or phone is already taken."""

    def __init__(self, field: str) -> None:
        self.field = field
        self.message = f"An account with this {field} already exists"
        super().__init__(self.message)


def get_account(session: Session, account_id: int) -> Account:
    account = session.get(Account, account_id)
    if account is None:
        raise AccountNotFoundError(account_id)
    return account


def find_by_email(session: Session, email: str) -> Account | None:
    stmt = select(Account).where(func.lower(Account.email) == email.strip().lower())
    return session.execute(stmt).scalar_one_or_none()


def ensure_unique(
    session: Session,
    username: str,
    email: str,
    phone: str,
    exclude_id: int | None = None,
) -> None:
    """Raise DuplicateAccountError naming the first field already in use."""
    checks = (
        ("username", Account.username == username),
        ("email", func.lower(Account.email) == email.lower()),
        ("phone", Account.phone == phone),
    )
    for field, condition in checks:
        stmt = select(Account.id).where(condition)
        if exclude_id is not None:
            stmt = stmt.where(Account.id != exclude_id)
        if session.execute(stmt.limit(1)).first() is not None:
            raise DuplicateAccountError(field)


def create_account(
    session: Session,
    credentials: CredentialUpdater,
    password: str,
    **fields: Any,
) -> Account:
    """
    Insert an account and its credential in one transaction; commits and returns it.

    A HashingError (or any database error) rolls the account back, so a
    failed registration leaves nothing behind and can simply be retried.
    """
    ensure_unique(session, fields["username"], fields["email"], fields["phone"])
    account = Account(**fields)
    session.add(account)
    try:
        session.flush()
        credentials.replace(account.id, password, commit=False)
    except Exception:
        session.rollback()
        raise
    session.commit()
    session.refresh(account)
    logger.info("Account created", extra={"account_id": account.id, "role": account.role})
    return account


def mark_verified(session: Session, account_id: int, purpose: VerificationPurpose) -> Account:
    """
    Set the verified flag matching purpose. A pending account becomes active
    once its email address is verified.
    """
    account = get_account(session, account_id)
    if purpose == VerificationPurpose.EMAIL:
        account.email_verified = True
        if account.status == "pending":
            account.status = "active"
    elif purpose == VerificationPurpose.PHONE:
        account.phone_verified = True
    else:
        raise ValueError(f"Purpose {purpose.value} has no verified flag")
    session.commit()
    session.refresh(account)
    return account


def list_accounts(session: Session, page: int, limit: int) -> list[Account]:
    stmt = select(Account).order_by(Account.id).limit(limit).offset((page - 1) * limit)
    return list(session.execute(stmt).scalars().all())


def search_accounts(
    session: Session,
    page: int,
    limit: int,
    term: str | None = None,
    status: str | None = None,
    role_rank: int | None = None,
) -> list[Account]:
    """Case-insensitive match on names, email and username, plus optional filters."""
    stmt = select(Account)
    if term:
        pattern = f"%{term}%"
        stmt = stmt.where(
            or_(
                Account.first_name.ilike(pattern),
                Account.last_name.ilike(pattern),
                Account.email.ilike(pattern),
                Account.username.ilike(pattern),
            )
        )
    if status:
        stmt = stmt.where(Account.status == status)
    if role_rank is not None:
        stmt = stmt.where(Account.role == role_rank)
    stmt = stmt.order_by(Account.id).limit(limit).offset((page - 1) * limit)
    return list(session.execute(stmt).scalars().all())


def account_stats(session: Session) -> dict[str, int]:
    """Totals by status for the admin dashboard."""
    rows = session.execute(
        select(Account.status, func.count(Account.id)).group_by(Account.status)
    ).all()
    by_status = {status: count for status, count in rows}
    return {
        "total_users": sum(by_status.values()),
        "active_users": by_status.get("active", 0),
        "inactive_users": by_status.get("inactive", 0),
        "pending_users": by_status.get("pending", 0),
    }
