"""ORM model for one-time verification codes and password reset tokens."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)

from app.models.base import Base


class VerificationCode(Base):
    """
    One outstanding or consumed code/token for an (account, purpose) pair.

    The unique constraint keeps at most one row per pair; issuing a new code
    overwrites the previous one. Only app.services.code_store writes this table.

    purpose: 'email', 'phone' or 'password_reset'
    """

    __tablename__ = "verification_codes"
    __table_args__ = (
        UniqueConstraint(
            "account_id", "purpose", name="uq_verification_codes_account_purpose"
        ),
        Index("ix_verification_codes_purpose_secret", "purpose", "secret"),
        CheckConstraint(
            "purpose IN ('email', 'phone', 'password_reset')",
            name="ck_verification_codes_purpose",
        ),
        CheckConstraint("expires_at > issued_at", name="ck_verification_codes_expiry"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    purpose = Column(String(20), nullable=False)
    secret = Column(String(255), nullable=False)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    consumed_at = Column(DateTime(timezone=True), nullable=True)
