"""ORM model for stored password hashes (one live row per account)."""

from sqlalchemy import Column, ForeignKey, Integer, String

from app.models.base import Base


class AccountCredential(Base):
    """
    Salted password hash for an account.

    account_id is unique: credentials are replaced by upsert, never appended.
    Only app.services.credentials writes this table.
    """

    __tablename__ = "account_credentials"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    salted_hash = Column(String(255), nullable=False)
