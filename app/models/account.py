"""ORM model for accounts (identity, verification flags and role rank)."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, func

from app.models.base import Base

# Account lifecycle states; 'pending' until the email address is verified.
ACCOUNT_STATUSES = ("pending", "active", "inactive", "suspended", "locked")
# States that may not obtain access tokens.
BLOCKED_STATUSES = frozenset({"inactive", "suspended", "locked"})


class Account(Base):
    """
    User account for JWT authentication and role-based access control.

    role: integer rank (1=User .. 5=Owner), see app.services.roles.
    """

    __tablename__ = "accounts"
    __table_args__ = (CheckConstraint("role BETWEEN 1 AND 5", name="ck_accounts_role_range"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    username = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    phone = Column(String(32), nullable=False, unique=True, index=True)
    phone_verified = Column(Boolean, nullable=False, default=False)
    role = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default="pending", index=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
