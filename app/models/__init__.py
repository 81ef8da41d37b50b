"""SQLAlchemy ORM models."""

from app.models.account import Account
from app.models.base import Base
from app.models.credential import AccountCredential
from app.models.verification_code import VerificationCode

__all__ = ["Account", "AccountCredential", "Base", "VerificationCode"]
