"""SQLAlchemy declarative Base and shared model configuration."""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import DeclarativeBase, Session


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    pass


def upsert_insert(session: Session, model: type[Base]) -> Any:
    """
    Return a dialect-specific INSERT for model that supports on_conflict_do_update.

    PostgreSQL in production; SQLite so stores can run against an in-memory
    database in tests.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise RuntimeError(f"Upsert is not supported for dialect '{dialect}'")
