"""Shared test helpers: in-memory SQLite database, fake clock and account builder."""

import itertools
from datetime import UTC, datetime, timedelta

import bcrypt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import Account, Base

_counter = itertools.count(1)


def make_session_factory() -> sessionmaker:
    """Fresh in-memory database shared by every session from the returned factory."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def fast_hash(password: str) -> str:
    """Real bcrypt hash at the minimum cost, to keep tests quick."""
    return bcrypt.hashpw(password.encode("utf-8")[:72], bcrypt.gensalt(rounds=4)).decode("utf-8")


def add_account(session: Session, **overrides: object) -> Account:
    """Insert an account with unique defaults; returns it refreshed."""
    n = next(_counter)
    fields: dict[str, object] = {
        "first_name": "Test",
        "last_name": f"User{n}",
        "username": f"user{n}",
        "email": f"user{n}@example.com",
        "phone": f"206555{n:04d}",
        "role": 1,
        "status": "active",
    }
    fields.update(overrides)
    account = Account(**fields)
    session.add(account)
    session.commit()
    session.refresh(account)
    return account


class FakeClock:
    """Callable clock for CodeStore; advance() moves time forward."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)
