"""Pytest configuration and fixtures."""

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PROCRASTINATE_DATABASE_URL", "postgresql://localhost/budgetbite_test")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from budgetbite.models import Base
from budgetbite.services import LedgerStore, TierCeilingResolver, UsageLedger


class FrozenClock:
    """Wall clock the tests can move."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
async def db_engine(tmp_path):
    """Create a test database engine."""
    # File-backed SQLite so independent sessions contend on the same rows
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        echo=False,
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(session_factory, clock):
    return LedgerStore(session_factory, clock=clock)


@pytest.fixture
def ceilings():
    return TierCeilingResolver(default_cents=200)


@pytest.fixture
def ledger(session_factory, ceilings, clock):
    return UsageLedger(session_factory, ceilings=ceilings, mode="hard", clock=clock)


@pytest.fixture
def soft_ledger(session_factory, ceilings, clock):
    return UsageLedger(session_factory, ceilings=ceilings, mode="soft", clock=clock)
