import os

os.environ.setdefault("OB_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("OB_AUTH_MODE", "dev")
os.environ.setdefault("OB_REDIS_URL", "")
os.environ.setdefault("OB_SCHEDULER_ENABLED", "false")
os.environ.setdefault("OB_ENABLE_GMAIL", "false")
os.environ.setdefault("OB_ENABLE_CALENDAR", "false")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from onboarding.models import Base

from factories import FakeCalendar, FakeMailer


@pytest.fixture()
async def async_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=async_engine, expire_on_commit=False, autoflush=False)


@pytest.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture()
def calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture()
def mailer() -> FakeMailer:
    return FakeMailer()
