import os

# Console-only logging at WARNING for the test run; must be set before app imports
os.environ["ENVIRONMENT"] = "testing"

from datetime import date
from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from app.db.models import Base, TrainingClass
from tests.factories import create_class, seed_catalog


# Test database setup
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def test_engine():
    """In-memory database shared by every session of one test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    """File database with one connection per session, for tests that run sessions concurrently."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'enrollment.db'}",
        poolclass=NullPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async_session_maker = async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def catalog(db_session: AsyncSession) -> SimpleNamespace:
    return await seed_catalog(db_session)


@pytest_asyncio.fixture
async def open_class(db_session: AsyncSession, catalog) -> TrainingClass:
    """Approved, scheduled class with room for 20 and three upcoming sessions."""
    return await create_class(db_session, catalog)


@pytest.fixture
def today() -> date:
    return date.today()
