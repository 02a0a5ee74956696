"""
Pytest configuration for integration tests.

Integration tests run against a real PostgreSQL database at
LANDSCAPE_FORMS_TEST_DATABASE_URL. The schema (tables and triggers) is
rebuilt once per session with metadata.create_all; every test starts from
empty tables. Tests are skipped when the database is unreachable.

Repository calls commit for real (no outer rollback) so deferred
constraint triggers fire as they would in production.
"""

import asyncio
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from landscape_forms.models import Base, Chemical, User
from landscape_forms.repositories import FormRepository
from tests.conftest import TEST_DATABASE_URL

TRUNCATE_ALL = text(
    "TRUNCATE pesticide_applications, shrub_forms, lawn_forms, forms, chemicals, users "
    "RESTART IDENTITY CASCADE"
)


async def _rebuild_schema() -> None:
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)
    try:
        async with engine.begin() as conn:
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS pgcrypto"))
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()


@pytest.fixture(scope="session")
def database_schema():
    """Create tables and triggers once per session, or skip if PostgreSQL is down."""
    try:
        asyncio.run(_rebuild_schema())
    except (SQLAlchemyError, OSError) as e:
        pytest.skip(f"Test database unavailable: {e}")


@pytest_asyncio.fixture
async def async_engine(database_schema):
    """Per-test engine.

    Uses NullPool to avoid sharing connections across pytest-asyncio's
    function-scoped event loops.
    """
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.execute(TRUNCATE_ALL)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def repo(db_session) -> FormRepository:
    return FormRepository(db_session)


async def _add_user(session_factory, username: str) -> User:
    async with session_factory() as session:
        async with session.begin():
            user = User(
                first_name=username.title(),
                last_name="Tester",
                username=username,
                password_hash="not-a-real-hash",
                pending=False,
            )
            session.add(user)
        return user


@pytest_asyncio.fixture
async def owner_a(session_factory) -> User:
    return await _add_user(session_factory, "owner_a")


@pytest_asyncio.fixture
async def owner_b(session_factory) -> User:
    return await _add_user(session_factory, "owner_b")


@pytest_asyncio.fixture
async def chemical(session_factory) -> Chemical:
    async with session_factory() as session:
        async with session.begin():
            chem = Chemical(
                category="lawn",
                brand_name="GreenGuard",
                chemical_name="Glyphosate",
                epa_reg_no="524-475",
                recipe="2 oz/gal",
                unit="oz",
            )
            session.add(chem)
        return chem
