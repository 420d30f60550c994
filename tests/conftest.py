"""
Pytest configuration and fixtures.
"""

import os

# Settings are read at import time; provide test values before importing the app.
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")

from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.core.database import Base, get_db
from backend.app.core.security import Principal, Role, ROLE_SCOPES, create_access_token
from backend.app.api.records import get_coordinator
from backend.app.services.attachment_store import FilesystemAttachmentStore, get_attachment_store
from backend.app.services.transaction_coordinator import TransactionCoordinator

# Import all models to register them with Base.metadata
import backend.app.models  # noqa: F401

# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    """Returns the session factory for testing."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Creates a fresh database session for a test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def attachment_store(tmp_path) -> FilesystemAttachmentStore:
    return FilesystemAttachmentStore(tmp_path / "files", max_bytes=1024 * 1024)


@pytest.fixture
def coordinator(session_factory, attachment_store) -> TransactionCoordinator:
    return TransactionCoordinator(session_factory, attachment_store)


@pytest.fixture
def principal() -> Principal:
    return Principal(
        id="user-1",
        display_name="Test User",
        role=Role.ADMIN,
        scopes=ROLE_SCOPES[Role.ADMIN],
    )


@pytest.fixture
def auth_headers(principal) -> dict:
    token = create_access_token(
        {"sub": principal.id, "name": principal.display_name, "role": principal.role}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def count_rows(session_factory):
    """Count rows in a table, optionally filtered by column values."""
    async def _count(table, **filters) -> int:
        stmt = select(func.count()).select_from(table)
        for column, value in filters.items():
            stmt = stmt.where(table.c[column] == value)
        async with session_factory() as session:
            return (await session.execute(stmt)).scalar_one()
    return _count


@pytest.fixture(scope="function")
async def client(session_factory, coordinator, attachment_store) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with database, coordinator and attachment store overridden.
    """
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    app.dependency_overrides[get_attachment_store] = lambda: attachment_store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
