"""Shared fixtures: an in-memory SQLite database and an API client bound to it."""
import os

# Must be set before be.config builds the settings singleton
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("MATCHING_API_KEY", "test-key")

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from be import models
from be.api import app
from be.db import get_session
from be.models import Base

SQLITE_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


def _make_engine():
    return create_async_engine(
        SQLITE_MEMORY_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


async def _create_tables(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = _make_engine()
    await _create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    """Database session for pipeline tests."""
    maker = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
    async with maker() as session:
        yield session


@pytest.fixture
def client():
    """API client with ``get_session`` bound to a fresh in-memory database.

    The engine is created and used only on the client's event loop.
    """
    engine = _make_engine()
    maker = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)

    async def override_get_session():
        async with maker() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    with TestClient(app) as test_client:
        test_client.portal.call(_create_tables, engine)
        yield test_client
        test_client.portal.call(engine.dispose)
    app.dependency_overrides.clear()


@pytest.fixture
def make_contact(session):
    """Factory inserting a contact with sensible defaults."""
    async def _make(name: str, **kwargs) -> models.Contact:
        kwargs.setdefault("email", f"{name.lower().replace(' ', '.')}@example.com")
        contact = models.Contact(name=name, **kwargs)
        session.add(contact)
        await session.commit()
        return contact

    return _make


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 6, 16, 12, 0, 0)
