"""Pytest fixtures for testing."""
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from api.main import create_app
from core.config import Settings
from models import Base, Customer, Product
from tests.factories import create_customer, create_product, make_settings


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """A fresh SQLite database file per test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
def settings(database_url: str) -> Settings:
    """Test settings."""
    return make_settings(database_url)


@pytest.fixture
async def app(settings: Settings) -> AsyncGenerator[FastAPI]:
    """
    Application with its schema created.

    ASGITransport does not run the lifespan, so tables are created here and
    audit writes are drained before the engine is disposed.
    """
    application = create_app(settings)
    async with application.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield application

    await application.state.audit_logger.drain()
    await application.state.engine.dispose()


@pytest.fixture
async def db_session(app: FastAPI) -> AsyncGenerator[AsyncSession]:
    """A session on the app's database for arranging and checking data."""
    async with app.state.session_factory() as session:
        yield session


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """
    Test client for the app.

    Unexpected errors are re-raised by the app after the 500 response is
    prepared; raise_app_exceptions=False lets tests see that response.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://test",
    ) as test_client:
        yield test_client


@pytest.fixture
async def customer(db_session: AsyncSession) -> Customer:
    """A customer with the `user` role."""
    return await create_customer(db_session)


@pytest.fixture
async def admin(db_session: AsyncSession) -> Customer:
    """A customer with the `admin` role."""
    return await create_customer(db_session, email="admin@example.com", role="admin", name="Admin")


@pytest.fixture
async def product(db_session: AsyncSession) -> Product:
    """An active product priced 10.00 with a size option (L is +2.50, XL sold out)."""
    return await create_product(
        db_session,
        options={
            "size": [("M", "0.00", False), ("L", "2.50", False), ("XL", "2.50", True)],
        },
    )
