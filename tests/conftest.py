"""Pytest configuration and fixtures for the parking service tests."""
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from parkit import auth, registry
from parkit.database import get_db, init_db
from parkit.main import app
from parkit.models import ROLE_ADMIN, ROLE_ATTENDANT


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'parkit-test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def lot(db):
    """A 10-space lot billed at 5.00 per hour."""
    return await registry.create_lot(db, "LOT-A", "Main Street Lot", 10, "Main Street", Decimal("5.00"))


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def bearer_for(session_factory, email, role):
    async with session_factory() as session:
        _, token = await auth.register(session, "Test", "User", email, "secret123", role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def admin_headers(session_factory):
    return await bearer_for(session_factory, "admin@example.com", ROLE_ADMIN)


@pytest.fixture
async def attendant_headers(session_factory):
    return await bearer_for(session_factory, "attendant@example.com", ROLE_ATTENDANT)
