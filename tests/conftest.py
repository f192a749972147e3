"""Shared pytest fixtures for app-wide tests."""

import uuid
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.app import app
from src.database.session import get_db
from src.modules.identity.auth import AuthenticatedUser, get_current_user
from src.rate_limit import limiter


@pytest.fixture
def mock_db() -> AsyncMock:
    """An AsyncSession double; ``add`` is synchronous like the real one."""
    db = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def current_user() -> AuthenticatedUser:
    return AuthenticatedUser(id=uuid.uuid4(), email="tester@example.com", role="ADMIN")


@pytest_asyncio.fixture
async def async_client(
    mock_db: AsyncMock, current_user: AuthenticatedUser
) -> AsyncGenerator[AsyncClient, None]:
    """Yield an httpx AsyncClient wired to the FastAPI app with a mocked DB session."""

    async def override_get_db() -> AsyncGenerator[AsyncMock, None]:
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: current_user
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
