"""
Test configuration and fixtures for EventTria.

Provides shared fixtures for unit and integration tests.
"""

import os
import time
from typing import AsyncGenerator
from unittest.mock import patch
from uuid import uuid4

import jwt
import pytest

# Settings are read at import time; provide test values before app imports
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length-for-hs256")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("ENVIRONMENT", "development")

from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

from app.infrastructure.db import models  # noqa: F401  (registers tables)
from app.infrastructure.db.repositories.subscription_repository import SubscriptionRepository


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app():
    """Get the FastAPI application."""
    from app.main import app
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Get synchronous test client."""
    return TestClient(app)


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Get async test client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# =============================================================================
# Auth Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def no_jwks_network():
    """Force the HS256 path so tests never fetch the Supabase JWKS."""
    with patch(
        "app.api.dependencies._decode_with_jwks",
        side_effect=jwt.InvalidTokenError("JWKS disabled in tests"),
    ):
        yield


@pytest.fixture(autouse=True)
def clear_session_cache():
    from app.api.dependencies import get_session_cache

    get_session_cache().clear()
    yield
    get_session_cache().clear()


@pytest.fixture
def mock_user_id() -> str:
    return str(uuid4())


def make_token(user_id: str, expires_in: int = 3600) -> str:
    from app.config.settings import get_settings

    settings = get_settings()
    payload = {
        "sub": user_id,
        "aud": "authenticated",
        "iss": f"{settings.supabase_url}/auth/v1",
        "exp": int(time.time()) + expires_in,
    }
    return jwt.encode(payload, settings.supabase_jwt_secret, algorithm="HS256")


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def auth_headers(mock_user_id) -> dict:
    return {"Authorization": f"Bearer {make_token(mock_user_id)}"}


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite database with all tables and the plans seeded."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'eventtria.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        await SubscriptionRepository(session).sync_plans()
        await session.commit()

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
