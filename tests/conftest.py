"""
Shared pytest fixtures.
"""
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.config import Settings
from app.core.dependencies import get_oauth_provider
from app.infrastructure.database.base import Base, create_engine, create_session_factory
from app.infrastructure.database import models  # noqa: F401
from app.main import create_app
from app.repositories.unit_of_work import UnitOfWorkFactory, unit_of_work_factory
from tests.fixtures.auth import AuthTestData, FakeClock
from tests.mocks.oauth_providers import FakeGitHubProvider


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from the environment, backed by a file SQLite database."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        OAUTH_STATE_KEY=AuthTestData.STATE_KEY,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'hextok.db'}",
        BASE_URL="http://testserver",
        COOKIE_SECURE=False,
        GITHUB_CLIENT_ID="test-github-client-id",
        GITHUB_CLIENT_SECRET="test-github-client-secret",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def uow_factory(engine: AsyncEngine) -> UnitOfWorkFactory:
    return unit_of_work_factory(create_session_factory(engine))


@pytest.fixture
def github_provider(settings: Settings) -> FakeGitHubProvider:
    return FakeGitHubProvider(settings)


@pytest.fixture
def app(
    settings: Settings,
    uow_factory: UnitOfWorkFactory,
    clock: FakeClock,
    github_provider: FakeGitHubProvider,
) -> FastAPI:
    app = create_app(settings, uow_factory=uow_factory, clock=clock)
    app.dependency_overrides[get_oauth_provider] = lambda: github_provider
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app; redirects are not followed."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
