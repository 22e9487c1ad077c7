"""Global test configuration: in-memory database, entity factories and API client."""

from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from snapline.api.app import create_app
from snapline.api.dependencies import get_current_user, get_dispatcher, get_runtime

# Import all models to ensure metadata is populated
from snapline.models import *  # noqa: F403
from snapline.models import Application, Device, Instance, InstanceState, Team, User
from snapline.services.inflight import InflightStateTracker
from snapline.services.pipeline import PipelineDeployService
from snapline.utils.database import get_async_session


@pytest_asyncio.fixture
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def team(test_session) -> Team:
    team = Team(name="Team A")
    test_session.add(team)
    await test_session.commit()
    await test_session.refresh(team)
    return team


@pytest_asyncio.fixture
async def application(test_session, team) -> Application:
    application = Application(name="App A", team_id=team.id)
    test_session.add(application)
    await test_session.commit()
    await test_session.refresh(application)
    return application


@pytest_asyncio.fixture
async def user(test_session) -> User:
    user = User(id=uuid4(), email=f"u_{uuid4().hex[:6]}@test.com", name="Tester")
    test_session.add(user)
    await test_session.commit()
    await test_session.refresh(user)
    return user


@pytest.fixture
def make_instance(test_session, team, application):
    """Factory creating instances in the default team and application."""

    async def _make(name: str = "instance", **kw: Any) -> Instance:
        defaults: dict[str, Any] = {
            "name": name,
            "state": InstanceState.running,
            "url": f"http://{name}.local:2880",
            "team_id": team.id,
            "application_id": application.id,
            "flows": [{"id": "n1", "type": "inject"}],
            "credentials": {"n1": {"password": f"{name}-secret"}},
            "settings": {
                "settings": {"palette": {"allowInstall": True}},
                "env": [{"name": "GREETING", "value": "hello"}],
                "modules": {"node-red": "3.1.0"},
            },
        }
        defaults.update(kw)
        instance = Instance(**defaults)
        test_session.add(instance)
        await test_session.commit()
        await test_session.refresh(instance)
        return instance

    return _make


@pytest.fixture
def make_device(test_session, team, application):
    """Factory creating devices in the default team and application."""

    async def _make(name: str = "device", **kw: Any) -> Device:
        defaults: dict[str, Any] = {
            "name": name,
            "type": "PI4",
            "team_id": team.id,
            "application_id": application.id,
        }
        defaults.update(kw)
        device = Device(**defaults)
        test_session.add(device)
        await test_session.commit()
        await test_session.refresh(device)
        return device

    return _make


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def dispatcher() -> AsyncMock:
    """Device command dispatcher double."""
    mock = AsyncMock()
    mock.send_command = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def runtime() -> AsyncMock:
    """Instance runtime double."""
    mock = AsyncMock()
    mock.restart_flows = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def tracker() -> InflightStateTracker:
    return InflightStateTracker()


@pytest.fixture
def deploy_service(test_session, dispatcher, runtime, tracker) -> PipelineDeployService:
    return PipelineDeployService.for_session(test_session, dispatcher, runtime, tracker)


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(test_session, user, dispatcher, runtime) -> AsyncGenerator[AsyncClient, None]:
    """Create test API client authenticated as ``user``."""
    app = create_app()

    async def override_get_session():
        yield test_session

    app.dependency_overrides[get_async_session] = override_get_session
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_runtime] = lambda: runtime

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
