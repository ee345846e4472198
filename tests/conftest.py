"""Pytest fixtures for testing."""
import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["MCP_AUTH_TOKEN"] = "static-test-token"
os.environ["MCP_AUTH_TOKENS"] = "static-secondary-token"
os.environ["INTERNAL_SIGNING_SECRET"] = "test-internal-signing-secret"
os.environ["AUTH_SECRET"] = "test-auth-secret"
os.environ["WORKSPACE_ENCRYPTION_KEY"] = "test-workspace-encryption-key-0123456789abcdef"
os.environ["RATE_LIMIT_PER_MINUTE"] = "5"
os.environ.pop("SESSION_SERVICE_URL", None)

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import httpx
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from gateway.main import app
from gateway.common import clock
from gateway.common.config import settings
from gateway.common.database import Base, get_db
from gateway.common.rate_limit import limiter
from gateway.domain.identity import BackendCredentials
from gateway.domain.signing import resolve_internal_signing_secret
from gateway.services.jira_client import JiraClient
from gateway.session.dispatch import LocalDispatcher
from gateway.session.registry import PartitionRegistry


STATIC_TOKEN = "static-test-token"
PASSWORD = "correct horse battery"

JIRA_HEADERS = {
    "X-Jira-Base-Url": "https://client.atlassian.net",
    "X-Jira-Username": "client@example.com",
    "X-Jira-Api-Token": "client-api-token",
}

INITIALIZE_REQUEST = {
    "jsonrpc": "2.0",
    "id": 1,
    "method": "initialize",
    "params": {
        "protocolVersion": "2025-03-26",
        "capabilities": {},
        "clientInfo": {"name": "pytest", "version": "1.0"},
    },
}

INITIALIZED_NOTIFICATION = {"jsonrpc": "2.0", "method": "notifications/initialized"}


@dataclass
class FakeJira:
    """In-memory Jira answering through httpx.MockTransport."""

    credentials: list[BackendCredentials] = field(default_factory=list)
    requests: list[httpx.Request] = field(default_factory=list)
    fail_with: int | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"errorMessages": ["Jira is unhappy"]})

        path = request.url.path
        if path == "/rest/api/3/project":
            return httpx.Response(200, json=[{"id": "10000", "key": "PROJ", "name": "Project"}])
        if path == "/rest/api/3/search/jql":
            body = json.loads(request.content)
            return httpx.Response(200, json={"issues": [{"key": "PROJ-1"}], "jql": body["jql"]})
        if path.endswith("/comment"):
            return httpx.Response(201, json={"id": "20000"})
        if path.endswith("/transitions"):
            if request.method == "POST":
                return httpx.Response(204)
            return httpx.Response(200, json={"transitions": [{"id": "31", "name": "Done"}]})
        if path.startswith("/rest/api/3/issue/"):
            key = path.rsplit("/", 1)[-1]
            if key == "MISSING-1":
                return httpx.Response(404, json={"errorMessages": ["Issue does not exist"]})
            return httpx.Response(200, json={"key": key, "fields": {"summary": "Test issue"}})
        return httpx.Response(404, json={"errorMessages": ["Not found"]})

    def client_factory(self, credentials: BackendCredentials) -> JiraClient:
        self.credentials.append(credentials)
        return JiraClient.from_credentials(credentials, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_jira() -> FakeJira:
    return FakeJira()


@pytest.fixture
async def registry(fake_jira: FakeJira) -> AsyncGenerator[PartitionRegistry, None]:
    """In-process actors using the fake Jira."""
    registry = PartitionRegistry(
        lambda: resolve_internal_signing_secret(settings),
        client_factory=fake_jira.client_factory,
    )
    yield registry
    await registry.aclose()


@pytest.fixture(scope="function")
async def test_db(tmp_path, registry: PartitionRegistry):
    """Create a fresh SQLite database and wire the app to it."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with async_session_maker() as session:
            yield session

    # Override dependency
    app.dependency_overrides[get_db] = override_get_db

    # Lifespan does not run under ASGITransport
    app.state.registry = registry
    app.state.dispatcher = LocalDispatcher(registry)

    # Disable rate limiting in tests
    limiter.enabled = False

    yield async_session_maker

    # Cleanup
    app.dependency_overrides.clear()
    await registry.aclose()
    await engine.dispose()


@pytest.fixture
async def client(test_db) -> AsyncGenerator[AsyncClient, None]:
    """Create test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client


@pytest.fixture
async def session(test_db) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with test_db() as session:
        yield session


@pytest.fixture
def rate_limit_test():
    """Enable the limiter with clean storage for one test."""
    original_enabled = limiter.enabled
    limiter.enabled = True
    limiter.reset()

    yield limiter

    limiter.enabled = original_enabled
    limiter.reset()


@pytest.fixture
def frozen_clock(monkeypatch):
    """Controllable clock; ``advance`` moves both time sources."""

    class FrozenClock:
        def __init__(self):
            self.now = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

        def utcnow(self) -> datetime:
            return self.now

        def now_ms(self) -> int:
            return int(self.now.timestamp() * 1000)

        def advance(self, **kwargs) -> None:
            self.now = self.now + timedelta(**kwargs)

    frozen = FrozenClock()
    monkeypatch.setattr(clock, "utcnow", frozen.utcnow)
    monkeypatch.setattr(clock, "now_ms", frozen.now_ms)
    return frozen


@pytest.fixture
def register_user(client: AsyncClient):
    """Factory registering a user and logging in; returns (user_id, token)."""

    async def _register(email: str = "alice@example.com", **login_options) -> tuple[str, str]:
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": PASSWORD},
        )
        assert response.status_code == 201
        user_id = response.json()["data"]["user_id"]

        response = await client.post(
            "/api/v1/auth/login",
            json={"email": email, "password": PASSWORD, **login_options},
        )
        assert response.status_code == 200
        return user_id, response.json()["data"]["token"]

    return _register


@pytest.fixture
def create_workspace(client: AsyncClient):
    """Factory storing a workspace for the given token; returns its id."""

    async def _create(token: str, name: str = "Acme", **overrides) -> str:
        payload = {
            "name": name,
            "base_url": "https://acme.atlassian.net",
            "username": "bot@acme.com",
            "api_token": "vault-api-token",
            **overrides,
        }
        response = await client.post(
            "/api/v1/workspaces",
            headers={"Authorization": f"Bearer {token}"},
            json=payload,
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]["id"]

    return _create


@pytest.fixture
def issue_token(client: AsyncClient):
    """Factory issuing an additional token; returns the response data."""

    async def _issue(token: str, **payload) -> dict:
        response = await client.post(
            "/api/v1/tokens",
            headers={"Authorization": f"Bearer {token}"},
            json=payload,
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _issue
