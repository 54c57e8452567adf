"""Shared test fixtures for the Oversight test suite.

Redis is replaced by FakeAsyncRedis, an in-memory double covering the
handful of commands JobStore uses. No test talks to a real Redis, git or
scanner binary.
"""

from collections.abc import AsyncGenerator
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient

from oversight.core.config import Settings, get_settings
from oversight.scans.store import JobStore


class FakeAsyncRedis:
    """In-memory stand-in for redis.asyncio.Redis (decode_responses=True)."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.lists: dict[str, list[str]] = {}
        self.ttls: dict[str, Optional[int]] = {}
        self.down = False
        self.set_calls = 0
        self.closed = False

    def _check(self) -> None:
        if self.down:
            raise ConnectionError("Connection refused")

    async def ping(self) -> bool:
        self._check()
        return True

    async def get(self, key: str) -> Optional[str]:
        self._check()
        return self.values.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self._check()
        self.set_calls += 1
        self.values[key] = value
        self.ttls[key] = ex
        return True

    async def lpush(self, key: str, *values: str) -> int:
        self._check()
        items = self.lists.setdefault(key, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    async def ltrim(self, key: str, start: int, end: int) -> bool:
        self._check()
        items = self.lists.get(key, [])
        self.lists[key] = items[start:end + 1]
        return True

    async def lrange(self, key: str, start: int, end: int) -> list[str]:
        self._check()
        items = self.lists.get(key, [])
        return items[start:end + 1]

    async def aclose(self) -> None:
        self.closed = True


def _override_settings() -> Settings:
    return Settings(
        github_owner="acme",
        github_token="ghp_test_token_value",
        slack_webhook_url="",
        sentry_dsn="",
        debug=False,
    )


@pytest.fixture
def settings() -> Settings:
    return _override_settings()


@pytest.fixture
def fake_redis() -> FakeAsyncRedis:
    return FakeAsyncRedis()


@pytest.fixture
def job_store(fake_redis: FakeAsyncRedis) -> JobStore:
    return JobStore(fake_redis, ttl_seconds=86400, timeout=1.0)


@pytest.fixture
def app(job_store: JobStore):
    """FastAPI app with settings and the job store overridden."""
    from oversight.main import create_app
    from oversight.scans.router import get_job_store

    test_app = create_app()
    test_app.dependency_overrides[get_settings] = _override_settings
    test_app.dependency_overrides[get_job_store] = lambda: job_store
    return test_app


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

