from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from apps.activation.state import SessionEvent
from apps.licensing.client import LicensingClient
from tests.factories import FakeBackend


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def client(backend: FakeBackend):
    async with LicensingClient(
        access_token="test-token",
        base_url="https://api.test",
        api_prefix="/api/v1",
        transport=httpx.MockTransport(backend.handler),
    ) as licensing_client:
        yield licensing_client


@pytest.fixture
def redis_client() -> AsyncMock:
    redis = AsyncMock()
    redis.get.return_value = None
    redis.hgetall.return_value = {}
    return redis


@pytest.fixture
def events() -> list[SessionEvent]:
    return []
