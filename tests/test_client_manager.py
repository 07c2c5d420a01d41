import httpx
import pytest

from apps.licensing.client import LicensingClient
from apps.licensing.client_manager import (
    LicensingClientManager,
    get_licensing_client_manager,
)
from tests.factories import BOOTHS_PATH, booths_payload


@pytest.fixture
def unopened_client(backend) -> LicensingClient:
    return LicensingClient(
        access_token="test-token",
        base_url="https://api.test",
        api_prefix="/api/v1",
        transport=httpx.MockTransport(backend.handler),
    )


@pytest.mark.asyncio
async def test_initialize_hydrates_selection_and_opens_client(
    redis_client, unopened_client, backend
):
    redis_client.get.return_value = b"B2"
    backend.add("GET", BOOTHS_PATH, json=booths_payload())
    manager = LicensingClientManager()

    await manager.initialize(redis_client, client=unopened_client, owner_id="owner-1")

    assert manager.is_initialized is True
    assert manager.selection_store.selected_booth_id == "B2"
    redis_client.get.assert_awaited_once_with("booths:selected:owner-1")

    client = await manager.get_client()
    assert client is unopened_client
    assert client.is_open is True
    assert (await client.get_booth_subscriptions()).total == 2

    await manager.shutdown()


@pytest.mark.asyncio
async def test_initialize_twice_is_noop(redis_client, unopened_client):
    manager = LicensingClientManager()

    await manager.initialize(redis_client, client=unopened_client)
    await manager.initialize(redis_client, client=unopened_client)

    redis_client.get.assert_awaited_once()
    await manager.shutdown()


@pytest.mark.asyncio
async def test_create_session_uses_shared_stores(redis_client, unopened_client):
    manager = LicensingClientManager()
    await manager.initialize(redis_client, client=unopened_client)

    session = manager.create_session(booth_id="B1", booth_name="Lobby Booth")

    assert session.client is unopened_client
    assert session.credential_store is manager.credential_store
    assert session.context.store is manager.selection_store
    assert session.context.has_preselected_booth is True

    await manager.shutdown()


@pytest.mark.asyncio
async def test_shutdown_closes_client(redis_client, unopened_client):
    manager = LicensingClientManager()
    await manager.initialize(redis_client, client=unopened_client)

    await manager.shutdown()

    assert manager.is_initialized is False
    assert unopened_client.is_open is False
    with pytest.raises(RuntimeError):
        await manager.get_client()


@pytest.mark.asyncio
async def test_uninitialized_manager_refuses_sessions():
    manager = LicensingClientManager()

    with pytest.raises(RuntimeError):
        manager.create_session()
    with pytest.raises(RuntimeError):
        await manager.get_client()


@pytest.mark.asyncio
async def test_global_manager_is_singleton():
    assert await get_licensing_client_manager() is await get_licensing_client_manager()


@pytest.mark.asyncio
async def test_lifespan_wires_redis_and_shuts_down(
    monkeypatch, tmp_path, redis_client, unopened_client
):
    from loguru import logger

    from core import main

    monkeypatch.setattr(main.Redis, "from_url", lambda *args, **kwargs: redis_client)

    async with main.lifespan(client=unopened_client, log_dir=tmp_path) as manager:
        assert manager is await get_licensing_client_manager()
        assert manager.is_initialized is True
        assert unopened_client.is_open is True

    logger.remove()
    assert manager.is_initialized is False
    redis_client.aclose.assert_awaited_once()
    assert (tmp_path / "activation_info.log").exists()
