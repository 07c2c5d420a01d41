from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from loguru import logger
from redis.asyncio import Redis

from apps.licensing.client import LicensingClient
from apps.licensing.client_manager import (
    LicensingClientManager,
    get_licensing_client_manager,
)
from apps.utils.logger import setup_logger
from core.config import settings as config


@asynccontextmanager
async def lifespan(
    client: Optional[LicensingClient] = None,
    owner_id: str = "default",
    log_dir: str | Path | None = None,
) -> AsyncIterator[LicensingClientManager]:
    """
    Startup/shutdown scope for the host app's activation screens.

    Usage:
        async with lifespan(owner_id=account.id) as manager:
            session = manager.create_session(listener=render)
    """
    setup_logger("activation", log_dir=log_dir)

    # Initialize Redis connection
    redis_client = Redis.from_url(
        config.REDIS_URL,
        encoding="utf-8",
        decode_responses=False,  # Stores decode what they read
    )

    client_manager = await get_licensing_client_manager()
    await client_manager.initialize(redis_client, client=client, owner_id=owner_id)

    logger.info("Application startup complete")

    try:
        yield client_manager
    finally:
        await client_manager.shutdown()

        # Close Redis connection
        await redis_client.aclose()

        logger.info("Application shutdown complete")
