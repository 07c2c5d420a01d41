"""
Redis-backed state for the licensing flow.

Holds the two pieces of state that outlive a single scan session: the
account owner's booth selection (restored when the app starts and updated
when a booth is chosen) and the credentials issued by a successful
activation, which must be stored before the session is torn down.
"""

import asyncio
import time
from typing import Any, Final, Optional

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from apps.licensing.models.activation import ActivationResult
from core.config import settings

ALL_BOOTHS_ID: Final[str] = "all"


def _decode_hash(raw: dict[Any, Any]) -> dict[str, str]:
    # Redis returns bytes unless the client decodes responses
    return {
        key.decode() if isinstance(key, bytes) else key: (
            value.decode() if isinstance(value, bytes) else value
        )
        for key, value in raw.items()
    }


class BoothSelectionStore:
    """
    Persisted booth selection.

    Either a booth ID (single booth view) or "all" (aggregated view across
    all booths). Falls back to "all" when nothing is stored.
    """

    def __init__(
        self,
        redis_client: Redis,
        owner_id: str = "default",
        cache_key_prefix: str = settings.STORAGE.SELECTION_KEY_PREFIX,
    ):
        self.redis = redis_client
        self.owner_id = owner_id
        self.cache_key_prefix = cache_key_prefix

        self._selected_booth_id: Optional[str] = ALL_BOOTHS_ID
        self._is_hydrated = False

        self._lock = asyncio.Lock()

    @property
    def _selection_key(self) -> str:
        return f"{self.cache_key_prefix}:{self.owner_id}"

    @property
    def selected_booth_id(self) -> Optional[str]:
        return self._selected_booth_id

    @property
    def is_hydrated(self) -> bool:
        return self._is_hydrated

    def is_all_booths_mode(self) -> bool:
        return self._selected_booth_id == ALL_BOOTHS_ID

    async def hydrate(self) -> Optional[str]:
        """
        Load the stored selection.

        Returns:
            Stored booth ID, or "all" if nothing is stored or Redis is unavailable
        """
        async with self._lock:
            try:
                stored = await self.redis.get(self._selection_key)
            except RedisError as e:
                logger.warning("Failed to hydrate booth selection: %s" % e)
                stored = None

            if isinstance(stored, bytes):
                stored = stored.decode()

            self._selected_booth_id = stored or ALL_BOOTHS_ID
            self._is_hydrated = True

            logger.debug("Booth selection hydrated: %s" % self._selected_booth_id)
            return self._selected_booth_id

    async def set_selected_booth_id(self, booth_id: Optional[str]) -> None:
        """
        Update the selection and persist it.

        Args:
            booth_id: Booth ID, "all", or None to clear the stored selection
        """
        async with self._lock:
            self._selected_booth_id = booth_id

            try:
                if booth_id:
                    await self.redis.set(self._selection_key, booth_id)
                else:
                    await self.redis.delete(self._selection_key)
            except RedisError as e:
                # Selection stays in memory for this run
                logger.warning("Failed to persist booth selection: %s" % e)
                return

            logger.info("Booth selection saved: %s" % booth_id)


class CredentialStore:
    """
    Durable storage for license keys and cloud sync credentials.

    A license key is returned exactly once by the activate endpoint; losing
    it means going through license regeneration. Errors are therefore never
    swallowed here.
    """

    def __init__(
        self,
        redis_client: Redis,
        cache_key_prefix: str = settings.STORAGE.CREDENTIALS_KEY_PREFIX,
    ):
        self.redis = redis_client
        self.cache_key_prefix = cache_key_prefix

    def _credentials_key(self, booth_id: str) -> str:
        return f"{self.cache_key_prefix}:{booth_id}"

    async def save(self, result: ActivationResult, booth_id: str) -> None:
        """
        Store the credentials issued by a successful activation.

        Args:
            result: Successful activation result
            booth_id: Booth the fingerprint was bound to
        """
        if not result.success or not result.license_key:
            raise ValueError("Only successful activations carry credentials")

        mapping = {
            "license_key": result.license_key,
            "fingerprint_short": result.fingerprint_short,
            "activated_at": str(int(time.time())),
        }
        if result.cloud_sync is not None:
            mapping.update(
                {
                    "cloud_sync_enabled": "1" if result.cloud_sync.enabled else "0",
                    "cloud_sync_booth_id": result.cloud_sync.booth_id,
                    "cloud_sync_api_key": result.cloud_sync.api_key,
                    "cloud_sync_endpoint": result.cloud_sync.sync_endpoint,
                    "cloud_sync_owner_id": result.cloud_sync.owner_id,
                }
            )

        await self.redis.hset(self._credentials_key(booth_id), mapping=mapping)
        logger.info(
            "Credentials stored for booth %s (%s)"
            % (booth_id, result.fingerprint_short)
        )

    async def get(self, booth_id: str) -> Optional[dict[str, str]]:
        """
        Read back stored credentials.

        Args:
            booth_id: Booth ID

        Returns:
            Credential mapping or None if nothing is stored
        """
        raw = await self.redis.hgetall(self._credentials_key(booth_id))
        if not raw:
            return None
        return _decode_hash(raw)

    async def clear(self, booth_id: str) -> None:
        await self.redis.delete(self._credentials_key(booth_id))
        logger.info("Credentials cleared for booth %s" % booth_id)
