"""
LicensingClient Manager for application-level lifecycle management.

Provides a singleton LicensingClient instance with proper startup/shutdown
handling, the Redis-backed stores, and a factory for scan sessions.
"""

import asyncio
from typing import Optional

from loguru import logger
from redis.asyncio import Redis

from apps.activation.controller import (
    BoothSelectionContext,
    Listener,
    ScanSessionController,
)
from apps.licensing.client import LicensingClient
from apps.licensing.storage import BoothSelectionStore, CredentialStore
from core.config import settings


class LicensingClientManager:
    """
    Application-level LicensingClient manager with singleton pattern.

    Features:
    - Single long-lived LicensingClient instance per application
    - Booth selection hydrated once at startup
    - Scan sessions wired to the shared client and stores
    """

    def __init__(self):
        self._client: Optional[LicensingClient] = None
        self._selection_store: Optional[BoothSelectionStore] = None
        self._credential_store: Optional[CredentialStore] = None
        self._redis: Optional[Redis] = None
        self._lock = asyncio.Lock()
        self._initialized = False

    async def initialize(
        self,
        redis_client: Redis,
        client: Optional[LicensingClient] = None,
        owner_id: str = "default",
    ) -> None:
        """
        Initialize the client manager.

        Args:
            redis_client: Redis client for the booth selection and credentials
            client: Pre-built LicensingClient (default: built from settings)
            owner_id: Account the booth selection belongs to

        Should be called during application startup.
        """
        async with self._lock:
            if self._initialized:
                logger.warning("LicensingClientManager already initialized")
                return

            self._redis = redis_client

            self._selection_store = BoothSelectionStore(
                redis_client=redis_client,
                owner_id=owner_id,
            )
            await self._selection_store.hydrate()

            self._credential_store = CredentialStore(redis_client=redis_client)

            self._client = client or LicensingClient(
                access_token=settings.LICENSING.ACCESS_TOKEN,
            )
            await self._client.open()

            self._initialized = True
            logger.info("LicensingClientManager initialized successfully")

    async def shutdown(self) -> None:
        """
        Shutdown the client manager.

        Should be called during application shutdown.
        """
        async with self._lock:
            if not self._initialized:
                logger.warning(
                    "LicensingClientManager not initialized, nothing to shutdown"
                )
                return

            if self._client:
                await self._client.close()
                self._client = None

            self._selection_store = None
            self._credential_store = None
            self._redis = None
            self._initialized = False

            logger.info("LicensingClientManager shutdown complete")

    async def get_client(self) -> LicensingClient:
        """
        Get the shared LicensingClient instance.

        Raises:
            RuntimeError: If manager not initialized
        """
        if not self.is_initialized or not self._client:
            raise RuntimeError(
                "LicensingClientManager not initialized. "
                "Call initialize() during application startup."
            )
        return self._client

    def create_session(
        self,
        booth_id: Optional[str] = None,
        booth_name: Optional[str] = None,
        listener: Optional[Listener] = None,
    ) -> ScanSessionController:
        """
        Create a scan session for the activation screen.

        Args:
            booth_id: Pre-selected booth ID (skips booth selection)
            booth_name: Pre-selected booth name
            listener: Callback receiving SessionEvents (sync or async)

        Returns:
            ScanSessionController in IDLE phase
        """
        if not self.is_initialized or not self._client:
            raise RuntimeError("LicensingClientManager not initialized")

        context = BoothSelectionContext(
            booth_id=booth_id,
            booth_name=booth_name,
            store=self._selection_store,
        )
        return ScanSessionController(
            client=self._client,
            context=context,
            credential_store=self._credential_store,
            listener=listener,
        )

    @property
    def selection_store(self) -> Optional[BoothSelectionStore]:
        return self._selection_store

    @property
    def credential_store(self) -> Optional[CredentialStore]:
        return self._credential_store

    @property
    def is_initialized(self) -> bool:
        """Check if manager is initialized."""
        return self._initialized


# Global singleton instance
_client_manager = LicensingClientManager()


async def get_licensing_client_manager() -> LicensingClientManager:
    """
    Get the global LicensingClientManager instance.

    Returns:
        LicensingClientManager singleton instance
    """
    return _client_manager
