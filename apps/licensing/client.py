from typing import Any, Optional

import httpx
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from core.config import settings

from .exceptions import APIError, AuthenticationError, NetworkError, ValidationError
from .models.activation import (
    ActivateRequest,
    ActivationResult,
    PreCheckRequest,
    PreCheckResult,
    RegenerateLicenseResult,
)
from .models.booth import BoothSubscriptionList
from .utils import (
    deserialize_json,
    is_valid_fingerprint,
    parse_error_message,
    serialize_json,
    shorten_fingerprint,
)


class LicensingClient:
    def __init__(
        self,
        access_token: Optional[str] = None,
        base_url: str = settings.LICENSING.API_BASE_URL,
        api_prefix: str = settings.LICENSING.API_V1_STR,
        timeout: float = settings.LICENSING.DEFAULT_TIMEOUT,
        connect_timeout: float = settings.LICENSING.DEFAULT_CONNECT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.access_token = access_token or settings.LICENSING.ACCESS_TOKEN

        self.base_url = base_url.rstrip("/")
        self.api_prefix = api_prefix.rstrip("/")

        self.timeout = httpx.Timeout(timeout, connect=connect_timeout)

        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "LicensingClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def open(self) -> None:
        if self._client is not None:
            logger.warning("Client already opened")
            return

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=5),
            http2=True,
            transport=self._transport,
        )
        logger.info("LicensingClient session opened (%s)" % self.base_url)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("LicensingClient session closed")

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if self._client is None:
            raise RuntimeError("Client not opened. Use 'async with' or call open()")

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        content = serialize_json(data) if data is not None else None

        # No automatic retries: every retry in the activation flow is user-initiated
        try:
            response = await self._client.request(
                method=method,
                url=f"{self.api_prefix}{endpoint}",
                content=content,
                headers=headers,
                params=params,
            )
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timed out: {e}")
        except httpx.RequestError as e:
            raise NetworkError(f"Network error: {e}")

        if response.status_code == 401:
            raise AuthenticationError(
                "Session expired. Please sign in again.",
                error_code=str(response.status_code),
            )

        if response.is_error:
            raise APIError(
                message=parse_error_message(response),
                status_code=response.status_code,
                payload=self._error_payload(response),
            )

        try:
            result = deserialize_json(response.content)
        except ValueError as e:
            raise APIError(
                message=f"Invalid JSON response: {e}",
                status_code=response.status_code,
            )

        if not isinstance(result, dict):
            raise APIError(
                message="Unexpected response format",
                status_code=response.status_code,
            )

        return result

    @staticmethod
    def _error_payload(response: httpx.Response) -> dict[str, Any]:
        try:
            body = deserialize_json(response.content)
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    # ========== Licensing APIs ==========

    async def pre_check(self, fingerprint: str, booth_id: str) -> PreCheckResult:
        """
        Ask what would happen if the fingerprint were bound to the booth

        Read-only on the server. Business problems (missing subscription,
        conflicts) are reported in the result, never raised.

        Args:
            fingerprint: 64-character hex fingerprint scanned from the booth
            booth_id: Target booth ID owned by the caller

        Returns:
            PreCheckResult object
        """
        if not is_valid_fingerprint(fingerprint):
            raise ValidationError("Invalid booth fingerprint", error_code="INVALID_QR")

        request = PreCheckRequest(fingerprint=fingerprint, booth_id=booth_id)

        logger.info(
            "Pre-checking activation of %s on booth %s"
            % (shorten_fingerprint(fingerprint), booth_id)
        )
        result = await self._request(
            "POST",
            "/licensing/activate-booth/pre-check",
            data=request.model_dump(),
        )

        try:
            return PreCheckResult.model_validate(result)
        except PydanticValidationError as e:
            raise APIError(f"Invalid pre-check response format: {e}")

    async def activate(
        self,
        fingerprint: str,
        booth_id: str | None = None,
        confirm_clear_booth_data: bool | None = None,
        confirm_switch_fingerprint: bool | None = None,
    ) -> ActivationResult:
        """
        Bind the fingerprint to a booth and issue a license key

        Args:
            fingerprint: 64-character hex fingerprint scanned from the booth
            booth_id: Target booth ID (omit for legacy auto-determine mode)
            confirm_clear_booth_data: User confirmed clearing the booth's data
                from another device
            confirm_switch_fingerprint: User confirmed moving the fingerprint
                away from another booth

        Returns:
            ActivationResult object; business failures carry an error_code
        """
        try:
            request = ActivateRequest(
                fingerprint=fingerprint,
                booth_id=booth_id,
                confirm_clear_booth_data=confirm_clear_booth_data,
                confirm_switch_fingerprint=confirm_switch_fingerprint,
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid activation request: {e}")

        logger.info(
            "Activating %s on booth %s (confirmed: %s)"
            % (
                shorten_fingerprint(fingerprint),
                booth_id or "<auto>",
                bool(confirm_clear_booth_data),
            )
        )

        try:
            result = await self._request(
                "POST",
                "/licensing/activate-booth",
                data=request.model_dump(exclude_none=True),
            )
        except APIError as e:
            # Business failures may arrive with a 4xx status and a result body
            if not e.payload.get("error_code"):
                raise
            result = e.payload

        try:
            activation = ActivationResult.model_validate(result)
        except PydanticValidationError as e:
            raise APIError(f"Invalid activation response format: {e}")

        if activation.success:
            logger.info(
                "Booth %s activated (%s)"
                % (booth_id or "<auto>", activation.fingerprint_short)
            )
        else:
            logger.warning(
                "Activation rejected: %s - %s"
                % (activation.error_code, activation.message)
            )

        return activation

    async def regenerate_license(self) -> RegenerateLicenseResult:
        """
        Regenerate a lost license key

        The previous license key is invalidated by the server.

        Returns:
            RegenerateLicenseResult object
        """
        result = await self._request("POST", "/licensing/regenerate")

        try:
            regenerated = RegenerateLicenseResult.model_validate(result)
        except PydanticValidationError as e:
            raise APIError(f"Invalid regenerate response format: {e}")

        logger.info("License key regenerated (%s)" % regenerated.key_type)
        return regenerated

    # ========== Booth APIs ==========

    async def get_booth_subscriptions(self) -> BoothSubscriptionList:
        """
        Get the account's booths with their subscription status

        Returns:
            BoothSubscriptionList object
        """
        result = await self._request("GET", "/payments/booths/subscriptions")

        try:
            return BoothSubscriptionList.model_validate(result)
        except PydanticValidationError as e:
            raise APIError(f"Invalid booth subscriptions response format: {e}")

    # ========== Utility Methods ==========

    @property
    def is_open(self) -> bool:
        return self._client is not None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)
