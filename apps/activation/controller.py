"""Scan session orchestration for booth activation."""

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from loguru import logger
from redis.exceptions import RedisError

from apps.activation.resolver import (
    Decision,
    confirmation_flags,
    describe_conflict,
    guidance_for_error,
    resolve_pre_check,
    subscription_required,
)
from apps.activation.state import (
    ActivationPhase,
    EventType,
    InvalidTransitionError,
    Remediation,
    SessionEvent,
    SessionState,
)
from apps.licensing.client import LicensingClient
from apps.licensing.exceptions import AuthenticationError, LicensingClientError
from apps.licensing.models.activation import ActivationResult
from apps.licensing.storage import BoothSelectionStore, CredentialStore
from apps.licensing.utils import is_valid_fingerprint, shorten_fingerprint
from core.config import settings

Listener = Callable[[SessionEvent], Any] | Callable[[SessionEvent], Awaitable[Any]]

_SCAN_PHASES = (ActivationPhase.IDLE, ActivationPhase.SCANNING)


@dataclass
class BoothSelectionContext:
    """
    Booth addressing handed to a scan session by the host.

    booth_id/booth_name pre-select the target booth (e.g. when the scan was
    started from a booth's settings), which skips the booth selection step.
    store is the persisted booth selection, updated after a successful
    activation.
    """

    booth_id: Optional[str] = None
    booth_name: Optional[str] = None
    store: Optional[BoothSelectionStore] = None

    @property
    def has_preselected_booth(self) -> bool:
        return bool(self.booth_id and self.booth_name)


class ScanSessionController:
    """
    Drives one activation attempt from QR decode to license issue.

    The host UI forwards camera decodes and user choices to this controller
    and renders the SessionEvents it publishes. Only one attempt runs at a
    time: the in-flight flag is taken synchronously on the first decode and
    released only by a full reset or a rescan.
    """

    def __init__(
        self,
        client: LicensingClient,
        context: Optional[BoothSelectionContext] = None,
        credential_store: Optional[CredentialStore] = None,
        listener: Optional[Listener] = None,
        max_invalid_scans: int = settings.ACTIVATION.MAX_INVALID_SCANS,
    ) -> None:
        self.client = client
        self.context = context or BoothSelectionContext()
        self.credential_store = credential_store
        self.listener = listener
        self.max_invalid_scans = max_invalid_scans

        self._phase = ActivationPhase.IDLE
        self._state = SessionState()
        self._processing = False
        # Bumped on every reset; results of older requests are discarded
        self._generation = 0
        self._disposed = False

    @property
    def phase(self) -> ActivationPhase:
        return self._phase

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    # ========== Host operations ==========

    async def start(self, camera_permitted: bool = True) -> None:
        """
        Open the camera for scanning.

        Args:
            camera_permitted: Whether the user granted camera access
        """
        self._require_phase("start scanning", ActivationPhase.IDLE)

        if not camera_permitted:
            await self._fail(
                Remediation.ABORT,
                EventType.FATAL,
                "Camera Permission Required",
                "Camera access is needed to scan the QR code on your booth.",
            )
            return

        self._phase = ActivationPhase.SCANNING
        await self._emit(EventType.SCANNING)

    async def handle_scan(self, raw: str) -> bool:
        """
        Handle a QR decode event from the camera.

        Args:
            raw: Decoded QR payload

        Returns:
            False if the decode was ignored because an attempt is in flight
        """
        # Checked and set before the first await so that a second decode in
        # the same tick cannot start a parallel attempt
        if self._disposed or self._processing or self._phase not in _SCAN_PHASES:
            logger.debug("Ignoring QR decode in phase %s" % self._phase.value)
            return False

        self._processing = True
        generation = self._generation
        self._phase = ActivationPhase.VALIDATING

        if not is_valid_fingerprint(raw):
            self._state.invalid_scans += 1
            logger.warning(
                "Invalid QR payload scanned (%d/%d)"
                % (self._state.invalid_scans, self.max_invalid_scans)
            )

            if self._state.invalid_scans >= self.max_invalid_scans:
                await self._fail(
                    Remediation.ABORT,
                    EventType.FATAL,
                    "Invalid QR Code",
                    "None of the scanned codes is a booth QR code. Open the "
                    "activation screen on your booth and start again.",
                )
            else:
                await self._fail(
                    Remediation.RESCAN,
                    EventType.INVALID_QR,
                    "Invalid QR Code",
                    "This doesn't appear to be a valid booth QR code. Please "
                    "scan the QR code displayed on your booth.",
                )
            return True

        self._state.invalid_scans = 0
        self._state.fingerprint = raw
        logger.info("Booth fingerprint scanned: %s" % shorten_fingerprint(raw))

        if self.context.has_preselected_booth:
            self._state.booth_id = self.context.booth_id
            self._state.booth_name = self.context.booth_name
            await self._run_pre_check(generation)
        else:
            await self._open_booth_selection(generation)

        return True

    async def select_booth(self, booth_id: str, booth_name: str) -> None:
        """
        Choose the booth to activate on the scanned device.

        Args:
            booth_id: Booth ID
            booth_name: Booth name for display
        """
        self._require_phase("select a booth", ActivationPhase.SELECTING_BOOTH)
        if not self._state.booths_loaded:
            raise InvalidTransitionError(
                "Cannot select a booth before the booth list is loaded"
            )

        self._state.booth_id = booth_id
        self._state.booth_name = booth_name
        logger.info("Booth selected for activation: %s" % booth_id)

        await self._run_pre_check(self._generation)

    async def confirm_conflicts(self) -> None:
        """Accept every listed conflict and activate."""
        self._require_phase(
            "confirm conflicts", ActivationPhase.CONFIRMING_CONFLICTS
        )
        logger.info("Conflicts confirmed for booth %s" % self._state.booth_id)

        await self._activate(self._generation, confirmed=True)

    async def cancel_conflicts(self) -> None:
        """Reject the conflicts and go back to a fresh booth selection."""
        self._require_phase(
            "cancel conflicts", ActivationPhase.CONFIRMING_CONFLICTS
        )
        logger.info("Conflicts rejected for booth %s" % self._state.booth_id)

        await self._open_booth_selection(self._generation)

    async def retry(self) -> None:
        """Follow the recovery path of the current error."""
        self._require_phase("retry", ActivationPhase.ERROR)

        remediation = self._state.remediation
        generation = self._generation

        if remediation is Remediation.RESCAN:
            await self._rescan()
        elif remediation is Remediation.RETRY_SAME_BOOTH and self._state.booth_id:
            await self._run_pre_check(generation)
        elif remediation in (
            Remediation.RETRY_SAME_BOOTH,
            Remediation.RETRY_DIFFERENT_BOOTH,
        ):
            await self._open_booth_selection(generation)
        else:
            raise InvalidTransitionError("This error cannot be retried")

    async def acknowledge(self) -> None:
        """Dismiss the success message or the current error."""
        self._require_phase(
            "acknowledge", ActivationPhase.SUCCESS, ActivationPhase.ERROR
        )

        if (
            self._phase is ActivationPhase.ERROR
            and self._state.remediation is Remediation.RESCAN
        ):
            await self._rescan()
            return

        self.reset()

    async def cancel(self) -> None:
        """Abandon the current attempt; in-flight results are discarded."""
        self.reset()
        await self._emit(EventType.CANCELLED)

    def reset(self) -> None:
        """Discard all session state and return to IDLE. Idempotent."""
        self._generation += 1
        self._state = SessionState()
        self._phase = ActivationPhase.IDLE
        self._processing = False
        logger.debug("Scan session reset (generation %d)" % self._generation)

    def dispose(self) -> None:
        """Tear the session down when the host screen goes away."""
        self.reset()
        self._disposed = True
        logger.info("Scan session disposed")

    # ========== Flow steps ==========

    async def _rescan(self) -> None:
        self._state.fingerprint = None
        self._state.remediation = None
        self._processing = False
        self._phase = ActivationPhase.SCANNING
        await self._emit(EventType.SCANNING)

    async def _open_booth_selection(self, generation: int) -> None:
        self._state.booth_id = None
        self._state.booth_name = None
        self._state.pre_check = None
        self._state.booths = []
        self._state.booths_loaded = False
        self._state.remediation = None
        self._phase = ActivationPhase.SELECTING_BOOTH

        try:
            subscriptions = await self.client.get_booth_subscriptions()
        except LicensingClientError as e:
            if self._is_stale(generation):
                return
            await self._handle_client_error(
                e, "Failed to load your booths.", Remediation.RETRY_DIFFERENT_BOOTH
            )
            return

        if self._is_stale(generation):
            return
        if self._phase is not ActivationPhase.SELECTING_BOOTH:
            logger.info("Discarding booth list, session moved on")
            return

        self._state.booths = subscriptions.items
        self._state.booths_loaded = True
        await self._emit(
            EventType.SELECT_BOOTH,
            title="Select Booth",
            message=(
                "Choose which booth to activate on this device. Booths need an "
                "active subscription to be activated."
            ),
            data={"booths": [booth.model_dump() for booth in subscriptions.items]},
        )

    async def _run_pre_check(self, generation: int) -> None:
        fingerprint = self._state.fingerprint
        booth_id = self._state.booth_id
        booth_name = self._state.booth_name or ""
        if not fingerprint or not booth_id:
            raise InvalidTransitionError("Pre-check needs a fingerprint and a booth")

        self._state.pre_check = None
        self._state.remediation = None
        self._phase = ActivationPhase.PRE_CHECKING
        await self._emit(EventType.PRE_CHECKING, data={"booth_id": booth_id})
        if self._is_stale(generation):
            return

        try:
            result = await self.client.pre_check(fingerprint, booth_id)
        except LicensingClientError as e:
            if self._is_stale(generation):
                return
            await self._handle_client_error(
                e, "Failed to check activation. Please try again."
            )
            return

        if self._is_stale(generation):
            return

        self._state.pre_check = result
        decision = resolve_pre_check(result)
        logger.info("Pre-check for booth %s: %s" % (booth_id, decision.value))

        if decision is Decision.SUBSCRIPTION_REQUIRED:
            guidance = subscription_required(booth_name or result.booth_name)
            await self._fail(
                guidance.remediation,
                EventType.SUBSCRIPTION_REQUIRED,
                guidance.title,
                guidance.message,
            )
            return

        if decision is Decision.CONFIRM_CONFLICTS:
            self._phase = ActivationPhase.CONFIRMING_CONFLICTS
            await self._emit(
                EventType.CONFIRM_CONFLICTS,
                title="Warning",
                message=(
                    'Activating "%s" will make the following changes. This '
                    "action cannot be undone." % (booth_name or result.booth_name)
                ),
                data={
                    "booth_id": booth_id,
                    "fingerprint_short": result.fingerprint_short,
                    "conflicts": [
                        {
                            "conflict_type": conflict.conflict_type,
                            "message": describe_conflict(conflict),
                            "details": conflict.details.model_dump(),
                        }
                        for conflict in result.conflicts
                    ],
                },
            )
            return

        await self._activate(generation, confirmed=False)

    async def _activate(self, generation: int, confirmed: bool) -> None:
        fingerprint = self._state.fingerprint
        booth_id = self._state.booth_id
        booth_name = self._state.booth_name or ""
        pre_check = self._state.pre_check
        if not fingerprint or not booth_id or pre_check is None:
            raise InvalidTransitionError("Activation needs a completed pre-check")

        try:
            clear_booth_data, switch_fingerprint = confirmation_flags(
                pre_check.conflicts, confirmed
            )
        except ValueError as e:
            raise InvalidTransitionError(str(e))

        self._phase = ActivationPhase.ACTIVATING
        await self._emit(EventType.ACTIVATING, data={"booth_id": booth_id})
        if self._is_stale(generation):
            return

        try:
            result = await self.client.activate(
                fingerprint,
                booth_id=booth_id,
                confirm_clear_booth_data=clear_booth_data,
                confirm_switch_fingerprint=switch_fingerprint,
            )
        except LicensingClientError as e:
            if self._is_stale(generation):
                return
            await self._handle_client_error(
                e, "Failed to activate booth. Please try again."
            )
            return

        if result.success:
            # The license key is issued once, keep it even if the session was cancelled
            stored = await self._store_credentials(result, booth_id)
        else:
            stored = False

        if self._is_stale(generation):
            return

        self._state.result = result

        if not result.success:
            guidance = guidance_for_error(result.error_code, result.message, booth_name)
            await self._fail(
                guidance.remediation,
                EventType.ACTIVATION_FAILED,
                guidance.title,
                guidance.message,
                data={
                    "error_code": (
                        result.error_code.value if result.error_code else None
                    ),
                    "booth_id": booth_id,
                },
            )
            return

        if not stored:
            await self._fail(
                Remediation.ABORT,
                EventType.FATAL,
                "License Not Saved",
                "The booth was activated but its license key could not be saved. "
                "Write down the key below or regenerate the license from the "
                "booth settings.",
                data={"license_key": result.license_key, "booth_id": booth_id},
            )
            return

        if self.context.store is not None:
            await self.context.store.set_selected_booth_id(booth_id)

        self._phase = ActivationPhase.SUCCESS
        await self._emit(
            EventType.ACTIVATED,
            title="Booth Activated!",
            message=result.message,
            data={
                "booth_id": booth_id,
                "booth_name": booth_name,
                "license_key": result.license_key,
                "fingerprint_short": result.fingerprint_short,
            },
        )

    async def _store_credentials(self, result: ActivationResult, booth_id: str) -> bool:
        if self.credential_store is None:
            return True

        try:
            await self.credential_store.save(result, booth_id)
        except RedisError:
            logger.exception("Failed to store credentials for booth %s" % booth_id)
            return False
        return True

    # ========== Helpers ==========

    async def _handle_client_error(
        self,
        error: LicensingClientError,
        fallback: str,
        remediation: Remediation = Remediation.RETRY_SAME_BOOTH,
    ) -> None:
        if isinstance(error, AuthenticationError):
            await self._fail(
                Remediation.ABORT,
                EventType.FATAL,
                "Session Expired",
                error.message,
            )
            return

        logger.error("Licensing request failed: %s" % error.message)
        await self._fail(
            remediation,
            EventType.TRANSPORT_ERROR,
            "Error",
            error.message or fallback,
        )

    async def _fail(
        self,
        remediation: Remediation,
        event_type: EventType,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        self._phase = ActivationPhase.ERROR
        self._state.remediation = remediation
        await self._emit(
            event_type,
            title=title,
            message=message,
            data=data,
            remediation=remediation,
        )

    async def _emit(
        self,
        event_type: EventType,
        title: str = "",
        message: str = "",
        data: Optional[dict[str, Any]] = None,
        remediation: Optional[Remediation] = None,
    ) -> None:
        event = SessionEvent(
            type=event_type,
            phase=self._phase,
            title=title,
            message=message,
            data=data or {},
            remediation=remediation,
        )
        logger.info("[%s] %s" % (self._phase.value, event_type.value))

        if self.listener is None:
            return

        outcome = self.listener(event)
        if inspect.isawaitable(outcome):
            await outcome

    def _is_stale(self, generation: int) -> bool:
        if generation != self._generation:
            logger.info("Discarding result of a cancelled scan session")
            return True
        return False

    def _require_phase(self, action: str, *phases: ActivationPhase) -> None:
        if self._disposed:
            raise InvalidTransitionError("Scan session has been disposed")
        if self._phase not in phases:
            raise InvalidTransitionError(
                "Cannot %s while %s" % (action, self._phase.value)
            )


__all__ = ["BoothSelectionContext", "ScanSessionController"]
