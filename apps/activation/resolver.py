from dataclasses import dataclass
from enum import Enum

from typing_extensions import assert_never

from apps.activation.state import Remediation
from apps.licensing.models.activation import (
    ActivationErrorCode,
    BoothHasOtherDeviceData,
    Conflict,
    FingerprintBoundElsewhere,
    PreCheckResult,
)


class Decision(str, Enum):
    """Outcome of evaluating a pre-check result"""

    SUBSCRIPTION_REQUIRED = "subscription_required"
    CONFIRM_CONFLICTS = "confirm_conflicts"
    PROCEED = "proceed"


@dataclass(frozen=True)
class ErrorGuidance:
    """User-facing text and recovery path for a failure"""

    title: str
    message: str
    remediation: Remediation


def resolve_pre_check(result: PreCheckResult) -> Decision:
    """
    Decide how to continue after a pre-check

    The subscription gate is the only hard stop. Conflicts never block,
    but they are never acted on without an explicit confirmation.

    Args:
        result: Pre-check result for the selected booth

    Returns:
        Decision for the scan session
    """
    if not result.can_proceed:
        return Decision.SUBSCRIPTION_REQUIRED
    if result.conflicts:
        return Decision.CONFIRM_CONFLICTS
    return Decision.PROCEED


def confirmation_flags(
    conflicts: list[Conflict], confirmed: bool
) -> tuple[bool, bool]:
    """
    Build the (confirm_clear_booth_data, confirm_switch_fingerprint) pair

    One confirmation covers every listed conflict, so both flags are always
    equal: true when conflicts were shown and confirmed, false when there
    were none.

    Raises:
        ValueError: If conflicts exist and the user did not confirm them
    """
    if conflicts and not confirmed:
        raise ValueError("Conflicts must be confirmed before activation")
    flag = bool(conflicts)
    return flag, flag


def describe_conflict(conflict: Conflict) -> str:
    """Human-readable description, preferring the server's message"""
    if conflict.message:
        return conflict.message

    if isinstance(conflict, FingerprintBoundElsewhere):
        return (
            'This device is currently activated as "%s". It will be moved to '
            "the selected booth." % conflict.details.previous_booth_name
        )
    if isinstance(conflict, BoothHasOtherDeviceData):
        return (
            "This booth has %d transactions from another device. Its link to "
            "that device will be cleared." % conflict.details.transaction_count
        )
    assert_never(conflict)


def subscription_required(booth_name: str) -> ErrorGuidance:
    return ErrorGuidance(
        title="Subscription Required",
        message=(
            '"%s" doesn\'t have an active subscription. '
            "Please subscribe to this booth first." % booth_name
        ),
        remediation=Remediation.RETRY_DIFFERENT_BOOTH,
    )


def guidance_for_error(
    error_code: ActivationErrorCode | None,
    message: str,
    booth_name: str,
) -> ErrorGuidance:
    """
    Map an activation error code to its recovery path

    Args:
        error_code: Error code from the activation result (None if absent)
        message: Server message, used when there is no code
        booth_name: Target booth name for display

    Returns:
        ErrorGuidance for the host UI
    """
    if error_code is None:
        return ErrorGuidance(
            "Activation Failed",
            message or "Failed to activate booth. Please try again.",
            Remediation.RETRY_DIFFERENT_BOOTH,
        )
    if error_code is ActivationErrorCode.NO_SUBSCRIPTION:
        return subscription_required(booth_name)
    if error_code is ActivationErrorCode.SESSION_EXPIRED:
        return ErrorGuidance(
            "QR Code Expired",
            "The QR code has expired. Please refresh the QR code on your "
            "booth and try again.",
            Remediation.RETRY_SAME_BOOTH,
        )
    if error_code is ActivationErrorCode.BOOTH_NOT_READY:
        return ErrorGuidance(
            "Booth Not Ready",
            "The booth is not ready for activation. Make sure it's showing "
            "the QR code screen.",
            Remediation.RETRY_SAME_BOOTH,
        )
    if error_code is ActivationErrorCode.BOOTH_NOT_FOUND:
        return ErrorGuidance(
            "Booth Not Found",
            "This booth was not found or you don't have permission to "
            "activate it.",
            Remediation.RETRY_DIFFERENT_BOOTH,
        )
    if error_code is ActivationErrorCode.FINGERPRINT_BOUND_ELSEWHERE:
        return ErrorGuidance(
            "Device Already Bound",
            "This device is bound to another booth. Please confirm the switch.",
            Remediation.RETRY_DIFFERENT_BOOTH,
        )
    if error_code is ActivationErrorCode.BOOTH_HAS_OTHER_DATA:
        return ErrorGuidance(
            "Booth Has Data",
            "This booth has data from another device. Please confirm to clear it.",
            Remediation.RETRY_DIFFERENT_BOOTH,
        )
    if error_code is ActivationErrorCode.INVALID_QR:
        return ErrorGuidance(
            "Invalid QR Code",
            "The booth rejected this QR code. Please scan the QR code "
            "displayed on your booth again.",
            Remediation.RESCAN,
        )
    assert_never(error_code)
