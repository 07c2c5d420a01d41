"""Shared scan session state definitions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from apps.licensing.models.activation import ActivationResult, PreCheckResult
from apps.licensing.models.booth import BoothSubscription


class ActivationPhase(str, Enum):
    """
    Scan session phases in chronological order:

    1. IDLE                 - Session not started or reset
    2. SCANNING             - Camera active, waiting for a QR decode
    3. VALIDATING           - Checking the scanned payload format
    4. SELECTING_BOOTH      - Waiting for the user to pick a target booth
    5. PRE_CHECKING         - Asking the backend what activation would do
    6. CONFIRMING_CONFLICTS - Waiting for the user to accept all conflicts
    7. ACTIVATING           - Binding the fingerprint to the booth
    8. SUCCESS              - License issued and stored
    9. ERROR                - Waiting for the user to retry or leave
    """

    IDLE = "idle"
    SCANNING = "scanning"
    VALIDATING = "validating"
    SELECTING_BOOTH = "selecting_booth"
    PRE_CHECKING = "pre_checking"
    CONFIRMING_CONFLICTS = "confirming_conflicts"
    ACTIVATING = "activating"
    SUCCESS = "success"
    ERROR = "error"


class Remediation(str, Enum):
    """What the user can do about an error"""

    RESCAN = "rescan"
    RETRY_SAME_BOOTH = "retry_same_booth"
    RETRY_DIFFERENT_BOOTH = "retry_different_booth"
    ABORT = "abort"


class EventType(str, Enum):
    SCANNING = "scanning"
    INVALID_QR = "invalid_qr"
    SELECT_BOOTH = "select_booth"
    PRE_CHECKING = "pre_checking"
    SUBSCRIPTION_REQUIRED = "subscription_required"
    CONFIRM_CONFLICTS = "confirm_conflicts"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    ACTIVATION_FAILED = "activation_failed"
    TRANSPORT_ERROR = "transport_error"
    FATAL = "fatal"
    CANCELLED = "cancelled"


@dataclass
class SessionEvent:
    """Event payload delivered to the host UI."""

    type: EventType
    phase: ActivationPhase
    title: str = ""
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    remediation: Optional[Remediation] = None


@dataclass
class SessionState:
    """Transient state of one activation attempt, discarded on reset."""

    fingerprint: Optional[str] = None
    booth_id: Optional[str] = None
    booth_name: Optional[str] = None
    booths: list[BoothSubscription] = field(default_factory=list)
    booths_loaded: bool = False
    pre_check: Optional[PreCheckResult] = None
    result: Optional[ActivationResult] = None
    remediation: Optional[Remediation] = None
    invalid_scans: int = 0


class InvalidTransitionError(RuntimeError):
    """Raised when an operation is not allowed in the current phase."""


__all__ = [
    "ActivationPhase",
    "EventType",
    "InvalidTransitionError",
    "Remediation",
    "SessionEvent",
    "SessionState",
]
