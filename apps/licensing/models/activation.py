from enum import Enum
from typing import Annotated, Literal

from pydantic import Field, model_validator

from apps.licensing.utils import FINGERPRINT_REGEX

from .common import BaseModel, BaseResponse


class ActivationErrorCode(str, Enum):
    """Business error codes returned by the activate endpoint"""

    INVALID_QR = "INVALID_QR"
    BOOTH_NOT_READY = "BOOTH_NOT_READY"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    NO_SUBSCRIPTION = "NO_SUBSCRIPTION"
    FINGERPRINT_BOUND_ELSEWHERE = "FINGERPRINT_BOUND_ELSEWHERE"
    BOOTH_HAS_OTHER_DATA = "BOOTH_HAS_OTHER_DATA"
    BOOTH_NOT_FOUND = "BOOTH_NOT_FOUND"


class ConflictType(str, Enum):
    FINGERPRINT_BOUND_ELSEWHERE = "fingerprint_bound_elsewhere"
    BOOTH_HAS_OTHER_DEVICE_DATA = "booth_has_other_device_data"


class FingerprintBoundElsewhereDetails(BaseModel):
    """The scanned device is currently bound to another booth"""

    previous_booth_id: str
    previous_booth_name: str


class BoothHasOtherDeviceDataDetails(BaseModel):
    """The target booth holds history from another physical device"""

    transaction_count: int = Field(..., ge=0)
    previous_hardware_id: str


class FingerprintBoundElsewhere(BaseModel):
    """Proceeding rebinds the fingerprint and detaches it from the old booth"""

    conflict_type: Literal["fingerprint_bound_elsewhere"]
    message: str = ""
    details: FingerprintBoundElsewhereDetails


class BoothHasOtherDeviceData(BaseModel):
    """Proceeding clears the booth's association with the previous device"""

    conflict_type: Literal["booth_has_other_device_data"]
    message: str = ""
    details: BoothHasOtherDeviceDataDetails


Conflict = Annotated[
    FingerprintBoundElsewhere | BoothHasOtherDeviceData,
    Field(discriminator="conflict_type"),
]


class PreCheckRequest(BaseModel):
    """Pre-check request model"""

    fingerprint: str = Field(..., pattern=FINGERPRINT_REGEX)
    booth_id: str = Field(..., min_length=1)


class PreCheckResult(BaseResponse):
    """Read-only report of what activating this booth would do"""

    booth_id: str
    booth_name: str
    fingerprint_short: str = ""
    has_valid_subscription: bool
    conflicts: list[Conflict] = Field(default_factory=list)
    can_proceed: bool


class ActivateRequest(BaseModel):
    """
    Activate request model

    Flexible mode sends booth_id; legacy mode omits it and lets the
    server pick the booth from previous bindings.
    """

    fingerprint: str = Field(..., pattern=FINGERPRINT_REGEX)
    booth_id: str | None = Field(None, min_length=1)
    confirm_clear_booth_data: bool | None = None
    confirm_switch_fingerprint: bool | None = None

    @model_validator(mode="after")
    def _confirmations_set_together(self) -> "ActivateRequest":
        # Both omitted (legacy) or both sent with the same value
        if self.confirm_clear_booth_data != self.confirm_switch_fingerprint:
            raise ValueError("Conflict confirmations must be given together")
        return self


class CloudSyncConfig(BaseModel):
    """Credentials the device uses to reach the backend"""

    enabled: bool
    booth_id: str
    api_key: str
    sync_endpoint: str
    owner_id: str


class ActivationResult(BaseResponse):
    """Activation response model"""

    success: bool
    fingerprint_short: str = ""
    license_key: str | None = None
    cloud_sync: CloudSyncConfig | None = None
    error_code: ActivationErrorCode | None = None

    @model_validator(mode="after")
    def _success_carries_license(self) -> "ActivationResult":
        if self.success and not self.license_key:
            raise ValueError("Successful activation must include a license key")
        return self


class RegenerateLicenseResult(BaseResponse):
    """Regenerate license response model"""

    success: bool
    new_license_key: str
    old_license_key: str | None = None
    key_type: str | None = None
    expires_days: int | None = None
    license_json: str | None = None
