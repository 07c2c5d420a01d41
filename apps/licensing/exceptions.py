from typing import Any


class LicensingClientError(Exception):
    """Base exception for all LicensingClient errors"""

    def __init__(self, message: str, error_code: str | None = None):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class AuthenticationError(LicensingClientError):
    """Raised when the bearer token is missing, invalid or expired"""

    pass


class APIError(LicensingClientError):
    """Raised when the API returns an error response"""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        payload: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code)
        self.status_code = status_code
        self.payload = payload or {}


class NetworkError(LicensingClientError):
    """Raised when network-related errors occur (including timeouts)"""

    pass


class ValidationError(LicensingClientError):
    """Raised when request data is rejected before it is sent"""

    pass
