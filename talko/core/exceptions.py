from datetime import datetime
from typing import Any


class TalkoError(Exception):
    """Base exception for the Talko API.

    Carries the HTTP status it maps to; the registered exception handler
    renders ``to_payload()`` as the JSON envelope.
    """

    status_code = 500
    error = "Internal server error"
    headers: dict[str, str] | None = None

    def __init__(self, message: str | None = None):
        self.message = message or self.error
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        return {"success": False, "error": self.error, "message": self.message}


class ConfigurationError(TalkoError):
    """Raised when required settings are missing at startup."""

    error = "Configuration error"


class ValidationError(TalkoError):
    """Raised when required request input is missing or malformed."""

    status_code = 400
    error = "Validation error"


class InvalidFeatureError(ValidationError):
    """Raised for a feature name outside the FeatureType enum."""

    error = "Invalid feature type"

    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(f"Invalid feature type: {feature}")


class UnsupportedFileTypeError(ValidationError):
    error = "Unsupported file type"


class AuthenticationError(TalkoError):
    status_code = 401
    error = "Authentication required"


class AccessDeniedError(TalkoError):
    status_code = 403
    error = "Access denied"


class LoginRequiredError(AccessDeniedError):
    """Raised when a feature is unavailable to anonymous users."""

    error = "Authentication required"

    def __init__(self, feature: str):
        self.feature = feature
        super().__init__("Please log in to use this feature")

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["requiresAuth"] = True
        payload["feature"] = self.feature
        return payload


class FeatureLimitError(AccessDeniedError):
    """Raised when an anonymous identity has used up a feature's quota."""

    error = "Usage limit reached"

    def __init__(self, feature: str, limit: int, usage: int, retry_after: datetime):
        self.feature = feature
        self.limit = limit
        self.usage = usage
        self.retry_after = retry_after
        super().__init__("Please log in to continue using this feature")

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload.update(
            requiresAuth=True,
            feature=self.feature,
            limit=self.limit,
            usage=self.usage,
            retryAfter=self.retry_after.isoformat(),
        )
        return payload


class NotFoundError(TalkoError):
    status_code = 404
    error = "Not found"


class RangeNotSatisfiableError(TalkoError):
    """Raised when a Range header starts at or beyond the end of the file."""

    status_code = 416
    error = "Requested range not satisfiable"

    def __init__(self, size: int):
        self.size = size
        self.headers = {"Content-Range": f"bytes */{size}"}
        super().__init__(f"Requested range not satisfiable for {size} byte resource")


class PayloadTooLargeError(TalkoError):
    status_code = 413
    error = "File too large"


class NotImplementedFormatError(TalkoError):
    status_code = 501
    error = "Format not implemented"


class ExternalServiceError(TalkoError):
    """Raised when the AI vendor call fails."""

    error = "External service error"
