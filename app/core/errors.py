"""Error taxonomy shared by the metadata and notification services.

Each error carries the HTTP status it surfaces as and a short,
user-facing message.  Routes translate these into ``HTTPException``;
nothing here knows about FastAPI.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for classified service failures."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInputError(ServiceError):
    status_code = 400
    default_message = "Invalid input"


class NotFoundError(ServiceError):
    status_code = 404
    default_message = "Not found"


class ForbiddenError(ServiceError):
    status_code = 403
    default_message = "Access forbidden"


class UpstreamTimeoutError(ServiceError):
    """The upstream request did not finish in time.  Callers may retry."""

    status_code = 408
    default_message = "Request timeout"


class PayloadTooLargeError(ServiceError):
    status_code = 413
    default_message = "Page too large"


class InvalidPayloadError(ServiceError):
    """The push provider rejected the notification message."""

    status_code = 400
    default_message = "Invalid notification payload"


class InvalidTokensError(ServiceError):
    """The push provider rejected the device tokens."""

    status_code = 400
    default_message = "Invalid device tokens"


class ConfigError(ServiceError):
    """A backend the service depends on is not configured."""

    status_code = 500
    default_message = "Server configuration error"


class UnknownError(ServiceError):
    status_code = 500
    default_message = "Unexpected failure"
