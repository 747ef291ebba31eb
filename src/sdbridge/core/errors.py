"""Typed errors raised by the generation client.

Every error carries a human-readable ``message`` and, where one exists, a
``remedy`` the presentation layer can show next to it.

Hierarchy::

    SDBridgeError
    ├── ValidationError        caller parameters out of range, never retried
    ├── TransportError         no response from the service, retried
    ├── ServiceError           5xx / 429 / 408, retried
    ├── RejectedRequestError   other 4xx, never retried
    └── DecodeError            2xx with an unusable body, never retried

Translation failures are deliberately absent: they are absorbed by the
translator and only lower the optimisation confidence.
"""

from __future__ import annotations

REMEDY_UNREACHABLE = (
    "Verify the external service is reachable and accepting API requests "
    "(start the WebUI with --api and check host and port)."
)
REMEDY_RETRY_LATER = "The service is busy or failing; wait a moment and try again."
REMEDY_UNAUTHORIZED = "Check the configured API key."
REMEDY_NOT_FOUND = "Check the endpoint path and that the requested model or resource exists."
REMEDY_BAD_REQUEST = "Check the generation parameters sent to the service."
REMEDY_ADJUST_PARAMETERS = "Adjust the highlighted parameter and submit again."
REMEDY_UNEXPECTED_RESPONSE = (
    "Check that the configured host serves the Stable Diffusion WebUI API "
    "and look at the service logs."
)


class SDBridgeError(Exception):
    """Base class for all sdbridge errors.

    Args:
        message: Human-readable description
        remedy: Suggested user action, if any
        status_code: HTTP status returned by the service, if any
    """

    def __init__(
        self,
        message: str,
        *,
        remedy: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.remedy = remedy
        self.status_code = status_code

    def to_dict(self) -> dict:
        """Serialise the error for JSON responses."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "remedy": self.remedy,
            "status_code": self.status_code,
        }


class ValidationError(SDBridgeError):
    """User-friendly validation error.

    Raised before anything is sent to the service. The message is intended
    to be displayed directly to the user.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, remedy=REMEDY_ADJUST_PARAMETERS)


class TransportError(SDBridgeError):
    """No response was received (connection refused, DNS failure, timeout)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, remedy=REMEDY_UNREACHABLE)


class ServiceError(SDBridgeError):
    """The service answered with a retryable status (5xx, 429 or 408)."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message, remedy=REMEDY_RETRY_LATER, status_code=status_code)


class RejectedRequestError(SDBridgeError):
    """The service rejected the request with a non-retryable 4xx status.

    Attributes:
        category: One of ``unauthorized``, ``not-found``, ``bad-request`` or
            ``unknown``.
    """

    _CATEGORIES: dict[int, tuple[str, str]] = {
        400: ("bad-request", REMEDY_BAD_REQUEST),
        401: ("unauthorized", REMEDY_UNAUTHORIZED),
        403: ("unauthorized", REMEDY_UNAUTHORIZED),
        404: ("not-found", REMEDY_NOT_FOUND),
    }

    def __init__(self, message: str, status_code: int) -> None:
        category, remedy = self._CATEGORIES.get(status_code, ("unknown", None))
        super().__init__(message, remedy=remedy, status_code=status_code)
        self.category = category

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["category"] = self.category
        return data


class DecodeError(SDBridgeError):
    """The service answered successfully but the body could not be parsed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message, remedy=REMEDY_UNEXPECTED_RESPONSE, status_code=status_code)
