"""
Application error hierarchy.

Each error carries a machine-readable ``error_code`` and the HTTP status
the API answers with, so views render any of them with one except clause:

    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)

    BaseApplicationError (500)
    ├── ValidationError (400)
    ├── NotFoundError (404)
    ├── ConflictError (409)
    ├── RateLimitError (429)
    └── ExternalServiceError (502)

Billing narrows these further in billing.exceptions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Root of all errors the service layer raises on purpose.

    Attributes:
        message: Human-readable description, safe to show to API clients
        error_code: Stable code clients can branch on
        details: Extra context such as the offending field or identifier
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """JSON body: error and error_code, plus details when present."""
        body: dict[str, Any] = {"error": self.message, "error_code": self.error_code}
        if self.details:
            body["details"] = self.details
        return body

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class ValidationError(BaseApplicationError):
    """Input rejected by a service-level rule, e.g. an untrusted redirect URL."""

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class ConflictError(BaseApplicationError):
    """The request clashes with stored state, e.g. a reused idempotency key."""

    default_error_code: str = "CONFLICT"
    http_status: int = 409


class RateLimitError(BaseApplicationError):
    """Put ``retry_after`` (seconds) in details when the window end is known."""

    default_error_code: str = "RATE_LIMIT_EXCEEDED"
    http_status: int = 429


class ExternalServiceError(BaseApplicationError):
    """
    A third-party call failed.

    The message reaches API clients, so keep provider payloads in the log
    record rather than in the exception text.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
    http_status: int = 502
