"""
Billing-specific exception classes.

This module provides exceptions for billing operations, extending the
base exception hierarchy from core.exceptions.

Exception Hierarchy:
    BaseApplicationError (from core)
    ├── ValidationError
    │   ├── PaymentValidationError - Amount, currency, URL, key format
    │   └── MalformedNotificationError - Webhook body is not a JSON object
    ├── NotFoundError
    │   └── PaymentNotFoundError - Local record missing or not owned
    ├── ConflictError
    │   └── IdempotencyConflictError - Key reused with another body / in flight
    ├── RateLimitError
    │   └── BillingRateLimitError - Per-user or global window exhausted
    ├── WebhookSignatureError - Notification failed authentication
    ├── AmountMismatchError - Provider amount differs from local amount
    └── ExternalServiceError
        └── MercadoPagoError - Base for provider call failures
            ├── MercadoPagoInvalidRequestError - 400/422 (permanent)
            ├── MercadoPagoAuthenticationError - 401/403 (permanent)
            ├── MercadoPagoNotFoundError - 404 (permanent)
            ├── MercadoPagoInvalidResponseError - Response failed shape checks
            ├── MercadoPagoRateLimitError - 429 (retryable)
            ├── MercadoPagoAPIUnavailableError - 5xx / connection (retryable)
            └── MercadoPagoTimeoutError - Request timed out (retryable)

Usage:
    from billing.exceptions import MercadoPagoError

    try:
        MercadoPagoAdapter.get_payment(payment_id)
    except MercadoPagoError as e:
        if e.is_retryable:
            ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Client-facing errors
# =============================================================================


class PaymentValidationError(ValidationError):
    """
    Raised when billing input fails validation.

    Example:
        raise PaymentValidationError(
            "Currency not supported",
            error_code="INVALID_CURRENCY",
            details={"currency": "USD"},
        )
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class PaymentNotFoundError(NotFoundError):
    """Raised when a payment or subscription does not exist for the user."""

    default_error_code: str = "PAYMENT_NOT_FOUND"


class IdempotencyConflictError(ConflictError):
    """
    Raised when an idempotency key cannot be honoured.

    Either the key was already used with a different request body, or
    a request with the same key is still being processed.
    """

    default_error_code: str = "IDEMPOTENCY_CONFLICT"


class BillingRateLimitError(RateLimitError):
    """Raised when a billing rate limit window is exhausted."""

    default_error_code: str = "RATE_LIMIT_EXCEEDED"


# =============================================================================
# Webhook errors
# =============================================================================


class MalformedNotificationError(ValidationError):
    """Raised when a webhook body is not a JSON object."""

    default_error_code: str = "MALFORMED_NOTIFICATION"


class WebhookSignatureError(BaseApplicationError):
    """Raised when a webhook notification fails signature verification."""

    default_error_code: str = "INVALID_SIGNATURE"
    http_status: int = 401


class AmountMismatchError(BaseApplicationError):
    """
    Raised when the provider-reported amount differs from the local amount.

    Treated as possible tampering: the local record is left untouched
    so the discrepancy can be reviewed manually.
    """

    default_error_code: str = "AMOUNT_MISMATCH"
    http_status: int = 409


# =============================================================================
# MercadoPago errors
# =============================================================================


class MercadoPagoError(ExternalServiceError):
    """
    Base exception for all MercadoPago API failures.

    Attributes:
        status_code: HTTP status returned by MercadoPago (None for network errors)
        provider_code: MercadoPago's error identifier, e.g. "bad_request"
        is_retryable: Whether the same call may succeed if retried later
    """

    default_error_code: str = "MERCADOPAGO_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        provider_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        if provider_code:
            details["provider_code"] = provider_code
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code
        self.provider_code = provider_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class MercadoPagoInvalidRequestError(MercadoPagoError):
    """MercadoPago rejected the request parameters (400 / 422)."""

    default_error_code: str = "MERCADOPAGO_INVALID_REQUEST"


class MercadoPagoAuthenticationError(MercadoPagoError):
    """The access token was rejected (401 / 403). Operational issue."""

    default_error_code: str = "MERCADOPAGO_AUTHENTICATION_FAILED"


class MercadoPagoNotFoundError(MercadoPagoError):
    """The referenced provider resource does not exist (404)."""

    default_error_code: str = "MERCADOPAGO_NOT_FOUND"


class MercadoPagoInvalidResponseError(MercadoPagoError):
    """A 2xx response was missing fields the integration depends on."""

    default_error_code: str = "MERCADOPAGO_INVALID_RESPONSE"


# -----------------------------------------------------------------------------
# Transient Errors (retry with backoff)
# -----------------------------------------------------------------------------


class MercadoPagoRateLimitError(MercadoPagoError):
    """MercadoPago throttled the request (429)."""

    default_error_code: str = "MERCADOPAGO_RATE_LIMITED"
    is_retryable: bool = True


class MercadoPagoAPIUnavailableError(MercadoPagoError):
    """MercadoPago returned a 5xx or could not be reached."""

    default_error_code: str = "MERCADOPAGO_UNAVAILABLE"
    is_retryable: bool = True


class MercadoPagoTimeoutError(MercadoPagoError):
    """The request to MercadoPago exceeded the configured timeout."""

    default_error_code: str = "MERCADOPAGO_TIMEOUT"
    is_retryable: bool = True


__all__ = [
    "AmountMismatchError",
    "BillingRateLimitError",
    "IdempotencyConflictError",
    "MalformedNotificationError",
    "MercadoPagoAPIUnavailableError",
    "MercadoPagoAuthenticationError",
    "MercadoPagoError",
    "MercadoPagoInvalidRequestError",
    "MercadoPagoInvalidResponseError",
    "MercadoPagoNotFoundError",
    "MercadoPagoRateLimitError",
    "MercadoPagoTimeoutError",
    "PaymentNotFoundError",
    "PaymentValidationError",
    "WebhookSignatureError",
]
