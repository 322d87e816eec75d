"""
MercadoPago API adapter.

This module provides the MercadoPagoAdapter class which encapsulates all
MercadoPago API interactions made through the official SDK. Every call
goes through the adapter so timeouts, idempotency headers, error
translation and logging are handled in one place.

The SDK returns plain dicts of the form {"status": <http status>,
"response": <json body>}. The adapter turns non-2xx statuses into
billing.exceptions.MercadoPagoError subclasses and narrows 2xx bodies
into the result dataclasses below; code outside this module never reads
raw provider JSON.

Configuration (via settings):
- MERCADOPAGO_ACCESS_TOKEN: Application access token
- MERCADOPAGO_API_TIMEOUT_SECONDS: Connection timeout (default: 10)
- MERCADOPAGO_MAX_RETRIES: SDK retry attempts (default: 3)
- MERCADOPAGO_APP_ID / MERCADOPAGO_APP_SECRET: OAuth application for sellers

Usage:
    from billing.adapters import MercadoPagoAdapter, CreatePreferenceParams

    result = MercadoPagoAdapter.create_preference(
        CreatePreferenceParams(
            items=[{"id": "sku-1", "title": "Plan", "quantity": 1,
                    "unit_price": 100, "currency_id": "ARS"}],
            payer_email="buyer@example.com",
            external_reference=payment.external_reference,
            notification_url="https://api.example.com/api/v1/billing/webhooks/mercadopago/",
        )
    )
    redirect_to(result.init_point)

    payment = MercadoPagoAdapter.get_payment("1234567890")
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import mercadopago
import requests
from django.conf import settings
from django.utils.dateparse import parse_datetime
from mercadopago.config import RequestOptions

from billing.exceptions import (
    MercadoPagoAPIUnavailableError,
    MercadoPagoAuthenticationError,
    MercadoPagoError,
    MercadoPagoInvalidRequestError,
    MercadoPagoInvalidResponseError,
    MercadoPagoNotFoundError,
    MercadoPagoRateLimitError,
    MercadoPagoTimeoutError,
)
from billing.validators import to_decimal

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

OAUTH_AUTHORIZATION_URL = "https://auth.mercadopago.com/authorization"
OAUTH_TOKEN_URL = "https://api.mercadopago.com/oauth/token"

# Raised by the HTTP layer when the network, not the request, failed
TRANSPORT_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.ChunkedEncodingError,
)


# =============================================================================
# Request Types
# =============================================================================


@dataclass
class CreatePreferenceParams:
    """
    Parameters for creating a checkout preference.

    Attributes:
        items: Line items in MercadoPago's item shape
        payer_email: Email prefilled in the checkout
        external_reference: Local correlation key echoed on payments
        notification_url: Where MercadoPago sends webhooks for this checkout
        back_urls: success/failure/pending redirect URLs
        metadata: Sanitized metadata stored on the preference
        marketplace: Collector id when splitting with a third party
        marketplace_fee: Platform commission kept from the split
        expiration_date_from / expiration_date_to: Checkout validity window
        idempotency_key: Sent as X-Idempotency-Key
    """

    items: list[dict[str, Any]]
    payer_email: str
    external_reference: str
    notification_url: str = ""
    back_urls: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    marketplace: str | None = None
    marketplace_fee: Decimal | None = None
    expiration_date_from: datetime | None = None
    expiration_date_to: datetime | None = None
    idempotency_key: str | None = None

    def __post_init__(self) -> None:
        if not self.items:
            raise ValueError("items must not be empty")
        if not self.external_reference:
            raise ValueError("external_reference is required")

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "items": self.items,
            "payer": {"email": self.payer_email},
            "external_reference": self.external_reference,
            "metadata": self.metadata,
        }
        if self.back_urls:
            payload["back_urls"] = self.back_urls
            payload["auto_return"] = "approved"
        if self.notification_url:
            payload["notification_url"] = self.notification_url
        if self.expiration_date_from and self.expiration_date_to:
            payload["expires"] = True
            payload["expiration_date_from"] = self.expiration_date_from.isoformat()
            payload["expiration_date_to"] = self.expiration_date_to.isoformat()
        if self.marketplace and self.marketplace_fee is not None:
            payload["marketplace"] = self.marketplace
            payload["marketplace_fee"] = float(self.marketplace_fee)
        return payload


@dataclass
class CreatePreapprovalParams:
    """
    Parameters for creating a recurring-billing preapproval.

    Either preapproval_plan_id or (reason and auto_recurring) is required.
    """

    payer_email: str
    external_reference: str
    back_url: str
    reason: str | None = None
    auto_recurring: dict[str, Any] | None = None
    preapproval_plan_id: str | None = None
    status: str = "pending"
    idempotency_key: str | None = None

    def __post_init__(self) -> None:
        if not self.preapproval_plan_id and not (self.reason and self.auto_recurring):
            raise ValueError(
                "preapproval_plan_id or both reason and auto_recurring are required"
            )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "payer_email": self.payer_email,
            "external_reference": self.external_reference,
            "back_url": self.back_url,
            "status": self.status,
        }
        if self.preapproval_plan_id:
            payload["preapproval_plan_id"] = self.preapproval_plan_id
        if self.reason:
            payload["reason"] = self.reason
        if self.auto_recurring:
            payload["auto_recurring"] = self.auto_recurring
        return payload


@dataclass
class CreatePlanParams:
    """Parameters for creating a preapproval plan."""

    reason: str
    auto_recurring: dict[str, Any]
    back_url: str

    def __post_init__(self) -> None:
        if not self.reason:
            raise ValueError("reason is required")
        if not self.auto_recurring:
            raise ValueError("auto_recurring is required")

    def to_payload(self) -> dict[str, Any]:
        return {
            "reason": self.reason,
            "auto_recurring": self.auto_recurring,
            "back_url": self.back_url,
        }


# =============================================================================
# Response Types
# =============================================================================


def _require(data: dict[str, Any], resource: str, *keys: str) -> None:
    missing = [key for key in keys if data.get(key) in (None, "")]
    if missing:
        raise MercadoPagoInvalidResponseError(
            f"MercadoPago {resource} response missing fields: {', '.join(missing)}",
            details={"missing": missing},
        )


def _parse_dt(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        return None


@dataclass
class PreferenceResult:
    """Checkout preference returned by MercadoPago."""

    id: str
    init_point: str
    sandbox_init_point: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> PreferenceResult:
        _require(data, "preference", "id", "init_point")
        return cls(
            id=str(data["id"]),
            init_point=data["init_point"],
            sandbox_init_point=data.get("sandbox_init_point") or "",
            raw_response=data,
        )


@dataclass
class ProviderPayment:
    """
    Authoritative payment state fetched from MercadoPago.

    transaction_amount is parsed to Decimal; status is kept as reported
    and narrowed by the caller.
    """

    id: str
    status: str
    transaction_amount: Decimal
    status_detail: str = ""
    currency_id: str = ""
    external_reference: str = ""
    payment_method_id: str = ""
    payment_type_id: str = ""
    date_created: datetime | None = None
    date_approved: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> ProviderPayment:
        _require(data, "payment", "id", "status", "transaction_amount")
        amount = to_decimal(data["transaction_amount"])
        if amount is None:
            raise MercadoPagoInvalidResponseError(
                "MercadoPago payment response has a non-numeric transaction_amount",
                details={"transaction_amount": str(data["transaction_amount"])},
            )
        return cls(
            id=str(data["id"]),
            status=str(data["status"]),
            transaction_amount=amount,
            status_detail=data.get("status_detail") or "",
            currency_id=data.get("currency_id") or "",
            external_reference=str(data.get("external_reference") or ""),
            payment_method_id=data.get("payment_method_id") or "",
            payment_type_id=data.get("payment_type_id") or "",
            date_created=_parse_dt(data.get("date_created")),
            date_approved=_parse_dt(data.get("date_approved")),
            metadata=data.get("metadata") or {},
            raw_response=data,
        )


@dataclass
class PreapprovalResult:
    """Recurring-billing preapproval returned by MercadoPago."""

    id: str
    status: str
    reason: str = ""
    init_point: str = ""
    external_reference: str = ""
    preapproval_plan_id: str = ""
    next_payment_date: datetime | None = None
    summarized: dict[str, Any] | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def last_charged_date(self) -> datetime | None:
        return _parse_dt((self.summarized or {}).get("last_charged_date"))

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> PreapprovalResult:
        _require(data, "preapproval", "id", "status")
        summarized = data.get("summarized")
        return cls(
            id=str(data["id"]),
            status=str(data["status"]),
            reason=data.get("reason") or "",
            init_point=data.get("init_point") or "",
            external_reference=str(data.get("external_reference") or ""),
            preapproval_plan_id=data.get("preapproval_plan_id") or "",
            next_payment_date=_parse_dt(data.get("next_payment_date")),
            summarized=summarized if isinstance(summarized, dict) else None,
            raw_response=data,
        )


@dataclass
class PlanResult:
    """Preapproval plan returned by MercadoPago."""

    id: str
    status: str = ""
    reason: str = ""
    init_point: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> PlanResult:
        _require(data, "plan", "id")
        return cls(
            id=str(data["id"]),
            status=data.get("status") or "",
            reason=data.get("reason") or "",
            init_point=data.get("init_point") or "",
            raw_response=data,
        )


@dataclass
class CustomerResult:
    """Customer returned by MercadoPago."""

    id: str
    email: str = ""
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> CustomerResult:
        _require(data, "customer", "id")
        return cls(
            id=str(data["id"]),
            email=data.get("email") or "",
            raw_response=data,
        )


@dataclass
class OAuthTokenResult:
    """Seller credentials returned by the OAuth code exchange."""

    access_token: str
    user_id: str
    expires_in: int
    refresh_token: str = ""
    public_key: str = ""

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> OAuthTokenResult:
        _require(data, "oauth token", "access_token", "user_id", "expires_in")
        try:
            expires_in = int(data["expires_in"])
        except (TypeError, ValueError):
            raise MercadoPagoInvalidResponseError(
                "MercadoPago oauth token response has a non-numeric expires_in",
            ) from None
        return cls(
            access_token=str(data["access_token"]),
            user_id=str(data["user_id"]),
            expires_in=expires_in,
            refresh_token=data.get("refresh_token") or "",
            public_key=data.get("public_key") or "",
        )


# =============================================================================
# MercadoPago Adapter
# =============================================================================


class MercadoPagoAdapter:
    """
    Adapter for MercadoPago API operations.

    All methods are classmethods; no instance state is kept between
    calls. A fresh SDK object is built per call so settings overrides
    (including in tests) always apply.
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def get_sdk() -> mercadopago.SDK:
        """Build an SDK client from settings."""
        return mercadopago.SDK(settings.MERCADOPAGO_ACCESS_TOKEN)

    @staticmethod
    def _request_options(idempotency_key: str | None = None) -> RequestOptions:
        headers = {"x-idempotency-key": idempotency_key} if idempotency_key else None
        return RequestOptions(
            access_token=settings.MERCADOPAGO_ACCESS_TOKEN,
            connection_timeout=float(
                getattr(settings, "MERCADOPAGO_API_TIMEOUT_SECONDS", 10)
            ),
            custom_headers=headers,
            max_retries=getattr(settings, "MERCADOPAGO_MAX_RETRIES", 3),
        )

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def _execute(
        cls,
        call: Callable[[], dict[str, Any]],
        log_context: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Run one SDK call with timing, logging and error translation.

        Returns:
            The 2xx response body
        """
        logger = cls.get_logger()
        start_time = time.time()
        logger.info("Starting MercadoPago operation", extra=log_context)

        try:
            result = call()
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_transport_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        status_code = result.get("status") if isinstance(result, dict) else None
        body = result.get("response") if isinstance(result, dict) else None

        if not isinstance(status_code, int) or not 200 <= status_code < 300:
            cls._handle_error_response(status_code, body, log_context, duration_ms)

        if not isinstance(body, dict):
            raise MercadoPagoInvalidResponseError(
                "MercadoPago returned a non-object response body",
                status_code=status_code,
            )

        logger.info(
            "MercadoPago operation completed",
            extra={**log_context, "status_code": status_code, "duration_ms": duration_ms},
        )
        return body

    # =========================================================================
    # Checkout Preferences & Payments
    # =========================================================================

    @classmethod
    def create_preference(cls, params: CreatePreferenceParams) -> PreferenceResult:
        """
        Create a checkout preference.

        Raises:
            MercadoPagoInvalidRequestError: Rejected parameters
            MercadoPagoAPIUnavailableError: Provider unavailable
            MercadoPagoTimeoutError: Request timed out
        """
        log_context = {
            "operation": "create_preference",
            "external_reference": params.external_reference,
            "item_count": len(params.items),
        }
        sdk = cls.get_sdk()
        options = cls._request_options(params.idempotency_key)
        body = cls._execute(
            lambda: sdk.preference().create(params.to_payload(), options),
            log_context,
        )
        return PreferenceResult.from_response(body)

    @classmethod
    def get_payment(cls, payment_id: str) -> ProviderPayment:
        """Fetch the authoritative state of a payment."""
        log_context = {"operation": "get_payment", "payment_id": payment_id}
        sdk = cls.get_sdk()
        options = cls._request_options()
        body = cls._execute(lambda: sdk.payment().get(payment_id, options), log_context)
        return ProviderPayment.from_response(body)

    # =========================================================================
    # Preapprovals (Subscriptions) & Plans
    # =========================================================================

    @classmethod
    def create_preapproval(cls, params: CreatePreapprovalParams) -> PreapprovalResult:
        log_context = {
            "operation": "create_preapproval",
            "external_reference": params.external_reference,
            "preapproval_plan_id": params.preapproval_plan_id,
        }
        sdk = cls.get_sdk()
        options = cls._request_options(params.idempotency_key)
        body = cls._execute(
            lambda: sdk.preapproval().create(params.to_payload(), options),
            log_context,
        )
        return PreapprovalResult.from_response(body)

    @classmethod
    def get_preapproval(cls, preapproval_id: str) -> PreapprovalResult:
        log_context = {"operation": "get_preapproval", "preapproval_id": preapproval_id}
        sdk = cls.get_sdk()
        options = cls._request_options()
        body = cls._execute(
            lambda: sdk.preapproval().get(preapproval_id, options),
            log_context,
        )
        return PreapprovalResult.from_response(body)

    @classmethod
    def update_preapproval(
        cls,
        preapproval_id: str,
        changes: dict[str, Any],
    ) -> PreapprovalResult:
        """Update a preapproval, e.g. {"status": "cancelled"}."""
        log_context = {
            "operation": "update_preapproval",
            "preapproval_id": preapproval_id,
            "fields": sorted(changes),
        }
        sdk = cls.get_sdk()
        options = cls._request_options()
        body = cls._execute(
            lambda: sdk.preapproval().update(preapproval_id, changes, options),
            log_context,
        )
        return PreapprovalResult.from_response(body)

    @classmethod
    def create_plan(cls, params: CreatePlanParams) -> PlanResult:
        log_context = {"operation": "create_plan", "reason": params.reason}
        sdk = cls.get_sdk()
        options = cls._request_options()
        body = cls._execute(
            lambda: sdk.plan().create(params.to_payload(), options),
            log_context,
        )
        return PlanResult.from_response(body)

    # =========================================================================
    # Customers
    # =========================================================================

    @classmethod
    def search_customer(cls, email: str) -> CustomerResult | None:
        """Return the first customer registered with email, if any."""
        log_context = {"operation": "search_customer"}
        sdk = cls.get_sdk()
        options = cls._request_options()
        body = cls._execute(
            lambda: sdk.customer().search(filters={"email": email}, request_options=options),
            log_context,
        )
        results = body.get("results") or []
        if not results or not isinstance(results[0], dict):
            return None
        return CustomerResult.from_response(results[0])

    @classmethod
    def create_customer(
        cls,
        email: str,
        first_name: str = "",
        last_name: str = "",
    ) -> CustomerResult:
        log_context = {"operation": "create_customer"}
        payload: dict[str, Any] = {"email": email}
        if first_name:
            payload["first_name"] = first_name
        if last_name:
            payload["last_name"] = last_name
        sdk = cls.get_sdk()
        options = cls._request_options()
        body = cls._execute(lambda: sdk.customer().create(payload, options), log_context)
        return CustomerResult.from_response(body)

    # =========================================================================
    # OAuth (marketplace sellers)
    # =========================================================================

    @staticmethod
    def build_authorization_url(redirect_uri: str, state: str) -> str:
        """URL that sends a seller to MercadoPago to authorize the platform."""
        query = urlencode(
            {
                "client_id": settings.MERCADOPAGO_APP_ID,
                "response_type": "code",
                "platform_id": "mp",
                "state": state,
                "redirect_uri": redirect_uri,
            }
        )
        return f"{OAUTH_AUTHORIZATION_URL}?{query}"

    @classmethod
    def exchange_oauth_code(cls, code: str, redirect_uri: str) -> OAuthTokenResult:
        """
        Trade an authorization code for the seller's credentials.

        The SDK has no OAuth resource, so the token endpoint is called with
        requests and its response is wrapped in the SDK's result shape.

        Raises:
            MercadoPagoInvalidRequestError: Code rejected or already used
            MercadoPagoAPIUnavailableError: Provider unavailable
            MercadoPagoTimeoutError: Request timed out
        """
        log_context = {"operation": "exchange_oauth_code"}
        payload = {
            "client_id": settings.MERCADOPAGO_APP_ID,
            "client_secret": settings.MERCADOPAGO_APP_SECRET,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        }
        timeout = float(getattr(settings, "MERCADOPAGO_API_TIMEOUT_SECONDS", 10))

        def call() -> dict[str, Any]:
            response = requests.post(OAUTH_TOKEN_URL, json=payload, timeout=timeout)
            try:
                body = response.json()
            except ValueError:
                body = None
            return {"status": response.status_code, "response": body}

        body = cls._execute(call, log_context)
        return OAuthTokenResult.from_response(body)

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_transport_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate exceptions raised by the SDK's HTTP layer.

        Only network failures are retryable. Anything else (a malformed
        request the HTTP layer refused, a bug in the SDK or in our call) is
        raised as a permanent MercadoPagoError, since retrying it cannot help.

        Raises:
            MercadoPagoTimeoutError: Request timed out
            MercadoPagoAPIUnavailableError: Connection failure
            MercadoPagoError: Any other error, not retryable
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, MercadoPagoError):
            raise error

        if isinstance(error, requests.exceptions.Timeout):
            logger.warning("MercadoPago request timed out", extra=log_context)
            raise MercadoPagoTimeoutError(
                "MercadoPago request timed out. Please retry.",
                provider_code="timeout",
            ) from error

        if isinstance(error, TRANSPORT_ERRORS):
            logger.error(
                "Connection error to MercadoPago",
                extra=log_context,
                exc_info=True,
            )
            raise MercadoPagoAPIUnavailableError(
                "Could not connect to MercadoPago. Please retry.",
                provider_code="connection_error",
            ) from error

        logger.error(
            f"Unexpected error calling MercadoPago: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise MercadoPagoError(
            "Unexpected error calling MercadoPago",
            provider_code="unknown_error",
        ) from error

    @classmethod
    def _handle_error_response(
        cls,
        status_code: int | None,
        body: Any,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate a non-2xx SDK result into a domain exception.

        Raises:
            MercadoPagoInvalidRequestError: 400 / 422 and other 4xx
            MercadoPagoAuthenticationError: 401 / 403
            MercadoPagoNotFoundError: 404
            MercadoPagoRateLimitError: 429
            MercadoPagoAPIUnavailableError: 5xx or missing status
        """
        logger = cls.get_logger()
        body = body if isinstance(body, dict) else {}
        provider_code = body.get("error") or body.get("code")
        message = body.get("message") or f"MercadoPago returned HTTP {status_code}"
        log_context = {
            **log_context,
            "status_code": status_code,
            "provider_code": provider_code,
            "duration_ms": duration_ms,
        }
        error_kwargs = {
            "status_code": status_code,
            "provider_code": str(provider_code) if provider_code else None,
        }

        if status_code in (401, 403):
            logger.critical(
                "MercadoPago authentication failed - check access token",
                extra=log_context,
            )
            raise MercadoPagoAuthenticationError(message, **error_kwargs)

        if status_code == 404:
            logger.warning("MercadoPago resource not found", extra=log_context)
            raise MercadoPagoNotFoundError(message, **error_kwargs)

        if status_code == 429:
            logger.warning("Rate limited by MercadoPago", extra=log_context)
            raise MercadoPagoRateLimitError(message, **error_kwargs)

        if isinstance(status_code, int) and 400 <= status_code < 500:
            logger.error("Invalid request to MercadoPago", extra=log_context)
            raise MercadoPagoInvalidRequestError(message, **error_kwargs)

        logger.error("MercadoPago API error", extra=log_context)
        raise MercadoPagoAPIUnavailableError(message, **error_kwargs)
