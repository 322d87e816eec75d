"""
Checkout service for one-time MercadoPago payments.

This module provides CheckoutService which turns a validated checkout
request into a MercadoPago preference and a pending local Payment.

Flow:
    1. Count the attempt against the per-user creation rate limit
    2. Replay the stored response if the idempotency key was seen before
    3. Ensure the user has a MercadoPago customer
    4. Compute totals and the optional marketplace split
    5. Create the preference with a fresh external_reference
    6. Persist Payment (+ MarketplaceSplit) atomically as pending

From then on the Payment only changes through verified webhooks.

Usage:
    from billing.services import CheckoutService, CreatePaymentParams

    response, replayed = CheckoutService.create_payment(
        user, CreatePaymentParams.from_validated(serializer.validated_data)
    )
    redirect_to(response["checkout_url"])
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.utils import timezone

from core.helpers import hash_payload
from core.services import BaseService

from billing.adapters import CreatePreferenceParams, MercadoPagoAdapter
from billing.exceptions import PaymentNotFoundError, PaymentValidationError
from billing.idempotency import creation_key, run_idempotent
from billing.models import MarketplaceSplit, Payment, generate_external_reference
from billing.rate_limit import enforce_creation_limit, payment_create_key
from billing.serializers import PaymentSerializer
from billing.services.customer_service import CustomerService
from billing.states import Currency
from billing.validators import MAX_AMOUNT

if TYPE_CHECKING:
    import uuid

    from django.contrib.auth.models import AbstractBaseUser
    from django.db.models import QuerySet


CHECKOUT_EXPIRATION = timedelta(days=30)
CENT = Decimal("0.01")


def base_url() -> str:
    return settings.BILLING_BASE_URL.rstrip("/")


def notification_url() -> str:
    """Webhook URL MercadoPago should call for resources we create."""
    configured = getattr(settings, "BILLING_NOTIFICATION_URL", "")
    if configured:
        return configured
    return f"{base_url()}/api/v1/billing/webhooks/mercadopago/"


# =============================================================================
# Parameter Types
# =============================================================================


@dataclass
class LineItem:
    id: str
    title: str
    quantity: int
    unit_price: Decimal
    currency_id: str = Currency.ARS
    description: str = ""

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_provider_item(self) -> dict[str, Any]:
        item = {
            "id": self.id,
            "title": self.title,
            "quantity": self.quantity,
            "unit_price": float(self.unit_price),
            "currency_id": self.currency_id,
        }
        if self.description:
            item["description"] = self.description
        return item


@dataclass
class MarketplaceConfig:
    """
    Collector and platform commission for a split payment.

    Exactly one of application_fee or application_fee_percentage is set.
    """

    collector_id: str
    collector_email: str = ""
    application_fee: Decimal | None = None
    application_fee_percentage: Decimal | None = None

    def fee_for(self, total: Decimal) -> Decimal:
        if self.application_fee is not None:
            return self.application_fee
        return (total * self.application_fee_percentage / 100).quantize(
            CENT, rounding=ROUND_HALF_UP
        )


@dataclass
class CreatePaymentParams:
    """
    Parameters for creating a checkout.

    Attributes:
        items: Line items, all in the same currency
        metadata: Sanitized client metadata
        marketplace: Split configuration, if selling for a third party
        back_urls: Redirect URLs; defaults are derived from BILLING_BASE_URL
        idempotency_key: Client key for safe retries
    """

    items: list[LineItem]
    metadata: dict[str, Any] = field(default_factory=dict)
    marketplace: MarketplaceConfig | None = None
    back_urls: dict[str, str] = field(default_factory=dict)
    idempotency_key: str | None = None

    def __post_init__(self) -> None:
        if not self.items:
            raise ValueError("items must not be empty")

    @classmethod
    def from_validated(cls, data: dict[str, Any]) -> CreatePaymentParams:
        marketplace = data.get("marketplace")
        return cls(
            items=[LineItem(**item) for item in data["items"]],
            metadata=data.get("metadata") or {},
            marketplace=MarketplaceConfig(**marketplace) if marketplace else None,
            back_urls=dict(data.get("back_urls") or {}),
            idempotency_key=data.get("idempotency_key"),
        )

    @property
    def currency(self) -> str:
        return self.items[0].currency_id

    @property
    def total(self) -> Decimal:
        return sum((item.subtotal for item in self.items), Decimal("0"))

    def fingerprint(self) -> str:
        """Hash of everything except the idempotency key."""
        return hash_payload(
            {
                "items": [item.to_provider_item() for item in self.items],
                "metadata": self.metadata,
                "marketplace": self.marketplace.__dict__ if self.marketplace else None,
                "back_urls": self.back_urls,
            }
        )


# =============================================================================
# Checkout Service
# =============================================================================


class CheckoutService(BaseService):
    """Creates checkouts and reads the user's payments."""

    @classmethod
    def create_payment(
        cls,
        user: AbstractBaseUser,
        params: CreatePaymentParams,
    ) -> tuple[dict[str, Any], bool]:
        """
        Create a checkout preference and a pending Payment.

        Returns:
            (response, replayed) where response holds checkout_url,
            sandbox_checkout_url, preference_id and the serialized payment

        Raises:
            BillingRateLimitError: Too many creation attempts
            IdempotencyConflictError: Key reused with another body or in flight
            PaymentValidationError: Amount or marketplace fee out of range
            MercadoPagoError: Provider call failed
        """
        enforce_creation_limit(payment_create_key(user.pk))

        key = None
        if params.idempotency_key:
            key = creation_key("payment:create", user.pk, params.idempotency_key)

        return run_idempotent(
            key,
            params.fingerprint(),
            lambda: cls._create_checkout(user, params),
        )

    @classmethod
    def _create_checkout(
        cls,
        user: AbstractBaseUser,
        params: CreatePaymentParams,
    ) -> dict[str, Any]:
        logger = cls.get_logger()

        total = params.total
        if total <= 0 or total > MAX_AMOUNT:
            raise PaymentValidationError(
                "Payment total is out of range",
                error_code="INVALID_AMOUNT",
                details={"total": str(total)},
            )

        split = None
        if params.marketplace is not None:
            fee = params.marketplace.fee_for(total)
            if fee <= 0 or fee >= total:
                raise PaymentValidationError(
                    "Marketplace fee must be positive and smaller than the total",
                    error_code="INVALID_MARKETPLACE_FEE",
                    details={"fee": str(fee), "total": str(total)},
                )
            split = (fee, total - fee)

        customer = CustomerService.get_or_create_customer(user)
        external_reference = generate_external_reference()
        metadata = {
            **params.metadata,
            "user_id": str(user.pk),
            "customer_id": customer.provider_customer_id,
        }
        back_urls = {
            "success": f"{base_url()}/payment/success",
            "failure": f"{base_url()}/payment/failure",
            "pending": f"{base_url()}/payment/pending",
            **params.back_urls,
        }
        now = timezone.now()

        preference = MercadoPagoAdapter.create_preference(
            CreatePreferenceParams(
                items=[item.to_provider_item() for item in params.items],
                payer_email=customer.email,
                external_reference=external_reference,
                notification_url=notification_url(),
                back_urls=back_urls,
                metadata=metadata,
                marketplace=params.marketplace.collector_id if split else None,
                marketplace_fee=split[0] if split else None,
                expiration_date_from=now,
                expiration_date_to=now + CHECKOUT_EXPIRATION,
                idempotency_key=params.idempotency_key,
            )
        )

        with cls.atomic():
            payment = Payment.objects.create(
                user=user,
                external_reference=external_reference,
                preference_id=preference.id,
                amount=total,
                currency=params.currency,
                metadata=metadata,
            )
            if split is not None:
                MarketplaceSplit.objects.create(
                    payment=payment,
                    collector_id=params.marketplace.collector_id,
                    collector_email=params.marketplace.collector_email,
                    application_fee_amount=split[0],
                    application_fee_percentage=params.marketplace.application_fee_percentage,
                    net_amount=split[1],
                )

        logger.info(
            "Checkout created",
            extra={
                "payment_id": str(payment.id),
                "external_reference": external_reference,
                "preference_id": preference.id,
                "amount": str(total),
                "currency": params.currency,
            },
        )

        return {
            "checkout_url": preference.init_point,
            "sandbox_checkout_url": preference.sandbox_init_point,
            "preference_id": preference.id,
            "payment": dict(PaymentSerializer(payment).data),
        }

    # =========================================================================
    # Reads
    # =========================================================================

    @classmethod
    def get_payment(cls, user: AbstractBaseUser, payment_id: uuid.UUID | str) -> Payment:
        """
        Raises:
            PaymentNotFoundError: No such payment for this user
        """
        payment = (
            Payment.objects.select_related("marketplace_split")
            .filter(user=user, id=payment_id)
            .first()
        )
        if payment is None:
            raise PaymentNotFoundError(
                "Payment not found",
                details={"payment_id": str(payment_id)},
            )
        return payment

    @classmethod
    def list_payments(cls, user: AbstractBaseUser) -> QuerySet[Payment]:
        """Newest first; views paginate the result."""
        return Payment.objects.select_related("marketplace_split").filter(user=user)
