"""
Status and vocabulary enums for billing models.

These are Django TextChoices for database storage and admin integration.
MercadoPago is the source of truth for every status below: a record can
move from any status to any other as the provider reports it, so there is
no transition table, only a fixed vocabulary that provider values are
narrowed into on ingestion.

Payment statuses:
    pending → approved / authorized / rejected / cancelled / refunded / charged_back

Subscription (preapproval) statuses:
    pending → authorized ⇄ paused → cancelled
"""

from __future__ import annotations

from django.db import models


class PaymentStatus(models.TextChoices):
    """Statuses for a one-time checkout Payment."""

    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    AUTHORIZED = "authorized", "Authorized"
    REJECTED = "rejected", "Rejected"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"
    CHARGED_BACK = "charged_back", "Charged Back"


class SubscriptionStatus(models.TextChoices):
    """Statuses for a recurring-billing Subscription (MercadoPago preapproval)."""

    PENDING = "pending", "Pending"
    AUTHORIZED = "authorized", "Authorized"
    PAUSED = "paused", "Paused"
    CANCELLED = "cancelled", "Cancelled"


class Currency(models.TextChoices):
    """Currencies MercadoPago settles in for the supported sites."""

    ARS = "ARS", "Argentine Peso"
    BRL = "BRL", "Brazilian Real"
    CLP = "CLP", "Chilean Peso"
    MXN = "MXN", "Mexican Peso"
    COP = "COP", "Colombian Peso"
    PEN = "PEN", "Peruvian Sol"
    UYU = "UYU", "Uruguayan Peso"


class FrequencyType(models.TextChoices):
    """Billing interval unit for recurring charges."""

    DAYS = "days", "Days"
    MONTHS = "months", "Months"


class WebhookTopic(models.TextChoices):
    """
    Notification topics accepted by the webhook endpoint.

    AUTHORIZED_PAYMENT is the legacy name MercadoPago still sends for
    recurring charges; it is handled like SUBSCRIPTION_AUTHORIZED_PAYMENT.
    """

    PAYMENT = "payment", "Payment"
    MERCHANT_ORDER = "merchant_order", "Merchant Order"
    SUBSCRIPTION_PREAPPROVAL = "subscription_preapproval", "Subscription Preapproval"
    SUBSCRIPTION_PREAPPROVAL_PLAN = (
        "subscription_preapproval_plan",
        "Subscription Preapproval Plan",
    )
    SUBSCRIPTION_AUTHORIZED_PAYMENT = (
        "subscription_authorized_payment",
        "Subscription Authorized Payment",
    )
    AUTHORIZED_PAYMENT = "authorized_payment", "Authorized Payment"
    POINT_INTEGRATION = "point_integration_wh", "Point Integration"
    CLAIMS = "topic_claims_integration_wh", "Claims"
    MERCHANT_ORDER_WH = "topic_merchant_order_wh", "Merchant Order (v2)"
    DELIVERY_CANCELLATION = "delivery_cancellation", "Delivery Cancellation"


# MercadoPago reports these intermediate states; locally they are still pending.
PAYMENT_STATUS_ALIASES = {
    "in_process": PaymentStatus.PENDING,
    "in_mediation": PaymentStatus.PENDING,
}


def narrow_payment_status(value: str | None) -> PaymentStatus | None:
    """
    Map a provider payment status onto PaymentStatus.

    Returns None when the value is not part of the local vocabulary.
    """
    if not value:
        return None
    if value in PAYMENT_STATUS_ALIASES:
        return PAYMENT_STATUS_ALIASES[value]
    if value in PaymentStatus.values:
        return PaymentStatus(value)
    return None


def narrow_subscription_status(value: str | None) -> SubscriptionStatus | None:
    """Map a provider preapproval status onto SubscriptionStatus, or None."""
    if value and value in SubscriptionStatus.values:
        return SubscriptionStatus(value)
    return None
