"""
Payment model for one-time checkout attempts.

A Payment is persisted as pending right after MercadoPago returns a
checkout preference, and is then updated only from verified webhook
notifications.

Correlation:
    external_reference is generated before the provider call and sent in
    the preference, so MercadoPago echoes it on every payment made through
    that checkout. Webhooks locate the row by external_reference first and
    backfill provider_payment_id on the first notification.

Usage:
    from billing.models import Payment
    from billing.states import PaymentStatus

    payment = Payment.objects.get(external_reference=ref)
    if payment.status == PaymentStatus.APPROVED:
        ...
"""

from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from billing.states import Currency, PaymentStatus


def generate_external_reference() -> str:
    """Opaque, never-reused reference sent to MercadoPago."""
    return f"pay_{uuid.uuid4().hex}"


class Payment(UUIDPrimaryKeyMixin, BaseModel):
    """
    One checkout attempt against a MercadoPago preference.

    Fields:
        user: Paying user (deleted with the user)
        external_reference: Local correlation key echoed by MercadoPago
        provider_payment_id: MercadoPago payment id, set by the first webhook
        preference_id: Checkout preference returned at creation
        status / status_detail: Latest provider-reported state
        amount / currency: Total of the line items
        payment_method_id / payment_type_id: Reported by MercadoPago
        metadata: Sanitized client metadata
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="billing_payments",
        help_text="User who started the checkout",
    )

    # ==========================================================================
    # Identity
    # ==========================================================================

    external_reference = models.CharField(
        max_length=64,
        unique=True,
        default=generate_external_reference,
        editable=False,
        help_text="Locally generated reference echoed back by MercadoPago",
    )

    provider_payment_id = models.CharField(
        max_length=64,
        unique=True,
        null=True,
        blank=True,
        help_text="MercadoPago payment ID (known after the first notification)",
    )

    preference_id = models.CharField(
        max_length=128,
        blank=True,
        db_index=True,
        help_text="MercadoPago checkout preference ID",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
        help_text="Latest status reported by MercadoPago",
    )

    status_detail = models.CharField(
        max_length=128,
        blank=True,
        help_text="Provider sub-reason, e.g. 'accredited' or 'cc_rejected_other_reason'",
    )

    # ==========================================================================
    # Amount & Method
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Total amount of the checkout",
    )

    currency = models.CharField(
        max_length=3,
        choices=Currency.choices,
        default=Currency.ARS,
        help_text="ISO 4217 currency code",
    )

    payment_method_id = models.CharField(
        max_length=64,
        blank=True,
        help_text="Payment method used, e.g. 'visa' or 'pix'",
    )

    payment_type_id = models.CharField(
        max_length=64,
        blank=True,
        help_text="Payment type, e.g. 'credit_card' or 'ticket'",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Sanitized client metadata",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(fields=["user", "created_at"], name="billing_pay_user_created_idx"),
            models.Index(fields=["user", "status"], name="billing_pay_user_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="billing_payment_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment({self.id}, {self.status}, {self.amount} {self.currency})"
