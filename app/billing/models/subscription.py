"""
Subscription model for MercadoPago recurring-billing agreements (preapprovals).

Created as pending when the preapproval is created. Afterwards only
verified webhooks and the explicit cancel action change its status.

The local id doubles as the preapproval's external_reference, which is
how recurring charges (authorized payments) are traced back to it.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from billing.states import SubscriptionStatus

DIRECT_PLAN_ID = "direct"


class Subscription(UUIDPrimaryKeyMixin, BaseModel):
    """
    A user's recurring-billing agreement.

    Fields:
        user: Subscriber (deleted with the user)
        provider_subscription_id: MercadoPago preapproval id
        plan_id: Provider plan id, the ad-hoc reason, or "direct"
        status / reason: Latest provider-reported state
        next_payment_date / last_payment_date: Billing schedule
        summarized: Provider billing counters snapshot
        metadata: Sanitized client metadata
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="billing_subscriptions",
        help_text="Subscribed user",
    )

    provider_subscription_id = models.CharField(
        max_length=64,
        unique=True,
        help_text="MercadoPago preapproval ID",
    )

    plan_id = models.CharField(
        max_length=256,
        default=DIRECT_PLAN_ID,
        help_text="Preapproval plan ID, or the reason for ad-hoc subscriptions",
    )

    status = models.CharField(
        max_length=20,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.PENDING,
        db_index=True,
        help_text="Latest status reported by MercadoPago",
    )

    reason = models.CharField(
        max_length=256,
        blank=True,
        help_text="Subscription description shown to the payer",
    )

    next_payment_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When MercadoPago will attempt the next charge",
    )

    last_payment_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the last charge was made",
    )

    summarized = models.JSONField(
        null=True,
        blank=True,
        help_text="Snapshot of MercadoPago billing counters",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Sanitized client metadata",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(fields=["user", "status"], name="billing_sub_user_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Subscription({self.id}, {self.status}, {self.plan_id})"
