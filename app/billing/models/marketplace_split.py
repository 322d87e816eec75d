"""
MarketplaceSplit model recording how a payment is shared with a collector.

When a checkout is created on behalf of a third-party collector the
platform keeps application_fee_amount and the collector receives
net_amount. The fee must be strictly smaller than the payment total.
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class MarketplaceSplit(UUIDPrimaryKeyMixin, BaseModel):
    """Platform/collector split of a single Payment."""

    payment = models.OneToOneField(
        "billing.Payment",
        on_delete=models.CASCADE,
        related_name="marketplace_split",
        help_text="Payment being split",
    )

    collector_id = models.CharField(
        max_length=64,
        help_text="MercadoPago user ID of the collector",
    )

    collector_email = models.EmailField(
        blank=True,
        help_text="Collector contact email",
    )

    application_fee_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Platform commission (marketplace_fee)",
    )

    application_fee_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Commission percentage, when the fee was requested as a percentage",
    )

    net_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Amount the collector receives",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Marketplace Split"
        verbose_name_plural = "Marketplace Splits"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(application_fee_amount__gt=0),
                name="billing_split_fee_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(net_amount__gt=0),
                name="billing_split_net_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"MarketplaceSplit({self.payment_id}, fee={self.application_fee_amount})"
