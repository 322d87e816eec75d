"""
Plan model for reusable MercadoPago preapproval plans.
"""

from __future__ import annotations

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from billing.states import Currency, FrequencyType


class Plan(UUIDPrimaryKeyMixin, BaseModel):
    """
    Billing template referenced by subscriptions.

    repetitions is null for plans that bill until cancelled.
    """

    provider_plan_id = models.CharField(
        max_length=64,
        unique=True,
        help_text="MercadoPago preapproval plan ID",
    )

    reason = models.CharField(
        max_length=256,
        help_text="Plan description shown to the payer",
    )

    frequency = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(365)],
        help_text="Number of frequency_type units between charges",
    )

    frequency_type = models.CharField(
        max_length=10,
        choices=FrequencyType.choices,
        default=FrequencyType.MONTHS,
    )

    transaction_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Amount charged each cycle",
    )

    currency_id = models.CharField(
        max_length=3,
        choices=Currency.choices,
        default=Currency.ARS,
    )

    repetitions = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Number of cycles; empty for unlimited",
    )

    free_trial = models.JSONField(
        null=True,
        blank=True,
        help_text="Trial terms: {frequency, frequency_type}",
    )

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Plan"
        verbose_name_plural = "Plans"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(transaction_amount__gt=0),
                name="billing_plan_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Plan({self.reason}, {self.transaction_amount} {self.currency_id})"
