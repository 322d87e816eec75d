"""
Customer model linking a local user to a MercadoPago customer.

A Customer row is created the first time a user starts a checkout and is
reused for every later payment.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class Customer(UUIDPrimaryKeyMixin, BaseModel):
    """
    MercadoPago customer owned by a local user.

    Fields:
        user: Owning user (one customer per user)
        provider_customer_id: MercadoPago customer id
        email: Email the customer was registered with
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="mercadopago_customer",
        help_text="User this MercadoPago customer belongs to",
    )

    provider_customer_id = models.CharField(
        max_length=64,
        unique=True,
        help_text="MercadoPago customer ID",
    )

    email = models.EmailField(
        help_text="Email registered with MercadoPago",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Customer"
        verbose_name_plural = "Customers"

    def __str__(self) -> str:
        return f"Customer({self.provider_customer_id}, {self.email})"
