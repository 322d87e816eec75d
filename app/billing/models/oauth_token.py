"""
OAuth credentials of a marketplace seller.

A seller connects their MercadoPago account through the OAuth
authorization-code flow; the resulting token lets the platform create
split payments on their behalf. One token is kept per user and replaced
on every reconnect.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class OAuthToken(UUIDPrimaryKeyMixin, BaseModel):
    """
    MercadoPago OAuth token for a connected seller.

    Fields:
        user: Seller who authorized the platform
        provider_user_id: MercadoPago user id of the seller (collector id)
        access_token / refresh_token: Seller credentials, never rendered by the API
        public_key: Seller public key for client-side checkout
        expires_at: When access_token stops being accepted
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="mercadopago_oauth_token",
        help_text="Seller this token belongs to",
    )

    provider_user_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="MercadoPago user ID of the seller",
    )

    access_token = models.CharField(
        max_length=255,
        help_text="Seller access token",
    )

    refresh_token = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Token used to renew the access token",
    )

    public_key = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Seller public key",
    )

    expires_at = models.DateTimeField(
        help_text="Expiry of the access token",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "OAuth token"
        verbose_name_plural = "OAuth tokens"

    def __str__(self) -> str:
        return f"OAuthToken(seller={self.provider_user_id})"

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= timezone.now()
