"""
Billing app configuration.

This app provides MercadoPago payment processing:
- Checkout preferences and one-time payments
- Subscriptions (preapprovals) and plans
- Marketplace splits
- Webhook reconciliation with deduplication and rate limiting
"""

from django.apps import AppConfig


class BillingConfig(AppConfig):
    """Configuration for the billing application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "billing"
    verbose_name = "Billing"

    def ready(self) -> None:
        # Register webhook topic handlers
        from billing.webhooks import handlers  # noqa: F401
