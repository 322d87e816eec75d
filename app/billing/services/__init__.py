"""
Billing services.

Services hold the business logic behind the billing API views:
customer registration, checkout creation, subscriptions, plans and
seller OAuth onboarding.
Webhook reconciliation lives in billing.webhooks.
"""

from billing.services.checkout_service import (
    CheckoutService,
    CreatePaymentParams,
    LineItem,
    MarketplaceConfig,
)
from billing.services.customer_service import CustomerService
from billing.services.oauth_service import OAuthService
from billing.services.plan_service import PlanService
from billing.services.subscription_service import (
    CreateSubscriptionParams,
    SubscriptionService,
)

__all__ = [
    "CheckoutService",
    "CreatePaymentParams",
    "CreateSubscriptionParams",
    "CustomerService",
    "LineItem",
    "MarketplaceConfig",
    "OAuthService",
    "PlanService",
    "SubscriptionService",
]
