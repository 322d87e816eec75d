"""
Billing models.

Models:
    Customer: Local user ↔ MercadoPago customer
    Payment: One-time checkout attempt
    MarketplaceSplit: Platform/collector split of a Payment
    Subscription: Recurring-billing agreement (preapproval)
    Plan: Reusable preapproval plan
    OAuthToken: Connected marketplace seller credentials
"""

from billing.models.customer import Customer
from billing.models.marketplace_split import MarketplaceSplit
from billing.models.oauth_token import OAuthToken
from billing.models.payment import Payment, generate_external_reference
from billing.models.plan import Plan
from billing.models.subscription import DIRECT_PLAN_ID, Subscription

__all__ = [
    "Customer",
    "DIRECT_PLAN_ID",
    "MarketplaceSplit",
    "OAuthToken",
    "Payment",
    "Plan",
    "Subscription",
    "generate_external_reference",
]
