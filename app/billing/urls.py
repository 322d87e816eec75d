"""
URL configuration for the billing app.

Routes:
    - POST /webhooks/mercadopago/ - MercadoPago webhook endpoint
    - POST /customer/ - Get or create the user's MercadoPago customer
    - GET/POST /payments/ - List payments / create a checkout
    - GET /payments/<uuid>/ - Payment detail
    - GET/POST /subscriptions/ - List / create subscriptions
    - POST /subscriptions/<uuid>/cancel/ - Cancel a subscription
    - GET/POST /plans/ - List plans / create a plan (staff)
    - GET /oauth/authorize/ - Seller authorization URL
    - POST /oauth/callback/ - Exchange a seller authorization code

All routes are prefixed with /api/v1/billing/ when included in the main URLconf.
"""

from django.urls import path

from billing.views import (
    CustomerView,
    OAuthAuthorizeView,
    OAuthCallbackView,
    PaymentDetailView,
    PaymentListCreateView,
    PlanListCreateView,
    SubscriptionCancelView,
    SubscriptionListCreateView,
)
from billing.webhooks.views import mercadopago_webhook

app_name = "billing"

urlpatterns = [
    # Webhook endpoints
    path("webhooks/mercadopago/", mercadopago_webhook, name="mercadopago_webhook"),
    # Customer
    path("customer/", CustomerView.as_view(), name="customer"),
    # Payments
    path("payments/", PaymentListCreateView.as_view(), name="payment-list"),
    path("payments/<uuid:payment_id>/", PaymentDetailView.as_view(), name="payment-detail"),
    # Subscriptions
    path(
        "subscriptions/",
        SubscriptionListCreateView.as_view(),
        name="subscription-list",
    ),
    path(
        "subscriptions/<uuid:subscription_id>/cancel/",
        SubscriptionCancelView.as_view(),
        name="subscription-cancel",
    ),
    # Plans
    path("plans/", PlanListCreateView.as_view(), name="plan-list"),
    # Marketplace seller onboarding
    path("oauth/authorize/", OAuthAuthorizeView.as_view(), name="oauth-authorize"),
    path("oauth/callback/", OAuthCallbackView.as_view(), name="oauth-callback"),
]
