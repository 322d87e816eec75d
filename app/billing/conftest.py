"""
Pytest fixtures for billing tests.

Provides users, records in common states, and builders for the result
objects MercadoPagoAdapter returns, so tests can patch the adapter
without touching the SDK.

Usage:
    def test_reconcile(pending_payment, provider_payment_factory):
        provider_payment = provider_payment_factory(
            external_reference=pending_payment.external_reference,
        )
"""

from contextlib import ExitStack
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from rest_framework.test import APIClient

from billing.adapters import (
    CustomerResult,
    OAuthTokenResult,
    PlanResult,
    PreapprovalResult,
    PreferenceResult,
    ProviderPayment,
)
from billing.tests.factories import (
    CustomerFactory,
    PaymentFactory,
    SubscriptionFactory,
    UserFactory,
)

ADAPTER_IMPORT_SITES = [
    "billing.services.customer_service.MercadoPagoAdapter",
    "billing.services.checkout_service.MercadoPagoAdapter",
    "billing.services.subscription_service.MercadoPagoAdapter",
    "billing.services.plan_service.MercadoPagoAdapter",
    "billing.services.oauth_service.MercadoPagoAdapter",
    "billing.webhooks.handlers.MercadoPagoAdapter",
]


# =============================================================================
# Users & Clients
# =============================================================================


@pytest.fixture
def user(db):
    """Create a test user."""
    return UserFactory()


@pytest.fixture
def staff_user(db):
    return UserFactory(is_staff=True)


@pytest.fixture
def customer(db, user):
    """User's MercadoPago customer."""
    return CustomerFactory(user=user, provider_customer_id="1234567-cust")


@pytest.fixture
def api_client(user):
    """API client authenticated as user."""
    client = APIClient()
    client.force_authenticate(user=user)
    return client


# =============================================================================
# Records
# =============================================================================


@pytest.fixture
def pending_payment(db, user):
    """A 100.00 ARS checkout awaiting its first notification."""
    return PaymentFactory(user=user, amount=Decimal("100.00"))


@pytest.fixture
def pending_subscription(db, user):
    return SubscriptionFactory(user=user, provider_subscription_id="2c9380848f-sub-1")


# =============================================================================
# Provider results
# =============================================================================


@pytest.fixture
def provider_payment_factory():
    """Build ProviderPayment results as MercadoPagoAdapter.get_payment returns them."""

    def build(**overrides) -> ProviderPayment:
        data = {
            "id": "987654321",
            "status": "approved",
            "status_detail": "accredited",
            "transaction_amount": 100.0,
            "currency_id": "ARS",
            "external_reference": "",
            "payment_method_id": "visa",
            "payment_type_id": "credit_card",
            "date_approved": "2026-03-01T12:00:00.000-03:00",
        }
        data.update(overrides)
        return ProviderPayment.from_response(data)

    return build


@pytest.fixture
def preapproval_factory():
    """Build PreapprovalResult objects."""

    def build(**overrides) -> PreapprovalResult:
        data = {
            "id": "2c9380848f-sub-1",
            "status": "authorized",
            "reason": "Monthly plan",
            "init_point": "https://www.mercadopago.com.ar/subscriptions/checkout?preapproval_id=2c9380848f-sub-1",
            "next_payment_date": "2026-04-01T12:00:00.000-03:00",
        }
        data.update(overrides)
        return PreapprovalResult.from_response(data)

    return build


@pytest.fixture
def mock_adapter():
    """
    Patch MercadoPagoAdapter everywhere it is imported.

    The same MagicMock stands in for the class in services and webhook
    handlers, preloaded with successful results.
    """
    mock = MagicMock()
    with ExitStack() as stack:
        for target in ADAPTER_IMPORT_SITES:
            stack.enter_context(patch(target, mock))

        mock.search_customer.return_value = None
        mock.create_customer.return_value = CustomerResult(
            id="1234567-cust",
            email="buyer@example.com",
        )
        mock.create_preference.return_value = PreferenceResult(
            id="123456-pref-abc",
            init_point="https://www.mercadopago.com.ar/checkout/v1/redirect?pref_id=123456-pref-abc",
            sandbox_init_point="https://sandbox.mercadopago.com.ar/checkout/v1/redirect?pref_id=123456-pref-abc",
        )
        mock.create_preapproval.return_value = PreapprovalResult(
            id="2c9380848f-new",
            status="pending",
            reason="Monthly plan",
            init_point="https://www.mercadopago.com.ar/subscriptions/checkout?preapproval_id=2c9380848f-new",
        )
        mock.create_plan.return_value = PlanResult(
            id="2c938084plan-new",
            status="active",
            reason="Monthly plan",
        )
        mock.exchange_oauth_code.return_value = OAuthTokenResult(
            access_token="APP_USR-seller-token",
            user_id="5000001",
            expires_in=15552000,
            refresh_token="TG-seller-refresh",
            public_key="APP_USR-seller-public",
        )

        yield mock
