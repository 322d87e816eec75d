"""
Tests for billing services.

Tests cover:
- Customer get-or-create against MercadoPago
- Checkout creation, marketplace splits and idempotent replay
- Creation rate limiting
- Subscription creation, cancellation and listing
- Plan creation
- Seller OAuth code exchange
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.test import override_settings
from django.utils import timezone

from billing.adapters import CustomerResult, OAuthTokenResult
from billing.exceptions import (
    BillingRateLimitError,
    IdempotencyConflictError,
    MercadoPagoAPIUnavailableError,
    MercadoPagoAuthenticationError,
    PaymentNotFoundError,
    PaymentValidationError,
)
from billing.models import (
    Customer,
    MarketplaceSplit,
    OAuthToken,
    Payment,
    Plan,
    Subscription,
)
from billing.services import (
    CheckoutService,
    CreatePaymentParams,
    CreateSubscriptionParams,
    CustomerService,
    LineItem,
    MarketplaceConfig,
    OAuthService,
    PlanService,
    SubscriptionService,
)
from billing.states import SubscriptionStatus
from billing.tests.factories import (
    PaymentFactory,
    PlanFactory,
    SubscriptionFactory,
    UserFactory,
)


def customer_per_email(email, **kwargs):
    return CustomerResult(id=f"cust-{email}", email=email)


def checkout_params(**overrides) -> CreatePaymentParams:
    data = {
        "items": [
            LineItem(id="sku-1", title="Course", quantity=2, unit_price=Decimal("50.00")),
        ],
    }
    data.update(overrides)
    return CreatePaymentParams(**data)


# =============================================================================
# CustomerService
# =============================================================================


@pytest.mark.django_db
class TestCustomerService:
    def test_existing_customer_reused(self, user, customer, mock_adapter):
        """Should not call MercadoPago when a local customer exists."""
        assert CustomerService.get_or_create_customer(user) == customer
        mock_adapter.search_customer.assert_not_called()

    def test_creates_provider_customer(self, user, mock_adapter):
        customer = CustomerService.get_or_create_customer(user)

        assert customer.provider_customer_id == "1234567-cust"
        assert customer.email == user.email
        mock_adapter.create_customer.assert_called_once_with(
            user.email, first_name=user.first_name, last_name=user.last_name
        )

    def test_links_existing_provider_customer(self, user, mock_adapter):
        """Should reuse a MercadoPago customer already registered with the email."""
        mock_adapter.search_customer.return_value = CustomerResult(id="999-existing")

        customer = CustomerService.get_or_create_customer(user)

        assert customer.provider_customer_id == "999-existing"
        mock_adapter.create_customer.assert_not_called()

    def test_email_required(self, mock_adapter):
        user = UserFactory(email="")

        with pytest.raises(PaymentValidationError) as exc_info:
            CustomerService.get_or_create_customer(user)

        assert exc_info.value.error_code == "EMAIL_REQUIRED"
        assert not Customer.objects.exists()


# =============================================================================
# CheckoutService
# =============================================================================


@pytest.mark.django_db
class TestCheckoutServiceCreatePayment:
    def test_creates_pending_payment(self, user, mock_adapter):
        """Should create the preference and persist a pending Payment."""
        response, replayed = CheckoutService.create_payment(user, checkout_params())

        assert replayed is False
        assert response["checkout_url"].startswith("https://www.mercadopago.com.ar/")
        assert response["preference_id"] == "123456-pref-abc"

        payment = Payment.objects.get(user=user)
        assert payment.status == "pending"
        assert payment.amount == Decimal("100.00")
        assert payment.preference_id == "123456-pref-abc"
        assert response["payment"]["id"] == str(payment.id)

    def test_preference_parameters(self, user, mock_adapter):
        """Should send the generated reference, webhook URL, back URLs and expiry."""
        CheckoutService.create_payment(user, checkout_params(metadata={"order": "A1"}))

        params = mock_adapter.create_preference.call_args.args[0]
        payment = Payment.objects.get(user=user)
        assert params.external_reference == payment.external_reference
        assert params.notification_url == (
            "https://shop.example.com/api/v1/billing/webhooks/mercadopago/"
        )
        assert params.back_urls["success"] == "https://shop.example.com/payment/success"
        assert params.items[0]["unit_price"] == 50.0
        assert params.metadata["order"] == "A1"
        assert params.metadata["user_id"] == str(user.pk)
        assert (params.expiration_date_to - params.expiration_date_from).days == 30

    @override_settings(BILLING_NOTIFICATION_URL="https://hooks.example.org/mp")
    def test_configured_notification_url(self, user, mock_adapter):
        CheckoutService.create_payment(user, checkout_params())

        params = mock_adapter.create_preference.call_args.args[0]
        assert params.notification_url == "https://hooks.example.org/mp"

    def test_marketplace_fixed_fee(self, user, mock_adapter):
        params = checkout_params(
            marketplace=MarketplaceConfig(collector_id="5000001", application_fee=Decimal("15.00"))
        )

        CheckoutService.create_payment(user, params)

        split = MarketplaceSplit.objects.get(payment__user=user)
        assert split.application_fee_amount == Decimal("15.00")
        assert split.net_amount == Decimal("85.00")
        sent = mock_adapter.create_preference.call_args.args[0]
        assert sent.marketplace == "5000001"
        assert sent.marketplace_fee == Decimal("15.00")

    def test_marketplace_percentage_fee(self, user, mock_adapter):
        """Should round the percentage fee to cents."""
        params = checkout_params(
            items=[LineItem(id="a", title="A", quantity=1, unit_price=Decimal("33.33"))],
            marketplace=MarketplaceConfig(
                collector_id="5000001",
                application_fee_percentage=Decimal("10"),
            ),
        )

        CheckoutService.create_payment(user, params)

        split = MarketplaceSplit.objects.get(payment__user=user)
        assert split.application_fee_amount == Decimal("3.33")
        assert split.application_fee_percentage == Decimal("10")
        assert split.net_amount == Decimal("30.00")

    @pytest.mark.parametrize("fee", [Decimal("100.00"), Decimal("150.00")])
    def test_marketplace_fee_must_be_below_total(self, user, mock_adapter, fee):
        params = checkout_params(
            marketplace=MarketplaceConfig(collector_id="5000001", application_fee=fee)
        )

        with pytest.raises(PaymentValidationError) as exc_info:
            CheckoutService.create_payment(user, params)

        assert exc_info.value.error_code == "INVALID_MARKETPLACE_FEE"
        mock_adapter.create_preference.assert_not_called()
        assert not Payment.objects.exists()

    def test_total_above_maximum(self, user, mock_adapter):
        params = checkout_params(
            items=[
                LineItem(id="a", title="A", quantity=2, unit_price=Decimal("999999999")),
            ]
        )

        with pytest.raises(PaymentValidationError) as exc_info:
            CheckoutService.create_payment(user, params)

        assert exc_info.value.error_code == "INVALID_AMOUNT"

    def test_provider_failure_creates_nothing(self, user, mock_adapter):
        mock_adapter.create_preference.side_effect = MercadoPagoAPIUnavailableError("down")

        with pytest.raises(MercadoPagoAPIUnavailableError):
            CheckoutService.create_payment(user, checkout_params())

        assert not Payment.objects.exists()


@pytest.mark.django_db
class TestCheckoutServiceIdempotency:
    def test_same_key_replays_response(self, user, mock_adapter):
        """Should create one Payment and return an identical response on retry."""
        first, first_replayed = CheckoutService.create_payment(
            user, checkout_params(idempotency_key="order-12345")
        )
        second, second_replayed = CheckoutService.create_payment(
            user, checkout_params(idempotency_key="order-12345")
        )

        assert first == second
        assert (first_replayed, second_replayed) == (False, True)
        assert Payment.objects.filter(user=user).count() == 1
        mock_adapter.create_preference.assert_called_once()

    def test_idempotency_key_forwarded(self, user, mock_adapter):
        CheckoutService.create_payment(user, checkout_params(idempotency_key="order-12345"))

        params = mock_adapter.create_preference.call_args.args[0]
        assert params.idempotency_key == "order-12345"

    def test_same_key_different_body(self, user, mock_adapter):
        CheckoutService.create_payment(user, checkout_params(idempotency_key="order-12345"))

        with pytest.raises(IdempotencyConflictError):
            CheckoutService.create_payment(
                user,
                checkout_params(idempotency_key="order-12345", metadata={"changed": True}),
            )

    def test_key_scoped_per_user(self, user, mock_adapter):
        mock_adapter.create_customer.side_effect = customer_per_email
        other = UserFactory()

        CheckoutService.create_payment(user, checkout_params(idempotency_key="order-12345"))
        _, replayed = CheckoutService.create_payment(
            other, checkout_params(idempotency_key="order-12345")
        )

        assert replayed is False
        assert Payment.objects.count() == 2

    def test_failed_attempt_can_be_retried(self, user, mock_adapter):
        create_preference = mock_adapter.create_preference
        success = create_preference.return_value
        create_preference.side_effect = [MercadoPagoAPIUnavailableError("down"), success]

        with pytest.raises(MercadoPagoAPIUnavailableError):
            CheckoutService.create_payment(user, checkout_params(idempotency_key="order-12345"))
        _, replayed = CheckoutService.create_payment(
            user, checkout_params(idempotency_key="order-12345")
        )

        assert replayed is False
        assert Payment.objects.count() == 1


@pytest.mark.django_db
class TestCheckoutServiceRateLimit:
    @override_settings(BILLING_PAYMENT_RATE_LIMIT=2)
    def test_rejects_after_limit(self, user, mock_adapter):
        CheckoutService.create_payment(user, checkout_params())
        CheckoutService.create_payment(user, checkout_params())

        with pytest.raises(BillingRateLimitError):
            CheckoutService.create_payment(user, checkout_params())

        assert Payment.objects.count() == 2

    @override_settings(BILLING_PAYMENT_RATE_LIMIT=1)
    def test_limit_is_per_user(self, user, mock_adapter):
        mock_adapter.create_customer.side_effect = customer_per_email
        CheckoutService.create_payment(user, checkout_params())

        CheckoutService.create_payment(UserFactory(), checkout_params())

        assert Payment.objects.count() == 2


@pytest.mark.django_db
class TestCheckoutServiceReads:
    def test_get_own_payment(self, user):
        payment = PaymentFactory(user=user)
        assert CheckoutService.get_payment(user, payment.id) == payment

    def test_other_users_payment_not_found(self, user):
        payment = PaymentFactory()

        with pytest.raises(PaymentNotFoundError):
            CheckoutService.get_payment(user, payment.id)

    def test_list_payments_own_newest_first(self, user):
        payments = [PaymentFactory(user=user) for _ in range(3)]
        PaymentFactory()

        listed = list(CheckoutService.list_payments(user))

        assert set(listed) == set(payments)
        assert [p.created_at for p in listed] == sorted(
            (p.created_at for p in listed), reverse=True
        )


# =============================================================================
# SubscriptionService
# =============================================================================


@pytest.mark.django_db
class TestSubscriptionService:
    def test_create_from_plan(self, user, mock_adapter):
        response, replayed = SubscriptionService.create_subscription(
            user, CreateSubscriptionParams(preapproval_plan_id="2c938084plan")
        )

        subscription = Subscription.objects.get(user=user)
        assert replayed is False
        assert subscription.status == SubscriptionStatus.PENDING
        assert subscription.plan_id == "2c938084plan"
        assert subscription.provider_subscription_id == "2c9380848f-new"
        assert response["checkout_url"].startswith("https://www.mercadopago.com.ar/")
        assert response["subscription"]["id"] == str(subscription.id)

    def test_external_reference_is_local_id(self, user, mock_adapter):
        """Should send the local subscription id so charges can be traced back."""
        SubscriptionService.create_subscription(
            user, CreateSubscriptionParams(preapproval_plan_id="2c938084plan")
        )

        params = mock_adapter.create_preapproval.call_args.args[0]
        subscription = Subscription.objects.get(user=user)
        assert params.external_reference == str(subscription.id)
        assert params.back_url == "https://shop.example.com/subscription/success"

    def test_create_with_inline_terms(self, user, mock_adapter):
        params = CreateSubscriptionParams.from_validated(
            {
                "reason": "Gym membership",
                "auto_recurring": {
                    "frequency": 1,
                    "frequency_type": "months",
                    "transaction_amount": Decimal("1500.00"),
                    "currency_id": "ARS",
                },
                "metadata": {"tier": "gold"},
            }
        )

        SubscriptionService.create_subscription(user, params)

        sent = mock_adapter.create_preapproval.call_args.args[0]
        assert sent.auto_recurring["transaction_amount"] == 1500.0
        subscription = Subscription.objects.get(user=user)
        assert subscription.plan_id == "Gym membership"
        assert subscription.metadata == {"tier": "gold"}

    def test_requires_plan_or_terms(self):
        with pytest.raises(ValueError):
            CreateSubscriptionParams(reason="Gym")

    def test_idempotent_replay(self, user, mock_adapter):
        params = CreateSubscriptionParams(
            preapproval_plan_id="2c938084plan", idempotency_key="sub-key-001"
        )

        first, _ = SubscriptionService.create_subscription(user, params)
        second, replayed = SubscriptionService.create_subscription(user, params)

        assert replayed is True
        assert first == second
        assert Subscription.objects.count() == 1

    def test_cancel(self, user, mock_adapter):
        subscription = SubscriptionFactory(user=user, status=SubscriptionStatus.AUTHORIZED)

        result = SubscriptionService.cancel_subscription(user, subscription.id)

        assert result.status == SubscriptionStatus.CANCELLED
        subscription.refresh_from_db()
        assert subscription.status == SubscriptionStatus.CANCELLED
        mock_adapter.update_preapproval.assert_called_once_with(
            subscription.provider_subscription_id, {"status": "cancelled"}
        )

    def test_cancel_already_cancelled_is_noop(self, user, mock_adapter):
        subscription = SubscriptionFactory(user=user, status=SubscriptionStatus.CANCELLED)

        SubscriptionService.cancel_subscription(user, subscription.id)

        mock_adapter.update_preapproval.assert_not_called()

    def test_cancel_provider_failure_keeps_status(self, user, mock_adapter):
        subscription = SubscriptionFactory(user=user, status=SubscriptionStatus.AUTHORIZED)
        mock_adapter.update_preapproval.side_effect = MercadoPagoAPIUnavailableError("down")

        with pytest.raises(MercadoPagoAPIUnavailableError):
            SubscriptionService.cancel_subscription(user, subscription.id)

        subscription.refresh_from_db()
        assert subscription.status == SubscriptionStatus.AUTHORIZED

    def test_cancel_other_users_subscription(self, user, mock_adapter):
        subscription = SubscriptionFactory()

        with pytest.raises(PaymentNotFoundError) as exc_info:
            SubscriptionService.cancel_subscription(user, subscription.id)

        assert exc_info.value.error_code == "SUBSCRIPTION_NOT_FOUND"

    def test_list_subscriptions(self, user):
        SubscriptionFactory(user=user)
        SubscriptionFactory()

        assert len(SubscriptionService.list_subscriptions(user)) == 1


# =============================================================================
# PlanService
# =============================================================================


@pytest.mark.django_db
class TestPlanService:
    def test_create_plan(self, mock_adapter):
        plan = PlanService.create_plan(
            {
                "reason": "Monthly plan",
                "repetitions": 12,
                "auto_recurring": {
                    "frequency": 1,
                    "frequency_type": "months",
                    "transaction_amount": Decimal("1500.00"),
                    "currency_id": "ARS",
                    "free_trial": {"frequency": 7, "frequency_type": "days"},
                },
            }
        )

        assert plan.provider_plan_id == "2c938084plan-new"
        assert plan.repetitions == 12
        assert plan.free_trial == {"frequency": 7, "frequency_type": "days"}
        sent = mock_adapter.create_plan.call_args.args[0]
        assert sent.auto_recurring["repetitions"] == 12
        assert sent.back_url == "https://shop.example.com/plan/created"
        assert Plan.objects.count() == 1

    def test_list_plans(self):
        PlanFactory()
        PlanFactory()

        assert PlanService.list_plans().count() == 2


# =============================================================================
# OAuthService
# =============================================================================

SELLER_REDIRECT = "https://shop.example.com/sellers/connected"


@pytest.mark.django_db
class TestOAuthService:
    @pytest.fixture(autouse=True)
    def oauth_app(self, settings):
        settings.MERCADOPAGO_APP_ID = "1234567890"
        settings.MERCADOPAGO_APP_SECRET = "app-secret"

    def test_authorization_url_carries_user_state(self, user):
        url = OAuthService.get_authorization_url(user, SELLER_REDIRECT)

        assert url.startswith("https://auth.mercadopago.com/authorization?")
        assert f"state={user.pk}" in url

    def test_authorization_url_untrusted_redirect(self, user):
        with pytest.raises(PaymentValidationError) as exc_info:
            OAuthService.get_authorization_url(user, "https://evil.example.net/cb")

        assert exc_info.value.error_code == "INVALID_CALLBACK_URL"

    def test_exchange_requires_secret(self, user, settings, mock_adapter):
        settings.MERCADOPAGO_APP_SECRET = ""

        with pytest.raises(PaymentValidationError) as exc_info:
            OAuthService.exchange_code(user, "TG-code", SELLER_REDIRECT)

        assert exc_info.value.error_code == "OAUTH_NOT_CONFIGURED"
        mock_adapter.exchange_oauth_code.assert_not_called()

    def test_exchange_stores_token(self, user, mock_adapter):
        before = timezone.now()

        token = OAuthService.exchange_code(user, "TG-code", SELLER_REDIRECT)

        assert token.user == user
        assert token.provider_user_id == "5000001"
        assert token.refresh_token == "TG-seller-refresh"
        assert token.public_key == "APP_USR-seller-public"
        assert token.expires_at >= before + timedelta(seconds=15552000)

    def test_reconnect_replaces_token(self, user, mock_adapter):
        OAuthService.exchange_code(user, "TG-first", SELLER_REDIRECT)
        mock_adapter.exchange_oauth_code.return_value = OAuthTokenResult(
            access_token="APP_USR-second", user_id="5000001", expires_in=60
        )

        OAuthService.exchange_code(user, "TG-second", SELLER_REDIRECT)

        assert OAuthToken.objects.count() == 1
        assert OAuthToken.objects.get(user=user).access_token == "APP_USR-second"

    def test_rejected_credentials(self, user, mock_adapter):
        mock_adapter.exchange_oauth_code.side_effect = MercadoPagoAuthenticationError(
            "invalid client", status_code=401
        )

        with pytest.raises(PaymentValidationError) as exc_info:
            OAuthService.exchange_code(user, "TG-code", SELLER_REDIRECT)

        assert exc_info.value.error_code == "OAUTH_CODE_REJECTED"
        assert not OAuthToken.objects.exists()

    def test_provider_outage_propagates(self, user, mock_adapter):
        mock_adapter.exchange_oauth_code.side_effect = MercadoPagoAPIUnavailableError(
            "down", status_code=503
        )

        with pytest.raises(MercadoPagoAPIUnavailableError):
            OAuthService.exchange_code(user, "TG-code", SELLER_REDIRECT)
