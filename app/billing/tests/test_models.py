"""
Tests for billing models and status vocabularies.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import IntegrityError
from django.utils import timezone

from billing.models import OAuthToken, Payment, generate_external_reference
from billing.states import (
    PaymentStatus,
    SubscriptionStatus,
    narrow_payment_status,
    narrow_subscription_status,
)
from billing.tests.factories import (
    CustomerFactory,
    MarketplaceSplitFactory,
    PaymentFactory,
    SubscriptionFactory,
    UserFactory,
)


class TestStatusNarrowing:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("approved", PaymentStatus.APPROVED),
            ("charged_back", PaymentStatus.CHARGED_BACK),
            ("in_process", PaymentStatus.PENDING),
            ("in_mediation", PaymentStatus.PENDING),
        ],
    )
    def test_known_payment_statuses(self, value, expected):
        assert narrow_payment_status(value) == expected

    @pytest.mark.parametrize("value", ["", None, "APPROVED", "expired"])
    def test_unknown_payment_statuses(self, value):
        assert narrow_payment_status(value) is None

    def test_subscription_statuses(self):
        assert narrow_subscription_status("paused") == SubscriptionStatus.PAUSED
        assert narrow_subscription_status("finished") is None


@pytest.mark.django_db
class TestPayment:
    def test_defaults(self):
        """Should start pending with a generated external reference."""
        payment = PaymentFactory()

        assert payment.status == PaymentStatus.PENDING
        assert payment.external_reference.startswith("pay_")
        assert payment.provider_payment_id is None
        assert payment.metadata == {}

    def test_external_reference_is_unique_per_payment(self):
        assert PaymentFactory().external_reference != PaymentFactory().external_reference

    def test_generate_external_reference_is_opaque(self):
        reference = generate_external_reference()
        assert reference.startswith("pay_")
        assert len(reference) == 36

    def test_provider_payment_id_unique(self):
        PaymentFactory(provider_payment_id="111")

        with pytest.raises(IntegrityError):
            PaymentFactory(provider_payment_id="111")

    def test_several_payments_without_provider_id(self):
        """Should allow any number of payments still waiting for their first webhook."""
        PaymentFactory()
        PaymentFactory()

        assert Payment.objects.filter(provider_payment_id__isnull=True).count() == 2

    def test_amount_must_be_positive(self):
        with pytest.raises(IntegrityError):
            PaymentFactory(amount=Decimal("0"))

    def test_ordering_newest_first(self):
        user = UserFactory()
        older = PaymentFactory(user=user)
        newer = PaymentFactory(user=user)

        assert list(Payment.objects.filter(user=user)) == [newer, older]

    def test_deleted_with_user(self):
        payment = PaymentFactory()
        payment.user.delete()

        assert not Payment.objects.filter(pk=payment.pk).exists()

    def test_str(self):
        payment = PaymentFactory(amount=Decimal("25.00"))
        assert "25.00 ARS" in str(payment)


@pytest.mark.django_db
class TestMarketplaceSplit:
    def test_split_amounts(self):
        split = MarketplaceSplitFactory(application_fee_amount=Decimal("15.00"))

        assert split.net_amount == Decimal("85.00")
        assert split.payment.marketplace_split == split

    def test_fee_must_be_positive(self):
        with pytest.raises(IntegrityError):
            MarketplaceSplitFactory(
                application_fee_amount=Decimal("0"),
                net_amount=Decimal("100.00"),
            )


@pytest.mark.django_db
class TestCustomerAndSubscription:
    def test_one_customer_per_user(self):
        customer = CustomerFactory()

        with pytest.raises(IntegrityError):
            CustomerFactory(user=customer.user)

    def test_subscription_defaults(self):
        subscription = SubscriptionFactory()

        assert subscription.status == SubscriptionStatus.PENDING
        assert subscription.last_payment_date is None
        assert subscription.summarized is None


@pytest.mark.django_db
class TestOAuthToken:
    def make_token(self, expires_at, user=None):
        return OAuthToken.objects.create(
            user=user or UserFactory(),
            provider_user_id="5000001",
            access_token="APP_USR-seller",
            expires_at=expires_at,
        )

    def test_is_expired(self):
        assert self.make_token(timezone.now() - timedelta(seconds=1)).is_expired
        assert not self.make_token(timezone.now() + timedelta(days=1)).is_expired

    def test_str_omits_credentials(self):
        token = self.make_token(timezone.now())

        assert "APP_USR-seller" not in str(token)
        assert "5000001" in str(token)

    def test_one_token_per_user(self):
        token = self.make_token(timezone.now())

        with pytest.raises(IntegrityError):
            self.make_token(timezone.now(), user=token.user)
