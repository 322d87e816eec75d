"""
Factory Boy factories for billing test data.

Usage:
    from billing.tests.factories import PaymentFactory, SubscriptionFactory

    # A pending checkout for a fresh user
    payment = PaymentFactory()

    # An approved payment already linked to a MercadoPago payment
    payment = PaymentFactory(status=PaymentStatus.APPROVED, provider_payment_id="123")

    # A subscription for a specific user
    subscription = SubscriptionFactory(user=user)
"""

from decimal import Decimal

import factory

from billing.models import Customer, MarketplaceSplit, Payment, Plan, Subscription
from billing.states import Currency, FrequencyType, PaymentStatus, SubscriptionStatus


class UserFactory(factory.django.DjangoModelFactory):
    """Factory for the project's user model."""

    class Meta:
        model = "auth.User"
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"buyer{n}")
    email = factory.Sequence(lambda n: f"buyer{n}@example.com")
    first_name = "Ana"
    last_name = "Pereyra"
    password = factory.PostGenerationMethodCall("set_password", "testpass123")
    is_active = True


class CustomerFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Customer

    user = factory.SubFactory(UserFactory)
    provider_customer_id = factory.Sequence(lambda n: f"{1000000 + n}-cust")
    email = factory.LazyAttribute(lambda o: o.user.email)


class PaymentFactory(factory.django.DjangoModelFactory):
    """
    Factory for Payment instances.

    Defaults to a pending checkout of 100.00 ARS with no provider payment.
    """

    class Meta:
        model = Payment

    user = factory.SubFactory(UserFactory)
    preference_id = factory.Sequence(lambda n: f"123456-pref-{n}")
    status = PaymentStatus.PENDING
    amount = Decimal("100.00")
    currency = Currency.ARS
    metadata = factory.LazyFunction(dict)


class MarketplaceSplitFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = MarketplaceSplit

    payment = factory.SubFactory(PaymentFactory)
    collector_id = factory.Sequence(lambda n: f"{5000000 + n}")
    application_fee_amount = Decimal("10.00")
    net_amount = factory.LazyAttribute(
        lambda o: o.payment.amount - o.application_fee_amount
    )


class SubscriptionFactory(factory.django.DjangoModelFactory):
    """Factory for Subscription instances (pending preapproval by default)."""

    class Meta:
        model = Subscription

    user = factory.SubFactory(UserFactory)
    provider_subscription_id = factory.Sequence(lambda n: f"2c9380848f{n:06d}")
    plan_id = "2c938084plan"
    status = SubscriptionStatus.PENDING
    reason = "Monthly plan"
    metadata = factory.LazyFunction(dict)


class PlanFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Plan

    provider_plan_id = factory.Sequence(lambda n: f"2c938084plan{n:04d}")
    reason = "Monthly plan"
    frequency = 1
    frequency_type = FrequencyType.MONTHS
    transaction_amount = Decimal("1500.00")
    currency_id = Currency.ARS
