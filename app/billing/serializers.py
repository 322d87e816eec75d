"""
DRF serializers for the billing app.

Request serializers validate client input for the creation endpoints;
model serializers render the records returned by every endpoint. The
rendered output of a creation request is also what gets cached for
idempotent replay, so it must stay JSON-compatible.

Related files:
    - services/: Business logic consuming validated_data
    - views.py: API views
    - validators.py: Shared amount/URL/key validation
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from billing.models import (
    Customer,
    MarketplaceSplit,
    OAuthToken,
    Payment,
    Plan,
    Subscription,
)
from billing.states import Currency, FrequencyType
from billing.validators import (
    MAX_AMOUNT,
    MAX_FREQUENCY,
    MIN_FREQUENCY,
    is_valid_callback_url,
    is_valid_idempotency_key,
    sanitize_metadata,
)

MIN_AMOUNT = Decimal("0.01")
MAX_ITEMS = 100
MAX_ITEM_QUANTITY = 10000


# =============================================================================
# Shared fields
# =============================================================================


def _money_field(**kwargs) -> serializers.DecimalField:
    return serializers.DecimalField(
        max_digits=14,
        decimal_places=2,
        min_value=MIN_AMOUNT,
        max_value=MAX_AMOUNT,
        **kwargs,
    )


class CallbackURLField(serializers.URLField):
    """URL restricted to BILLING_TRUSTED_ORIGINS."""

    default_error_messages = {
        "untrusted": "URL host is not in the trusted origins list.",
    }

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        if not is_valid_callback_url(value):
            self.fail("untrusted")
        return value


class MetadataField(serializers.JSONField):
    """JSON object sanitized before it reaches the service layer."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        if not isinstance(value, dict):
            raise serializers.ValidationError("Metadata must be a JSON object.")
        return sanitize_metadata(value)


class IdempotencyKeyField(serializers.CharField):
    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        if not is_valid_idempotency_key(value):
            raise serializers.ValidationError(
                "Must be a UUID v4 or 8-64 letters, digits, '_' or '-'."
            )
        return value


# =============================================================================
# Payment creation
# =============================================================================


class LineItemSerializer(serializers.Serializer):
    """One checkout line item."""

    id = serializers.CharField(max_length=256)
    title = serializers.CharField(min_length=1, max_length=256)
    description = serializers.CharField(max_length=600, required=False, allow_blank=True)
    quantity = serializers.IntegerField(min_value=1, max_value=MAX_ITEM_QUANTITY)
    unit_price = _money_field()
    currency_id = serializers.ChoiceField(choices=Currency.choices, default=Currency.ARS)


class MarketplaceSerializer(serializers.Serializer):
    """
    Marketplace split configuration.

    Exactly one of application_fee (fixed amount) or
    application_fee_percentage must be given.
    """

    collector_id = serializers.CharField(max_length=64)
    collector_email = serializers.EmailField(required=False, allow_blank=True)
    application_fee = _money_field(required=False)
    application_fee_percentage = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=MIN_AMOUNT,
        max_value=Decimal("100"),
        required=False,
    )

    def validate(self, attrs: dict) -> dict:
        has_fee = attrs.get("application_fee") is not None
        has_percentage = attrs.get("application_fee_percentage") is not None
        if has_fee == has_percentage:
            raise serializers.ValidationError(
                "Provide either application_fee or application_fee_percentage."
            )
        return attrs


class BackUrlsSerializer(serializers.Serializer):
    success = CallbackURLField(required=False)
    failure = CallbackURLField(required=False)
    pending = CallbackURLField(required=False)


class CreatePaymentSerializer(serializers.Serializer):
    """
    Request body for POST /payments/.

    Usage:
        serializer = CreatePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        params = CreatePaymentParams.from_validated(serializer.validated_data)
    """

    items = LineItemSerializer(many=True, allow_empty=False)
    metadata = MetadataField(required=False, default=dict)
    marketplace = MarketplaceSerializer(required=False)
    back_urls = BackUrlsSerializer(required=False)
    idempotency_key = IdempotencyKeyField(required=False, max_length=64)

    def validate_items(self, items: list[dict]) -> list[dict]:
        if len(items) > MAX_ITEMS:
            raise serializers.ValidationError(f"At most {MAX_ITEMS} items are allowed.")
        currencies = {item["currency_id"] for item in items}
        if len(currencies) > 1:
            raise serializers.ValidationError("All items must use the same currency.")
        return items


# =============================================================================
# Subscriptions & plans
# =============================================================================


class FreeTrialSerializer(serializers.Serializer):
    frequency = serializers.IntegerField(min_value=MIN_FREQUENCY, max_value=MAX_FREQUENCY)
    frequency_type = serializers.ChoiceField(choices=FrequencyType.choices)


class AutoRecurringSerializer(serializers.Serializer):
    """Inline recurring-billing terms."""

    frequency = serializers.IntegerField(min_value=MIN_FREQUENCY, max_value=MAX_FREQUENCY)
    frequency_type = serializers.ChoiceField(choices=FrequencyType.choices)
    transaction_amount = _money_field()
    currency_id = serializers.ChoiceField(choices=Currency.choices, default=Currency.ARS)
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False)
    free_trial = FreeTrialSerializer(required=False)

    def validate(self, attrs: dict) -> dict:
        start, end = attrs.get("start_date"), attrs.get("end_date")
        if start and end and end <= start:
            raise serializers.ValidationError({"end_date": "Must be after start_date."})
        return attrs


class CreateSubscriptionSerializer(serializers.Serializer):
    """
    Request body for POST /subscriptions/.

    Either preapproval_plan_id, or reason together with auto_recurring.
    """

    preapproval_plan_id = serializers.CharField(max_length=64, required=False)
    reason = serializers.CharField(max_length=256, required=False)
    auto_recurring = AutoRecurringSerializer(required=False)
    back_url = CallbackURLField(required=False)
    metadata = MetadataField(required=False, default=dict)
    idempotency_key = IdempotencyKeyField(required=False, max_length=64)

    def validate(self, attrs: dict) -> dict:
        if attrs.get("preapproval_plan_id"):
            return attrs
        if not attrs.get("reason") or not attrs.get("auto_recurring"):
            raise serializers.ValidationError(
                "Provide preapproval_plan_id, or reason and auto_recurring."
            )
        return attrs


class CreatePlanSerializer(serializers.Serializer):
    """Request body for POST /plans/."""

    reason = serializers.CharField(min_length=1, max_length=256)
    auto_recurring = AutoRecurringSerializer()
    repetitions = serializers.IntegerField(min_value=1, required=False)
    back_url = CallbackURLField(required=False)


class OAuthAuthorizeQuerySerializer(serializers.Serializer):
    """Query string for GET /oauth/authorize/."""

    redirect_uri = serializers.URLField(max_length=2048)


class OAuthCallbackSerializer(serializers.Serializer):
    """Request body for POST /oauth/callback/."""

    code = serializers.CharField(max_length=512)
    redirect_uri = serializers.URLField(max_length=2048)


# =============================================================================
# Model serializers (responses)
# =============================================================================


class MarketplaceSplitSerializer(serializers.ModelSerializer):
    class Meta:
        model = MarketplaceSplit
        fields = [
            "collector_id",
            "collector_email",
            "application_fee_amount",
            "application_fee_percentage",
            "net_amount",
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    """Payment as returned by the API."""

    marketplace_split = MarketplaceSplitSerializer(read_only=True, allow_null=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "external_reference",
            "provider_payment_id",
            "preference_id",
            "status",
            "status_detail",
            "amount",
            "currency",
            "payment_method_id",
            "payment_type_id",
            "metadata",
            "marketplace_split",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class SubscriptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Subscription
        fields = [
            "id",
            "provider_subscription_id",
            "plan_id",
            "status",
            "reason",
            "next_payment_date",
            "last_payment_date",
            "summarized",
            "metadata",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PlanSerializer(serializers.ModelSerializer):
    class Meta:
        model = Plan
        fields = [
            "id",
            "provider_plan_id",
            "reason",
            "frequency",
            "frequency_type",
            "transaction_amount",
            "currency_id",
            "repetitions",
            "free_trial",
            "created_at",
        ]
        read_only_fields = fields


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ["id", "provider_customer_id", "email", "created_at"]
        read_only_fields = fields


class OAuthTokenSerializer(serializers.ModelSerializer):
    """Connected seller account; credentials are never rendered."""

    class Meta:
        model = OAuthToken
        fields = ["id", "provider_user_id", "public_key", "expires_at", "created_at"]
        read_only_fields = fields
