"""
Billing admin configuration.

Records are read-mostly: their state comes from MercadoPago, so status
fields are read-only here.
"""

from django.contrib import admin

from billing.models import (
    Customer,
    MarketplaceSplit,
    OAuthToken,
    Payment,
    Plan,
    Subscription,
)


class MarketplaceSplitInline(admin.StackedInline):
    model = MarketplaceSplit
    extra = 0
    can_delete = False
    readonly_fields = [
        "collector_id",
        "collector_email",
        "application_fee_amount",
        "application_fee_percentage",
        "net_amount",
    ]


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ["id", "user", "provider_customer_id", "email", "created_at"]
    search_fields = ["provider_customer_id", "email", "user__email"]
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["-created_at"]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    Provides visibility into checkout state and correlation ids.
    """

    list_display = [
        "id",
        "user",
        "status",
        "amount",
        "currency",
        "provider_payment_id",
        "created_at",
    ]
    list_filter = ["status", "currency", "payment_type_id"]
    search_fields = [
        "id",
        "external_reference",
        "provider_payment_id",
        "preference_id",
        "user__email",
    ]
    readonly_fields = [
        "id",
        "external_reference",
        "provider_payment_id",
        "preference_id",
        "status",
        "status_detail",
        "created_at",
        "updated_at",
    ]
    inlines = [MarketplaceSplitInline]
    ordering = ["-created_at"]


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "user",
        "plan_id",
        "status",
        "next_payment_date",
        "last_payment_date",
        "created_at",
    ]
    list_filter = ["status"]
    search_fields = ["id", "provider_subscription_id", "plan_id", "user__email"]
    readonly_fields = [
        "id",
        "provider_subscription_id",
        "status",
        "summarized",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]


@admin.register(Plan)
class PlanAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "reason",
        "frequency",
        "frequency_type",
        "transaction_amount",
        "currency_id",
        "created_at",
    ]
    list_filter = ["frequency_type", "currency_id"]
    search_fields = ["reason", "provider_plan_id"]
    readonly_fields = ["id", "provider_plan_id", "created_at", "updated_at"]
    ordering = ["-created_at"]


@admin.register(OAuthToken)
class OAuthTokenAdmin(admin.ModelAdmin):
    list_display = ["id", "user", "provider_user_id", "expires_at", "updated_at"]
    search_fields = ["provider_user_id", "user__email"]
    # Credentials stay out of the admin
    exclude = ["access_token", "refresh_token"]
    readonly_fields = [
        "id",
        "user",
        "provider_user_id",
        "public_key",
        "expires_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
