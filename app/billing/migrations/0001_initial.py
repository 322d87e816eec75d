import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import billing.models.payment


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "provider_customer_id",
                    models.CharField(
                        help_text="MercadoPago customer ID", max_length=64, unique=True
                    ),
                ),
                (
                    "email",
                    models.EmailField(
                        help_text="Email registered with MercadoPago", max_length=254
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        help_text="User this MercadoPago customer belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="mercadopago_customer",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Customer",
                "verbose_name_plural": "Customers",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "external_reference",
                    models.CharField(
                        default=billing.models.payment.generate_external_reference,
                        editable=False,
                        help_text="Locally generated reference echoed back by MercadoPago",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "provider_payment_id",
                    models.CharField(
                        blank=True,
                        help_text="MercadoPago payment ID (known after the first notification)",
                        max_length=64,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "preference_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="MercadoPago checkout preference ID",
                        max_length=128,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("authorized", "Authorized"),
                            ("rejected", "Rejected"),
                            ("cancelled", "Cancelled"),
                            ("refunded", "Refunded"),
                            ("charged_back", "Charged Back"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Latest status reported by MercadoPago",
                        max_length=20,
                    ),
                ),
                (
                    "status_detail",
                    models.CharField(
                        blank=True,
                        help_text="Provider sub-reason, e.g. 'accredited' or 'cc_rejected_other_reason'",
                        max_length=128,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Total amount of the checkout",
                        max_digits=14,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        choices=[
                            ("ARS", "Argentine Peso"),
                            ("BRL", "Brazilian Real"),
                            ("CLP", "Chilean Peso"),
                            ("MXN", "Mexican Peso"),
                            ("COP", "Colombian Peso"),
                            ("PEN", "Peruvian Sol"),
                            ("UYU", "Uruguayan Peso"),
                        ],
                        default="ARS",
                        help_text="ISO 4217 currency code",
                        max_length=3,
                    ),
                ),
                (
                    "payment_method_id",
                    models.CharField(
                        blank=True,
                        help_text="Payment method used, e.g. 'visa' or 'pix'",
                        max_length=64,
                    ),
                ),
                (
                    "payment_type_id",
                    models.CharField(
                        blank=True,
                        help_text="Payment type, e.g. 'credit_card' or 'ticket'",
                        max_length=64,
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True, default=dict, help_text="Sanitized client metadata"
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User who started the checkout",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="billing_payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["user", "created_at"], name="billing_pay_user_created_idx"
                    ),
                    models.Index(
                        fields=["user", "status"], name="billing_pay_user_status_idx"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="billing_payment_amount_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="MarketplaceSplit",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "collector_id",
                    models.CharField(
                        help_text="MercadoPago user ID of the collector", max_length=64
                    ),
                ),
                (
                    "collector_email",
                    models.EmailField(
                        blank=True, help_text="Collector contact email", max_length=254
                    ),
                ),
                (
                    "application_fee_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Platform commission (marketplace_fee)",
                        max_digits=14,
                    ),
                ),
                (
                    "application_fee_percentage",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Commission percentage, when the fee was requested as a percentage",
                        max_digits=5,
                        null=True,
                    ),
                ),
                (
                    "net_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Amount the collector receives",
                        max_digits=14,
                    ),
                ),
                (
                    "payment",
                    models.OneToOneField(
                        help_text="Payment being split",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="marketplace_split",
                        to="billing.payment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Marketplace Split",
                "verbose_name_plural": "Marketplace Splits",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("application_fee_amount__gt", 0)),
                        name="billing_split_fee_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("net_amount__gt", 0)),
                        name="billing_split_net_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Plan",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "provider_plan_id",
                    models.CharField(
                        help_text="MercadoPago preapproval plan ID",
                        max_length=64,
                        unique=True,
                    ),
                ),
                (
                    "reason",
                    models.CharField(
                        help_text="Plan description shown to the payer", max_length=256
                    ),
                ),
                (
                    "frequency",
                    models.PositiveSmallIntegerField(
                        help_text="Number of frequency_type units between charges",
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(365),
                        ],
                    ),
                ),
                (
                    "frequency_type",
                    models.CharField(
                        choices=[("days", "Days"), ("months", "Months")],
                        default="months",
                        max_length=10,
                    ),
                ),
                (
                    "transaction_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Amount charged each cycle",
                        max_digits=14,
                    ),
                ),
                (
                    "currency_id",
                    models.CharField(
                        choices=[
                            ("ARS", "Argentine Peso"),
                            ("BRL", "Brazilian Real"),
                            ("CLP", "Chilean Peso"),
                            ("MXN", "Mexican Peso"),
                            ("COP", "Colombian Peso"),
                            ("PEN", "Peruvian Sol"),
                            ("UYU", "Uruguayan Peso"),
                        ],
                        default="ARS",
                        max_length=3,
                    ),
                ),
                (
                    "repetitions",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Number of cycles; empty for unlimited",
                        null=True,
                    ),
                ),
                (
                    "free_trial",
                    models.JSONField(
                        blank=True,
                        help_text="Trial terms: {frequency, frequency_type}",
                        null=True,
                    ),
                ),
                ("metadata", models.JSONField(blank=True, default=dict)),
            ],
            options={
                "verbose_name": "Plan",
                "verbose_name_plural": "Plans",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("transaction_amount__gt", 0)),
                        name="billing_plan_amount_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Subscription",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "provider_subscription_id",
                    models.CharField(
                        help_text="MercadoPago preapproval ID", max_length=64, unique=True
                    ),
                ),
                (
                    "plan_id",
                    models.CharField(
                        default="direct",
                        help_text="Preapproval plan ID, or the reason for ad-hoc subscriptions",
                        max_length=256,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("authorized", "Authorized"),
                            ("paused", "Paused"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Latest status reported by MercadoPago",
                        max_length=20,
                    ),
                ),
                (
                    "reason",
                    models.CharField(
                        blank=True,
                        help_text="Subscription description shown to the payer",
                        max_length=256,
                    ),
                ),
                (
                    "next_payment_date",
                    models.DateTimeField(
                        blank=True,
                        help_text="When MercadoPago will attempt the next charge",
                        null=True,
                    ),
                ),
                (
                    "last_payment_date",
                    models.DateTimeField(
                        blank=True, help_text="When the last charge was made", null=True
                    ),
                ),
                (
                    "summarized",
                    models.JSONField(
                        blank=True,
                        help_text="Snapshot of MercadoPago billing counters",
                        null=True,
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True, default=dict, help_text="Sanitized client metadata"
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="Subscribed user",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="billing_subscriptions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription",
                "verbose_name_plural": "Subscriptions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["user", "status"], name="billing_sub_user_status_idx"
                    )
                ],
            },
        ),
    ]
