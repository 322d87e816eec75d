import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("billing", "0002_add_idempotency_sweep_schedule"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="OAuthToken",
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
                    "provider_user_id",
                    models.CharField(
                        db_index=True,
                        help_text="MercadoPago user ID of the seller",
                        max_length=64,
                    ),
                ),
                (
                    "access_token",
                    models.CharField(help_text="Seller access token", max_length=255),
                ),
                (
                    "refresh_token",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Token used to renew the access token",
                        max_length=255,
                    ),
                ),
                (
                    "public_key",
                    models.CharField(
                        blank=True, default="", help_text="Seller public key", max_length=255
                    ),
                ),
                (
                    "expires_at",
                    models.DateTimeField(help_text="Expiry of the access token"),
                ),
                (
                    "user",
                    models.OneToOneField(
                        help_text="Seller this token belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="mercadopago_oauth_token",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "OAuth token",
                "verbose_name_plural": "OAuth tokens",
                "ordering": ["-created_at"],
            },
        ),
    ]
