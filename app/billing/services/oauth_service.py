"""
OAuth onboarding for marketplace sellers.

A seller connects their MercadoPago account in two steps:

1. GET the authorization URL and send the browser there
2. MercadoPago redirects back with ?code=...; the client posts that code
   and the same redirect URI, and the seller's token is stored

The stored provider_user_id is the collector id used for split payments.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

from core.services import BaseService

from billing.adapters import MercadoPagoAdapter
from billing.exceptions import (
    MercadoPagoAuthenticationError,
    MercadoPagoInvalidRequestError,
    PaymentValidationError,
)
from billing.models import OAuthToken
from billing.validators import validate_callback_url

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser


def _require_app(require_secret: bool = False) -> None:
    configured = bool(getattr(settings, "MERCADOPAGO_APP_ID", ""))
    if require_secret:
        configured = configured and bool(getattr(settings, "MERCADOPAGO_APP_SECRET", ""))
    if not configured:
        raise PaymentValidationError(
            "MercadoPago OAuth is not configured",
            error_code="OAUTH_NOT_CONFIGURED",
        )


class OAuthService(BaseService):
    """Authorization URL and code exchange for seller accounts."""

    @classmethod
    def get_authorization_url(cls, user: AbstractBaseUser, redirect_uri: str) -> str:
        """
        Build the MercadoPago authorization URL for this user.

        Raises:
            PaymentValidationError: OAuth not configured, or redirect_uri
                outside the trusted origins
        """
        _require_app()
        validate_callback_url(redirect_uri)
        return MercadoPagoAdapter.build_authorization_url(redirect_uri, state=str(user.pk))

    @classmethod
    def exchange_code(
        cls,
        user: AbstractBaseUser,
        code: str,
        redirect_uri: str,
    ) -> OAuthToken:
        """
        Trade an authorization code for the seller's token and store it.

        A reconnect replaces the previous token of the same user.

        Raises:
            PaymentValidationError: OAuth not configured, untrusted
                redirect_uri, or MercadoPago rejected the code
            MercadoPagoError: Provider unavailable
        """
        _require_app(require_secret=True)
        validate_callback_url(redirect_uri)

        logger = cls.get_logger()
        try:
            result = MercadoPagoAdapter.exchange_oauth_code(code, redirect_uri)
        except (MercadoPagoInvalidRequestError, MercadoPagoAuthenticationError) as e:
            logger.warning(
                "MercadoPago rejected OAuth code",
                extra={"user_id": user.pk, "error_code": e.error_code},
            )
            raise PaymentValidationError(
                "Failed to exchange OAuth code",
                error_code="OAUTH_CODE_REJECTED",
            ) from e

        token, created = OAuthToken.objects.update_or_create(
            user=user,
            defaults={
                "provider_user_id": result.user_id,
                "access_token": result.access_token,
                "refresh_token": result.refresh_token,
                "public_key": result.public_key,
                "expires_at": timezone.now() + timedelta(seconds=result.expires_in),
            },
        )
        logger.info(
            "Connected MercadoPago seller account",
            extra={
                "user_id": user.pk,
                "seller_id": token.provider_user_id,
                "reconnected": not created,
            },
        )
        return token
