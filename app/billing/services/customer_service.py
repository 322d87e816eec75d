"""
Customer service linking local users to MercadoPago customers.

MercadoPago refuses to create two customers with the same email, so an
existing provider customer is looked up by email before creating one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import IntegrityError

from core.services import BaseService

from billing.adapters import MercadoPagoAdapter
from billing.exceptions import PaymentValidationError
from billing.models import Customer

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser


class CustomerService(BaseService):
    """Get-or-create for the user's MercadoPago customer."""

    @classmethod
    def get_or_create_customer(cls, user: AbstractBaseUser) -> Customer:
        """
        Return the user's Customer, registering it with MercadoPago if needed.

        Raises:
            PaymentValidationError: User has no email address
            MercadoPagoError: Provider lookup or creation failed
        """
        customer = Customer.objects.filter(user=user).first()
        if customer is not None:
            return customer

        email = getattr(user, "email", "")
        if not email:
            raise PaymentValidationError(
                "An email address is required to pay with MercadoPago",
                error_code="EMAIL_REQUIRED",
            )

        logger = cls.get_logger()
        provider_customer = MercadoPagoAdapter.search_customer(email)
        if provider_customer is None:
            provider_customer = MercadoPagoAdapter.create_customer(
                email,
                first_name=getattr(user, "first_name", ""),
                last_name=getattr(user, "last_name", ""),
            )
            logger.info(
                "Registered MercadoPago customer",
                extra={"user_id": user.pk, "customer_id": provider_customer.id},
            )

        try:
            with cls.atomic():
                customer = Customer.objects.create(
                    user=user,
                    provider_customer_id=provider_customer.id,
                    email=email,
                )
        except IntegrityError:
            # A concurrent request for the same user won the insert.
            customer = Customer.objects.get(user=user)
        return customer
