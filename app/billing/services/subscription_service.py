"""
Subscription service for MercadoPago preapprovals.

A subscription is created either from a preapproval plan or from inline
recurring terms (reason + auto_recurring). The local id is generated up
front and sent as the preapproval's external_reference so recurring
charges can be traced back to it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from core.helpers import hash_payload
from core.services import BaseService

from billing.adapters import CreatePreapprovalParams, MercadoPagoAdapter
from billing.exceptions import PaymentNotFoundError
from billing.idempotency import creation_key, run_idempotent
from billing.models import DIRECT_PLAN_ID, Subscription
from billing.rate_limit import enforce_creation_limit, subscription_create_key
from billing.serializers import SubscriptionSerializer
from billing.services.checkout_service import base_url
from billing.services.customer_service import CustomerService
from billing.states import SubscriptionStatus

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser
    from django.db.models import QuerySet


def auto_recurring_payload(terms: dict[str, Any]) -> dict[str, Any]:
    """Convert validated recurring terms to MercadoPago's auto_recurring shape."""
    payload: dict[str, Any] = {
        "frequency": terms["frequency"],
        "frequency_type": terms["frequency_type"],
        "transaction_amount": float(terms["transaction_amount"]),
        "currency_id": terms["currency_id"],
    }
    if terms.get("start_date"):
        payload["start_date"] = terms["start_date"].isoformat()
    if terms.get("end_date"):
        payload["end_date"] = terms["end_date"].isoformat()
    if terms.get("free_trial"):
        payload["free_trial"] = dict(terms["free_trial"])
    return payload


@dataclass
class CreateSubscriptionParams:
    """
    Parameters for creating a subscription.

    Either preapproval_plan_id, or reason together with auto_recurring.
    """

    preapproval_plan_id: str | None = None
    reason: str | None = None
    auto_recurring: dict[str, Any] | None = None
    back_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    idempotency_key: str | None = None

    def __post_init__(self) -> None:
        if not self.preapproval_plan_id and not (self.reason and self.auto_recurring):
            raise ValueError(
                "preapproval_plan_id or both reason and auto_recurring are required"
            )

    @classmethod
    def from_validated(cls, data: dict[str, Any]) -> CreateSubscriptionParams:
        terms = data.get("auto_recurring")
        return cls(
            preapproval_plan_id=data.get("preapproval_plan_id"),
            reason=data.get("reason"),
            auto_recurring=auto_recurring_payload(terms) if terms else None,
            back_url=data.get("back_url"),
            metadata=data.get("metadata") or {},
            idempotency_key=data.get("idempotency_key"),
        )

    @property
    def plan_id(self) -> str:
        return self.preapproval_plan_id or self.reason or DIRECT_PLAN_ID

    def fingerprint(self) -> str:
        return hash_payload(
            {
                "preapproval_plan_id": self.preapproval_plan_id,
                "reason": self.reason,
                "auto_recurring": self.auto_recurring,
                "back_url": self.back_url,
                "metadata": self.metadata,
            }
        )


class SubscriptionService(BaseService):
    """Creates, cancels and lists the user's subscriptions."""

    @classmethod
    def create_subscription(
        cls,
        user: AbstractBaseUser,
        params: CreateSubscriptionParams,
    ) -> tuple[dict[str, Any], bool]:
        """
        Create a preapproval and a pending local Subscription.

        Returns:
            (response, replayed) where response holds checkout_url and
            the serialized subscription

        Raises:
            BillingRateLimitError: Too many creation attempts
            IdempotencyConflictError: Key reused with another body or in flight
            MercadoPagoError: Provider call failed
        """
        enforce_creation_limit(subscription_create_key(user.pk))

        key = None
        if params.idempotency_key:
            key = creation_key("subscription:create", user.pk, params.idempotency_key)

        return run_idempotent(
            key,
            params.fingerprint(),
            lambda: cls._create(user, params),
        )

    @classmethod
    def _create(
        cls,
        user: AbstractBaseUser,
        params: CreateSubscriptionParams,
    ) -> dict[str, Any]:
        customer = CustomerService.get_or_create_customer(user)
        subscription_id = uuid.uuid4()

        preapproval = MercadoPagoAdapter.create_preapproval(
            CreatePreapprovalParams(
                payer_email=customer.email,
                external_reference=str(subscription_id),
                back_url=params.back_url or f"{base_url()}/subscription/success",
                reason=params.reason,
                auto_recurring=params.auto_recurring,
                preapproval_plan_id=params.preapproval_plan_id,
                idempotency_key=params.idempotency_key,
            )
        )

        subscription = Subscription.objects.create(
            id=subscription_id,
            user=user,
            provider_subscription_id=preapproval.id,
            plan_id=params.plan_id,
            status=SubscriptionStatus.PENDING,
            reason=preapproval.reason or params.reason or "",
            next_payment_date=preapproval.next_payment_date,
            metadata=params.metadata,
        )

        cls.get_logger().info(
            "Subscription created",
            extra={
                "subscription_id": str(subscription.id),
                "preapproval_id": preapproval.id,
                "plan_id": subscription.plan_id,
            },
        )

        return {
            "checkout_url": preapproval.init_point,
            "subscription": dict(SubscriptionSerializer(subscription).data),
        }

    @classmethod
    def get_subscription(
        cls,
        user: AbstractBaseUser,
        subscription_id: uuid.UUID | str,
    ) -> Subscription:
        subscription = Subscription.objects.filter(user=user, id=subscription_id).first()
        if subscription is None:
            raise PaymentNotFoundError(
                "Subscription not found",
                error_code="SUBSCRIPTION_NOT_FOUND",
                details={"subscription_id": str(subscription_id)},
            )
        return subscription

    @classmethod
    def cancel_subscription(
        cls,
        user: AbstractBaseUser,
        subscription_id: uuid.UUID | str,
    ) -> Subscription:
        """
        Cancel a subscription with MercadoPago and locally.

        Cancelling an already cancelled subscription is a no-op.

        Raises:
            PaymentNotFoundError: No such subscription for this user
            MercadoPagoError: Provider call failed (local state unchanged)
        """
        subscription = cls.get_subscription(user, subscription_id)
        if subscription.status == SubscriptionStatus.CANCELLED:
            return subscription

        MercadoPagoAdapter.update_preapproval(
            subscription.provider_subscription_id,
            {"status": SubscriptionStatus.CANCELLED.value},
        )
        subscription.status = SubscriptionStatus.CANCELLED
        subscription.save(update_fields=["status", "updated_at"])

        cls.get_logger().info(
            "Subscription cancelled",
            extra={"subscription_id": str(subscription.id)},
        )
        return subscription

    @classmethod
    def list_subscriptions(cls, user: AbstractBaseUser) -> QuerySet[Subscription]:
        """Newest first; views paginate the result."""
        return Subscription.objects.filter(user=user)
