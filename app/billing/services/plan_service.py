"""
Plan service for MercadoPago preapproval plans.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from core.services import BaseService

from billing.adapters import CreatePlanParams, MercadoPagoAdapter
from billing.models import Plan
from billing.services.checkout_service import base_url
from billing.services.subscription_service import auto_recurring_payload

if TYPE_CHECKING:
    from django.db.models import QuerySet


class PlanService(BaseService):
    """Creates and lists preapproval plans."""

    @classmethod
    def create_plan(cls, data: dict[str, Any]) -> Plan:
        """
        Create a plan with MercadoPago and store it locally.

        Args:
            data: Validated CreatePlanSerializer data

        Raises:
            MercadoPagoError: Provider call failed
        """
        terms = data["auto_recurring"]
        auto_recurring = auto_recurring_payload(terms)
        if data.get("repetitions"):
            auto_recurring["repetitions"] = data["repetitions"]

        result = MercadoPagoAdapter.create_plan(
            CreatePlanParams(
                reason=data["reason"],
                auto_recurring=auto_recurring,
                back_url=data.get("back_url") or f"{base_url()}/plan/created",
            )
        )

        plan = Plan.objects.create(
            provider_plan_id=result.id,
            reason=data["reason"],
            frequency=terms["frequency"],
            frequency_type=terms["frequency_type"],
            transaction_amount=terms["transaction_amount"],
            currency_id=terms["currency_id"],
            repetitions=data.get("repetitions"),
            free_trial=dict(terms["free_trial"]) if terms.get("free_trial") else None,
        )
        cls.get_logger().info(
            "Plan created",
            extra={"plan_id": str(plan.id), "provider_plan_id": result.id},
        )
        return plan

    @classmethod
    def list_plans(cls) -> QuerySet[Plan]:
        return Plan.objects.all()
