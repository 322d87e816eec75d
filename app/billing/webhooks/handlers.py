"""
Webhook notification handlers for MercadoPago topics.

This module provides a handler registry and the reconciliation logic
applied once a notification has been authenticated and deduplicated.

Every handler follows the same shape:
1. Fetch the authoritative resource from MercadoPago by id
2. Correlate it with a local record (never create one from a webhook)
3. Check the amount (payments only)
4. Apply the provider's state under a row lock
5. Invoke the host callback

Notification order does not matter: the stored state is always what
MercadoPago reports at fetch time.

Error policy:
    Business outcomes (no correlating record, amount mismatch, a status
    we do not know) are logged and returned as ServiceResult.failure so
    the notification is still acknowledged. Transient MercadoPago errors
    (timeouts, 5xx, 429) propagate so the view can ask for redelivery.

Usage:
    from billing.webhooks.handlers import dispatch_notification, register_handler

    @register_handler("merchant_order")
    def handle_merchant_order(notification: Notification) -> ServiceResult:
        ...

    result = dispatch_notification(notification)
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Callable

from django.db import transaction
from django.utils import timezone

from core.services import ServiceResult

from billing.adapters import MercadoPagoAdapter
from billing.exceptions import AmountMismatchError, MercadoPagoError
from billing.hooks import (
    ON_PAYMENT_UPDATE,
    ON_SUBSCRIPTION_PAYMENT,
    ON_SUBSCRIPTION_UPDATE,
    invoke_hook,
)
from billing.models import Payment, Subscription
from billing.states import (
    PaymentStatus,
    WebhookTopic,
    narrow_payment_status,
    narrow_subscription_status,
)
from billing.validators import amounts_match

if TYPE_CHECKING:
    from billing.adapters import ProviderPayment
    from billing.webhooks.notifications import Notification


logger = logging.getLogger(__name__)

# A checkout in one of these states is not overwritten by a different
# provider payment made against the same preference.
SETTLED_PAYMENT_STATUSES = frozenset(
    {
        PaymentStatus.APPROVED,
        PaymentStatus.AUTHORIZED,
        PaymentStatus.REFUNDED,
        PaymentStatus.CHARGED_BACK,
    }
)


# =============================================================================
# Handler Registry
# =============================================================================


WEBHOOK_HANDLERS: dict[str, Callable[[Notification], ServiceResult]] = {}


def register_handler(*topics: str) -> Callable:
    """
    Decorator to register a handler for one or more notification topics.

    Usage:
        @register_handler("payment")
        def handle_payment(notification: Notification) -> ServiceResult:
            ...
    """

    def decorator(func: Callable[[Notification], ServiceResult]) -> Callable:
        for topic in topics:
            WEBHOOK_HANDLERS[str(topic)] = func
            logger.debug(f"Registered webhook handler for {topic}")
        return func

    return decorator


def dispatch_notification(notification: Notification) -> ServiceResult:
    """
    Route a notification to its handler.

    Recognized topics without a handler are acknowledged as successful.

    Raises:
        MercadoPagoError: Only retryable provider errors escape
    """
    handler = WEBHOOK_HANDLERS.get(notification.topic)
    log_context = {"topic": notification.topic, "data_id": notification.data_id}

    if not handler:
        logger.info(
            f"No handler registered for topic: {notification.topic}",
            extra=log_context,
        )
        return ServiceResult.success(None)

    logger.info(f"Dispatching {notification.topic} to handler", extra=log_context)

    try:
        return handler(notification)
    except MercadoPagoError as e:
        if e.is_retryable:
            raise
        logger.warning(
            f"Could not fetch {notification.topic} resource from MercadoPago",
            extra={**log_context, "error_code": e.error_code},
        )
        return ServiceResult.from_exception(e)


# =============================================================================
# Correlation
# =============================================================================


def _subscription_for_reference(reference: str) -> Subscription | None:
    """Recurring charges carry the local subscription id as external_reference."""
    if not reference:
        return None
    try:
        subscription_id = uuid.UUID(reference)
    except ValueError:
        return None
    return Subscription.objects.filter(id=subscription_id).first()


def _find_payment_id(provider_payment: ProviderPayment):
    """Primary key of the local Payment for a provider payment, if any."""
    if provider_payment.external_reference:
        pk = (
            Payment.objects.filter(external_reference=provider_payment.external_reference)
            .values_list("pk", flat=True)
            .first()
        )
        if pk is not None:
            return pk
    return (
        Payment.objects.filter(provider_payment_id=provider_payment.id)
        .values_list("pk", flat=True)
        .first()
    )


# =============================================================================
# Payment Handlers
# =============================================================================


@register_handler(WebhookTopic.PAYMENT)
def handle_payment(notification: Notification) -> ServiceResult:
    """
    Reconcile a one-time payment (or a recurring charge) with MercadoPago.

    The fetched payment is matched by external_reference first and by
    provider_payment_id second. A reference naming a local Subscription
    means this is a recurring charge.
    """
    provider_payment = MercadoPagoAdapter.get_payment(notification.data_id)

    payment_pk = _find_payment_id(provider_payment)
    if payment_pk is not None:
        return reconcile_payment(payment_pk, provider_payment)

    if _subscription_for_reference(provider_payment.external_reference) is not None:
        return apply_subscription_charge(provider_payment)

    logger.warning(
        "No local payment correlates with MercadoPago payment",
        extra={
            "provider_payment_id": provider_payment.id,
            "external_reference": provider_payment.external_reference,
        },
    )
    return ServiceResult.failure(
        f"Payment not found for provider payment: {provider_payment.id}",
        error_code="PAYMENT_NOT_FOUND",
    )


def reconcile_payment(payment_pk, provider_payment: ProviderPayment) -> ServiceResult:
    """
    Apply provider state to a local Payment.

    The local row is left untouched when the status is unknown, when the
    amounts differ, or when a settled checkout receives a notification
    for another payment attempt.
    """
    log_context = {
        "payment_id": str(payment_pk),
        "provider_payment_id": provider_payment.id,
        "provider_status": provider_payment.status,
    }

    status = narrow_payment_status(provider_payment.status)
    if status is None:
        logger.error("Unrecognized MercadoPago payment status", extra=log_context)
        return ServiceResult.failure(
            f"Unrecognized payment status: {provider_payment.status}",
            error_code="UNKNOWN_PAYMENT_STATUS",
        )

    with transaction.atomic():
        payment = Payment.objects.select_for_update().get(pk=payment_pk)

        if (
            payment.provider_payment_id
            and payment.provider_payment_id != provider_payment.id
            and payment.status in SETTLED_PAYMENT_STATUSES
        ):
            logger.info(
                "Payment already settled by another attempt, ignoring notification",
                extra={**log_context, "current_status": payment.status},
            )
            return ServiceResult.success(payment)

        if not amounts_match(payment.amount, provider_payment.transaction_amount):
            logger.error(
                "Payment amount mismatch, possible tampering",
                extra={
                    **log_context,
                    "expected_amount": str(payment.amount),
                    "received_amount": str(provider_payment.transaction_amount),
                },
            )
            return ServiceResult.from_exception(
                AmountMismatchError(
                    "Provider amount does not match the local payment",
                    details={
                        "expected": str(payment.amount),
                        "received": str(provider_payment.transaction_amount),
                    },
                )
            )

        previous_status = payment.status
        payment.provider_payment_id = provider_payment.id
        payment.status = status
        payment.status_detail = provider_payment.status_detail
        payment.payment_method_id = provider_payment.payment_method_id
        payment.payment_type_id = provider_payment.payment_type_id
        payment.save(
            update_fields=[
                "provider_payment_id",
                "status",
                "status_detail",
                "payment_method_id",
                "payment_type_id",
                "updated_at",
            ]
        )

    logger.info(
        f"Payment status {previous_status} -> {status}",
        extra={**log_context, "status_detail": provider_payment.status_detail},
    )

    invoke_hook(
        ON_PAYMENT_UPDATE,
        payment=payment,
        status=status,
        status_detail=provider_payment.status_detail,
        provider_payment=provider_payment,
    )
    return ServiceResult.success(payment)


# =============================================================================
# Subscription Handlers
# =============================================================================


@register_handler(WebhookTopic.SUBSCRIPTION_PREAPPROVAL)
def handle_subscription_preapproval(notification: Notification) -> ServiceResult:
    """Sync a local Subscription with its MercadoPago preapproval."""
    preapproval = MercadoPagoAdapter.get_preapproval(notification.data_id)
    log_context = {
        "preapproval_id": preapproval.id,
        "provider_status": preapproval.status,
    }

    status = narrow_subscription_status(preapproval.status)
    if status is None:
        logger.error("Unrecognized MercadoPago preapproval status", extra=log_context)
        return ServiceResult.failure(
            f"Unrecognized subscription status: {preapproval.status}",
            error_code="UNKNOWN_SUBSCRIPTION_STATUS",
        )

    with transaction.atomic():
        subscription = (
            Subscription.objects.select_for_update()
            .filter(provider_subscription_id=preapproval.id)
            .first()
        )
        if subscription is None:
            logger.warning(
                "No local subscription correlates with preapproval",
                extra=log_context,
            )
            return ServiceResult.failure(
                f"Subscription not found for preapproval: {preapproval.id}",
                error_code="SUBSCRIPTION_NOT_FOUND",
            )

        previous_status = subscription.status
        subscription.status = status
        subscription.reason = preapproval.reason or subscription.reason
        subscription.next_payment_date = preapproval.next_payment_date
        subscription.last_payment_date = (
            preapproval.last_charged_date or subscription.last_payment_date
        )
        subscription.summarized = preapproval.summarized
        subscription.save()

    logger.info(
        f"Subscription status {previous_status} -> {status}",
        extra={**log_context, "subscription_id": str(subscription.id)},
    )

    invoke_hook(
        ON_SUBSCRIPTION_UPDATE,
        subscription=subscription,
        status=status,
        reason=subscription.reason,
        provider_preapproval=preapproval,
    )
    return ServiceResult.success(subscription)


@register_handler(
    WebhookTopic.SUBSCRIPTION_AUTHORIZED_PAYMENT,
    WebhookTopic.AUTHORIZED_PAYMENT,
)
def handle_subscription_authorized_payment(notification: Notification) -> ServiceResult:
    """Record a recurring charge against its Subscription."""
    provider_payment = MercadoPagoAdapter.get_payment(notification.data_id)
    return apply_subscription_charge(provider_payment)


def apply_subscription_charge(provider_payment: ProviderPayment) -> ServiceResult:
    """
    Apply a recurring charge to the Subscription named by its external_reference.

    Only approved charges move last_payment_date; the host callback is
    told about every charge so it can react to rejections too.
    """
    log_context = {
        "provider_payment_id": provider_payment.id,
        "external_reference": provider_payment.external_reference,
        "provider_status": provider_payment.status,
    }

    subscription = _subscription_for_reference(provider_payment.external_reference)
    if subscription is None:
        logger.warning(
            "No local subscription correlates with recurring charge",
            extra=log_context,
        )
        return ServiceResult.failure(
            f"Subscription not found for charge: {provider_payment.id}",
            error_code="SUBSCRIPTION_NOT_FOUND",
        )

    status = narrow_payment_status(provider_payment.status)
    if status is None:
        logger.error("Unrecognized MercadoPago payment status", extra=log_context)
        return ServiceResult.failure(
            f"Unrecognized payment status: {provider_payment.status}",
            error_code="UNKNOWN_PAYMENT_STATUS",
        )

    if status == PaymentStatus.APPROVED:
        charged_at = provider_payment.date_approved or timezone.now()
        with transaction.atomic():
            subscription = Subscription.objects.select_for_update().get(pk=subscription.pk)
            if (
                subscription.last_payment_date is None
                or charged_at > subscription.last_payment_date
            ):
                subscription.last_payment_date = charged_at
                subscription.save(update_fields=["last_payment_date", "updated_at"])

    logger.info(
        f"Recurring charge {status} for subscription",
        extra={**log_context, "subscription_id": str(subscription.id)},
    )

    invoke_hook(
        ON_SUBSCRIPTION_PAYMENT,
        subscription=subscription,
        provider_payment=provider_payment,
        status=status,
    )
    return ServiceResult.success(subscription)
