"""
Webhook endpoint view for MercadoPago.

The view runs the intake protocol synchronously:
1. Global rate limit (429)
2. Parse the notification (400 if the body is not a JSON object)
3. Acknowledge topics we do not handle without processing them
4. Verify the x-signature header (401)
5. Claim the dedupe key; a duplicate delivery is acknowledged at once
6. Dispatch to the topic handler

MercadoPago redelivers any notification that does not get a 2xx, so
every business outcome is acknowledged with 200. The only other answer
is 503 when MercadoPago itself could not be reached while fetching the
resource; the dedupe key is released first so the redelivery is
processed.

Usage:
    # In urls.py
    from billing.webhooks.views import mercadopago_webhook

    urlpatterns = [
        path("webhooks/mercadopago/", mercadopago_webhook, name="mercadopago_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.helpers import get_client_ip

from billing.exceptions import MalformedNotificationError, MercadoPagoError
from billing.idempotency import get_idempotency_store, webhook_key
from billing.rate_limit import WEBHOOK_GLOBAL_KEY, get_rate_limiter
from billing.signatures import verify_webhook_signature
from billing.webhooks.handlers import dispatch_notification
from billing.webhooks.notifications import parse_notification

logger = logging.getLogger(__name__)


def _ack(**extra) -> JsonResponse:
    return JsonResponse({"received": True, **extra}, status=200)


@csrf_exempt
@require_POST
def mercadopago_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive and reconcile a MercadoPago notification.

    Returns:
        JsonResponse with status:
        - 200: Processed, duplicate, ignored, or business failure
        - 400: Body is not a JSON object
        - 401: Signature verification failed
        - 429: Global webhook rate limit exceeded
        - 503: MercadoPago unavailable, redelivery requested

    Example x-signature header:
        ts=1704908010,v1=618c85345248dd820d5fd456117c2ab2ef8eda45...
    """
    window = getattr(settings, "BILLING_RATE_LIMIT_WINDOW_SECONDS", 60)
    if not get_rate_limiter().check(
        WEBHOOK_GLOBAL_KEY,
        getattr(settings, "BILLING_WEBHOOK_RATE_LIMIT", 1000),
        window,
    ):
        logger.warning(
            "Webhook rate limit exceeded",
            extra={"client_ip": get_client_ip(request)},
        )
        return JsonResponse({"error": "Too many requests"}, status=429)

    # Step 1: Parse
    try:
        notification = parse_notification(request)
    except MalformedNotificationError as e:
        logger.warning("Malformed webhook body", extra={"error": e.message})
        return JsonResponse({"error": e.message}, status=400)

    log_context = {"topic": notification.topic, "data_id": notification.data_id}

    if not notification.is_recognized:
        logger.info("Ignoring unrecognized webhook notification", extra=log_context)
        return _ack()

    # Step 2: Verify signature
    if not verify_webhook_signature(
        request.headers.get("x-signature"),
        request.headers.get("x-request-id"),
        notification.data_id,
        getattr(settings, "MERCADOPAGO_WEBHOOK_SECRET", ""),
    ):
        logger.warning(
            "Webhook signature verification failed",
            extra={**log_context, "client_ip": get_client_ip(request)},
        )
        return JsonResponse({"error": "Invalid signature"}, status=401)

    logger.info(f"Received MercadoPago webhook: {notification.topic}", extra=log_context)

    # Step 3: Claim the notification before doing any work
    store = get_idempotency_store()
    key = webhook_key(notification.data_id, notification.topic)
    if not store.add(key, "processing"):
        logger.info("Duplicate webhook, already processed", extra=log_context)
        return _ack(duplicate=True)

    # Step 4: Reconcile
    try:
        result = dispatch_notification(notification)
    except MercadoPagoError as e:
        store.delete(key)
        logger.warning(
            "MercadoPago unavailable while processing webhook, requesting redelivery",
            extra={**log_context, "error_code": e.error_code},
        )
        return JsonResponse({"error": "Temporarily unavailable"}, status=503)
    except Exception as e:
        # Acknowledge anyway; MercadoPago retrying will not fix a bug here
        logger.error(
            f"Unexpected error processing webhook: {type(e).__name__}",
            extra=log_context,
            exc_info=True,
        )
        return _ack()

    if not result.success:
        logger.warning(
            "Webhook processed with business failure",
            extra={**log_context, "error_code": result.error_code, "error": result.error},
        )
    return _ack()
