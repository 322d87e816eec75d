"""
MercadoPago webhook signature verification.

MercadoPago signs each notification with the webhook secret configured
for the application. Two headers are involved:

    x-signature:  ts=1704908010,v1=618c85345248dd820d5fd456117c2ab2ef8eda45...
    x-request-id: bb56a2f1-6aae-46ac-982e-9dcd3581d08e

The signed manifest is built from the notification's data id, the request
id and the timestamp:

    id:{data_id};request-id:{request_id};ts:{ts};

and v1 is the hex HMAC-SHA256 of that manifest keyed with the secret.

Usage:
    from billing.signatures import verify_webhook_signature

    if not verify_webhook_signature(signature, request_id, data_id, secret):
        return JsonResponse({"error": "Invalid signature"}, status=401)
"""

from __future__ import annotations

import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)


def parse_signature_header(header: str | None) -> dict[str, str]:
    """
    Split an x-signature header into its key=value parts.

    Unknown parts are kept; parts without "=" are ignored.

    Example:
        parse_signature_header("ts=1,v1=abc") == {"ts": "1", "v1": "abc"}
    """
    parts: dict[str, str] = {}
    if not header:
        return parts
    for chunk in header.split(","):
        key, sep, value = chunk.partition("=")
        if not sep:
            continue
        parts[key.strip()] = value.strip()
    return parts


def build_manifest(data_id: str, request_id: str, ts: str) -> str:
    """Build the string MercadoPago signs for a notification."""
    return f"id:{data_id};request-id:{request_id};ts:{ts};"


def compute_webhook_signature(
    secret: str,
    data_id: str,
    request_id: str,
    ts: str,
) -> str:
    """Compute the v1 hex digest for a notification manifest."""
    manifest = build_manifest(data_id, request_id, ts)
    return hmac.new(
        secret.encode("utf-8"),
        manifest.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_webhook_signature(
    signature_header: str | None,
    request_id: str | None,
    data_id: str | None,
    secret: str | None,
) -> bool:
    """
    Check that a notification was signed with the shared webhook secret.

    Any missing or malformed input yields False. When no secret is
    configured verification is skipped and the notification is trusted.

    Args:
        signature_header: Raw x-signature header value
        request_id: x-request-id header value
        data_id: The notification's data.id
        secret: MercadoPago webhook secret

    Returns:
        True if the signature matches (or verification is disabled)
    """
    if not secret:
        logger.debug("Webhook secret not configured, skipping signature check")
        return True

    if not signature_header or not request_id or not data_id:
        return False

    parts = parse_signature_header(signature_header)
    ts = parts.get("ts")
    received = parts.get("v1")
    if not ts or not received:
        return False

    expected = compute_webhook_signature(secret, str(data_id), request_id, ts)
    try:
        return hmac.compare_digest(expected, received)
    except TypeError:
        # compare_digest rejects non-ASCII str input
        return False
