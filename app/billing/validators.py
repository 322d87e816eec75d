"""
Validators for amounts, currencies, redirect URLs and client metadata.

The validate_* functions raise PaymentValidationError; the is_valid_*
helpers return a verdict for callers that only need a boolean (DRF
serializers wrap them in their own field errors).

Metadata sanitization is defense in depth against prototype pollution in
JavaScript consumers of the stored JSON. It is not HTML escaping; anything
rendering metadata must still escape for its own output context.

Usage:
    from billing.validators import sanitize_metadata, validate_callback_url

    metadata = sanitize_metadata(request.data.get("metadata") or {})
    validate_callback_url(back_urls["success"])
"""

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from django.conf import settings

from billing.exceptions import PaymentValidationError
from billing.states import Currency, WebhookTopic

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any


# =============================================================================
# Constants
# =============================================================================

MAX_AMOUNT = Decimal("999999999")
AMOUNT_TOLERANCE = Decimal("0.01")
MAX_METADATA_STRING_LENGTH = 5000
MIN_FREQUENCY = 1
MAX_FREQUENCY = 365

DANGEROUS_METADATA_KEYS = frozenset({"__proto__", "constructor", "prototype"})

UUID_V4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
SIMPLE_KEY_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{8,64}$")


# =============================================================================
# Amount & Currency
# =============================================================================


def to_decimal(value: Any) -> Decimal | None:
    """Coerce a JSON number or numeric string to Decimal, or None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def is_valid_amount(value: Any) -> bool:
    """Finite, strictly positive and not above MAX_AMOUNT."""
    amount = to_decimal(value)
    return amount is not None and Decimal("0") < amount <= MAX_AMOUNT


def validate_amount(value: Any) -> Decimal:
    """Validate and return the amount as Decimal."""
    if not is_valid_amount(value):
        raise PaymentValidationError(
            f"Amount must be a positive number not greater than {MAX_AMOUNT}",
            error_code="INVALID_AMOUNT",
            details={"amount": str(value)},
        )
    return to_decimal(value)


def is_valid_currency(code: Any) -> bool:
    return isinstance(code, str) and code in Currency.values


def validate_currency(code: Any) -> str:
    if not is_valid_currency(code):
        raise PaymentValidationError(
            "Currency not supported",
            error_code="INVALID_CURRENCY",
            details={"currency": code, "supported": list(Currency.values)},
        )
    return code


def amounts_match(
    expected: Any,
    actual: Any,
    tolerance: Decimal = AMOUNT_TOLERANCE,
) -> bool:
    """
    Compare a locally recorded amount with a provider-reported one.

    Amounts that cannot be parsed never match.
    """
    left, right = to_decimal(expected), to_decimal(actual)
    if left is None or right is None:
        return False
    return abs(left - right) <= tolerance


def is_valid_frequency(value: Any) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and MIN_FREQUENCY <= value <= MAX_FREQUENCY
    )


def validate_frequency(value: Any) -> int:
    if not is_valid_frequency(value):
        raise PaymentValidationError(
            f"Frequency must be an integer between {MIN_FREQUENCY} and {MAX_FREQUENCY}",
            error_code="INVALID_FREQUENCY",
            details={"frequency": value},
        )
    return value


# =============================================================================
# Callback URLs
# =============================================================================


def _host_allowed(hostname: str, allowed_hosts: Iterable[str]) -> bool:
    for pattern in allowed_hosts:
        pattern = pattern.strip().lower()
        if not pattern:
            continue
        if pattern.startswith("*."):
            if hostname.endswith(pattern[1:]):
                return True
        elif hostname == pattern:
            return True
    return False


def is_valid_callback_url(
    url: Any,
    allowed_hosts: Iterable[str] | None = None,
    require_https: bool | None = None,
) -> bool:
    """
    Check a redirect/back URL against the trusted origins.

    A host matches an entry exactly, or a "*.example.com" entry matches
    any subdomain of example.com. In production mode only https URLs are
    accepted.
    """
    if not isinstance(url, str) or not url:
        return False
    if allowed_hosts is None:
        allowed_hosts = getattr(settings, "BILLING_TRUSTED_ORIGINS", [])
    if require_https is None:
        require_https = getattr(settings, "BILLING_REQUIRE_HTTPS", not settings.DEBUG)

    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return False

    if parts.scheme not in ("http", "https") or not hostname:
        return False
    if require_https and parts.scheme != "https":
        return False
    return _host_allowed(hostname.lower(), allowed_hosts)


def validate_callback_url(url: Any, **kwargs) -> str:
    if not is_valid_callback_url(url, **kwargs):
        raise PaymentValidationError(
            "Redirect URL is not allowed",
            error_code="INVALID_CALLBACK_URL",
            details={"url": url},
        )
    return url


# =============================================================================
# Metadata
# =============================================================================


def sanitize_metadata(data: Any) -> Any:
    """
    Return a sanitized copy of client-supplied metadata.

    Dangerous keys are dropped and long strings truncated at every level
    of nested dicts. Lists and scalars are returned as-is.
    """
    if not isinstance(data, dict):
        return data

    sanitized: dict[str, Any] = {}
    for key, value in data.items():
        if key in DANGEROUS_METADATA_KEYS:
            continue
        if isinstance(value, str) and len(value) > MAX_METADATA_STRING_LENGTH:
            sanitized[key] = value[:MAX_METADATA_STRING_LENGTH]
        elif isinstance(value, dict):
            sanitized[key] = sanitize_metadata(value)
        else:
            sanitized[key] = value
    return sanitized


# =============================================================================
# Idempotency keys & webhook topics
# =============================================================================


def is_valid_idempotency_key(key: Any) -> bool:
    """UUID v4, or 8-64 characters of letters, digits, "_" and "-"."""
    if not isinstance(key, str):
        return False
    return bool(UUID_V4_PATTERN.fullmatch(key) or SIMPLE_KEY_PATTERN.fullmatch(key))


def validate_idempotency_key(key: Any) -> str:
    if not is_valid_idempotency_key(key):
        raise PaymentValidationError(
            "Invalid idempotency key format",
            error_code="INVALID_IDEMPOTENCY_KEY",
        )
    return key


def is_valid_webhook_topic(topic: Any) -> bool:
    return isinstance(topic, str) and topic in WebhookTopic.values
