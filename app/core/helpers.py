"""
Helper functions for request handling and payload hashing.

These utilities are pure infrastructure; they know nothing about
payments or subscriptions.

Usage:
    from core.helpers import get_client_ip, hash_payload

    ip = get_client_ip(request)
    fingerprint = hash_payload({"items": [...]})
"""

from __future__ import annotations

import hashlib
import json
from typing import TYPE_CHECKING

from django.core.serializers.json import DjangoJSONEncoder

if TYPE_CHECKING:
    from typing import Any

    from django.http import HttpRequest


def hash_payload(payload: Any, algorithm: str = "sha256") -> str:
    """
    Hash a JSON-serializable payload in a key-order independent way.

    Decimals, dates and UUIDs are encoded with DjangoJSONEncoder so
    validated serializer data can be hashed directly.

    Example:
        hash_payload({"b": 1, "a": 2}) == hash_payload({"a": 2, "b": 1})
    """
    encoded = json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        cls=DjangoJSONEncoder,
    )
    return hashlib.new(algorithm, encoded.encode("utf-8")).hexdigest()


def get_client_ip(request: HttpRequest) -> str:
    """
    Extract client IP from request, handling proxies.

    Checks X-Forwarded-For header for proxy chains.
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        # First IP in the chain is the original client
        ip = x_forwarded_for.split(",")[0].strip()
    else:
        ip = request.META.get("REMOTE_ADDR", "")
    return ip
