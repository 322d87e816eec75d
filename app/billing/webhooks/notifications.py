"""
Parsing of MercadoPago webhook notifications.

A notification only names a resource; it never carries authoritative
state. MercadoPago sends two shapes:

    Webhooks (v2): {"type": "payment", "action": "payment.updated",
                    "data": {"id": "123"}, ...}
    IPN (legacy):  POST ?topic=payment&id=123 with an empty or partial body

Both are normalized into a Notification.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from billing.exceptions import MalformedNotificationError
from billing.validators import is_valid_webhook_topic

if TYPE_CHECKING:
    from django.http import HttpRequest


@dataclass
class Notification:
    """
    Normalized webhook notification.

    Attributes:
        topic: Notification type, e.g. "payment" (may be unrecognized)
        data_id: Id of the referenced provider resource
        action: Optional action, e.g. "payment.created"
        payload: Parsed body as received
    """

    topic: str
    data_id: str
    action: str = ""
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def is_recognized(self) -> bool:
        return bool(self.data_id) and is_valid_webhook_topic(self.topic)


def _load_body(raw: bytes) -> dict[str, Any]:
    if not raw or not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedNotificationError("Notification body is not valid JSON") from e
    if not isinstance(body, dict):
        raise MalformedNotificationError("Notification body must be a JSON object")
    return body


def parse_notification(request: HttpRequest) -> Notification:
    """
    Build a Notification from a webhook request.

    Raises:
        MalformedNotificationError: Body is present but not a JSON object
    """
    body = _load_body(request.body)
    query = request.GET
    action = str(body.get("action") or "")

    topic = body.get("type") or body.get("topic") or query.get("type") or query.get("topic")
    if not topic and action:
        topic = action.split(".", 1)[0]

    data = body.get("data")
    data_id = data.get("id") if isinstance(data, dict) else None
    if data_id in (None, ""):
        data_id = query.get("data.id") or query.get("id")

    return Notification(
        topic=str(topic or ""),
        data_id=str(data_id) if data_id not in (None, "") else "",
        action=action,
        payload=body,
    )
