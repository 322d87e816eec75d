"""
MercadoPago webhook intake and reconciliation.
"""

from billing.webhooks.handlers import (
    WEBHOOK_HANDLERS,
    dispatch_notification,
    register_handler,
)
from billing.webhooks.notifications import Notification, parse_notification

__all__ = [
    "Notification",
    "WEBHOOK_HANDLERS",
    "dispatch_notification",
    "parse_notification",
    "register_handler",
]
