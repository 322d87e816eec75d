"""
Host application callbacks for billing state changes.

The host project points these settings at its own callables:

    BILLING_ON_PAYMENT_UPDATE = "shop.billing_hooks.payment_updated"
    BILLING_ON_SUBSCRIPTION_UPDATE = "shop.billing_hooks.subscription_updated"
    BILLING_ON_SUBSCRIPTION_PAYMENT = "shop.billing_hooks.subscription_charged"

Callables are invoked with keyword arguments only:

    on_payment_update(payment, status, status_detail, provider_payment)
    on_subscription_update(subscription, status, reason, provider_preapproval)
    on_subscription_payment(subscription, provider_payment, status)

A failing callback is logged and swallowed: it never changes the outcome
of the webhook that triggered it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils.module_loading import import_string

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


ON_PAYMENT_UPDATE = "on_payment_update"
ON_SUBSCRIPTION_UPDATE = "on_subscription_update"
ON_SUBSCRIPTION_PAYMENT = "on_subscription_payment"

HOOK_SETTINGS = {
    ON_PAYMENT_UPDATE: "BILLING_ON_PAYMENT_UPDATE",
    ON_SUBSCRIPTION_UPDATE: "BILLING_ON_SUBSCRIPTION_UPDATE",
    ON_SUBSCRIPTION_PAYMENT: "BILLING_ON_SUBSCRIPTION_PAYMENT",
}


def get_hook(name: str) -> Callable | None:
    """Resolve the configured callable for a hook name, or None."""
    target = getattr(settings, HOOK_SETTINGS[name], None)
    if not target:
        return None
    if callable(target):
        return target
    return import_string(target)


def invoke_hook(name: str, **kwargs) -> bool:
    """
    Call a host hook, absorbing any exception it raises.

    Returns:
        True if a hook ran to completion, False if none is configured
        or it failed
    """
    try:
        hook = get_hook(name)
    except ImportError:
        logger.error(
            f"Billing hook {name} could not be imported",
            extra={"hook": name},
            exc_info=True,
        )
        return False

    if hook is None:
        return False

    try:
        hook(**kwargs)
    except Exception:
        logger.error(
            f"Billing hook {name} raised an exception",
            extra={"hook": name},
            exc_info=True,
        )
        return False
    return True
