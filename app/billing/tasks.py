"""
Celery tasks for billing maintenance.

Usage:
    # Scheduled hourly via celery-beat (see migration 0002)
    from billing.tasks import sweep_expired_idempotency_entries
    sweep_expired_idempotency_entries.delay()
"""

from __future__ import annotations

import logging

from celery import shared_task

from billing.idempotency import get_idempotency_store
from billing.rate_limit import get_rate_limiter

logger = logging.getLogger(__name__)


@shared_task
def sweep_expired_idempotency_entries() -> dict:
    """
    Periodic task to drop expired dedupe entries and rate limit windows.

    The cache-backed stores expire entries themselves and report zero.
    In-memory stores are per process: each one also sweeps itself while
    in use, so this task only bounds the instances of the worker it runs in.

    Returns:
        Dict with counts of swept entries
    """
    idempotency_swept = get_idempotency_store().cleanup()
    rate_limit_swept = get_rate_limiter().cleanup()

    if idempotency_swept or rate_limit_swept:
        logger.info(
            "Swept expired billing entries",
            extra={
                "idempotency_entries": idempotency_swept,
                "rate_limit_windows": rate_limit_swept,
            },
        )

    return {
        "idempotency_entries": idempotency_swept,
        "rate_limit_windows": rate_limit_swept,
    }
