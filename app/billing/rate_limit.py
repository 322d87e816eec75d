"""
Fixed-window rate limiting for billing endpoints.

The first call in a window starts a counter at 1 with a reset time; later
calls in the same window increment it and are rejected once max_attempts
is reached. The window restarts once the reset time has passed. The cache
backend aligns windows to wall-clock multiples of the window length.

Key spaces:
    payment:create:{user_id}       per-user, outbound payment creation
    subscription:create:{user_id}  per-user, outbound subscription creation
    webhook:global                 global, webhook intake

Backends:
    CacheRateLimiter: Django cache backed, shared between workers. Default.
    InMemoryRateLimiter: Per-process counters, swept while in use.

Usage:
    from billing.rate_limit import get_rate_limiter

    if not get_rate_limiter().check(f"payment:create:{user.pk}", 10, 60):
        raise BillingRateLimitError("Too many payment requests")
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

from django.conf import settings
from django.core.cache import caches
from django.utils.module_loading import import_string

from billing.exceptions import BillingRateLimitError

logger = logging.getLogger(__name__)


KEY_PREFIX = "billing:ratelimit:"
WEBHOOK_GLOBAL_KEY = "webhook:global"
# In-memory counters drop elapsed windows at most this often while in use
SWEEP_INTERVAL_SECONDS = 60


def payment_create_key(user_id) -> str:
    return f"payment:create:{user_id}"


def subscription_create_key(user_id) -> str:
    return f"subscription:create:{user_id}"


class RateLimiter:
    """Interface shared by rate limiter backends."""

    def check(self, key: str, max_attempts: int, window_seconds: float) -> bool:
        """
        Count one attempt against key.

        Returns:
            True if the attempt is within the limit, False if rejected
        """
        raise NotImplementedError

    def cleanup(self) -> int:
        """Drop counters whose window has elapsed."""
        return 0


@dataclass
class _Window:
    count: int
    reset_at: float


class InMemoryRateLimiter(RateLimiter):
    """
    Process-local fixed-window counters.

    check() drops elapsed windows of every key at most once per
    sweep_interval seconds, so one-off keys do not accumulate.
    """

    def __init__(self, sweep_interval: float = SWEEP_INTERVAL_SECONDS) -> None:
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()
        self.sweep_interval = sweep_interval
        self._next_sweep: float | None = None

    def _drop_elapsed(self, now: float) -> int:
        expired = [k for k, w in self._windows.items() if now >= w.reset_at]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def check(self, key: str, max_attempts: int, window_seconds: float) -> bool:
        now = time.monotonic()
        with self._lock:
            if self._next_sweep is None:
                self._next_sweep = now + self.sweep_interval
            elif now >= self._next_sweep:
                self._next_sweep = now + self.sweep_interval
                self._drop_elapsed(now)

            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + window_seconds)
                return True
            if window.count >= max_attempts:
                return False
            window.count += 1
            return True

    def cleanup(self) -> int:
        with self._lock:
            return self._drop_elapsed(time.monotonic())

    def __len__(self) -> int:
        return len(self._windows)


class CacheRateLimiter(RateLimiter):
    """
    Fixed-window counters stored in a Django cache alias.

    Windows are aligned to wall-clock multiples of window_seconds and the
    window index is part of the cache key, so a new window always starts
    from a fresh counter. Correctness does not depend on incr() keeping the
    key's timeout, which the database and file cache backends reset; the
    timeout only lets the backend evict finished windows.
    """

    def __init__(self, alias: str | None = None) -> None:
        self.alias = alias or getattr(settings, "BILLING_CACHE_ALIAS", "default")

    def check(self, key: str, max_attempts: int, window_seconds: float) -> bool:
        cache = caches[self.alias]
        window_seconds = max(1, int(window_seconds))
        window_index = int(time.time() // window_seconds)
        cache_key = f"{KEY_PREFIX}{key}:{window_index}"

        if cache.add(cache_key, 1, timeout=window_seconds):
            return max_attempts >= 1
        try:
            count = cache.incr(cache_key)
        except ValueError:
            # Evicted between add() and incr(): this call reopens the window
            cache.set(cache_key, 1, timeout=window_seconds)
            count = 1
        return count <= max_attempts


# =============================================================================
# Process-wide instance
# =============================================================================

_limiter: RateLimiter | None = None
_limiter_lock = threading.Lock()


def get_rate_limiter() -> RateLimiter:
    """Return the configured rate limiter, building it on first use."""
    global _limiter
    if _limiter is None:
        with _limiter_lock:
            if _limiter is None:
                path = getattr(
                    settings,
                    "BILLING_RATE_LIMITER",
                    "billing.rate_limit.CacheRateLimiter",
                )
                _limiter = import_string(path)()
    return _limiter


def reset_rate_limiter() -> None:
    global _limiter
    with _limiter_lock:
        _limiter = None


def enforce_creation_limit(key: str) -> None:
    """
    Count one creation attempt for a user and raise once the window is full.

    Raises:
        BillingRateLimitError: BILLING_PAYMENT_RATE_LIMIT attempts already
            made in the current window
    """
    max_attempts = getattr(settings, "BILLING_PAYMENT_RATE_LIMIT", 10)
    window = getattr(settings, "BILLING_RATE_LIMIT_WINDOW_SECONDS", 60)
    if not get_rate_limiter().check(key, max_attempts, window):
        logger.warning("Creation rate limit exceeded", extra={"key": key})
        raise BillingRateLimitError(
            "Too many requests. Please try again later.",
            details={"retry_after": window},
        )
