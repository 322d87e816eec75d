"""
Idempotency store for webhook deduplication and request replay.

Two independent key spaces share the store:

- Inbound notifications, keyed ``webhook:{data_id}:{topic}``. The key is
  claimed with add() before any business logic runs, so a concurrent
  duplicate delivery sees the mark even while the first one is still
  being processed.
- Outbound creation requests, keyed by the client-supplied idempotency
  key scoped to the user. The cached value is the full response body.

Implementations:
    CacheIdempotencyStore: Django cache backed (Redis via django-redis in
        production). add() is atomic across processes. Default.
    InMemoryIdempotencyStore: Per-process dict with lazy expiry and a
        sweep on write. Only correct for single-process deployments.

The backend is chosen with settings.BILLING_IDEMPOTENCY_STORE. Entries
expire after settings.BILLING_IDEMPOTENCY_TTL_SECONDS (24h by default);
the store is best effort and a restart of the in-memory backend may let
an old notification be processed again.

Usage:
    from billing.idempotency import get_idempotency_store, webhook_key

    store = get_idempotency_store()
    if not store.add(webhook_key(data_id, topic), "processing"):
        return  # duplicate delivery
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.cache import caches
from django.utils.module_loading import import_string

from billing.exceptions import IdempotencyConflictError

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

logger = logging.getLogger(__name__)


DEFAULT_TTL_SECONDS = 24 * 60 * 60
KEY_PREFIX = "billing:idempotency:"
# In-memory stores drop expired entries at most this often while being written to
SWEEP_INTERVAL_SECONDS = 60

_MISSING = object()


def webhook_key(data_id: str, topic: str) -> str:
    """Derive the dedupe key for an inbound notification."""
    return f"webhook:{data_id}:{topic}"


def creation_key(operation: str, user_id: Any, client_key: str) -> str:
    """Derive the replay key for an outbound creation request."""
    return f"{operation}:{user_id}:{client_key}"


def default_ttl() -> int:
    return getattr(settings, "BILLING_IDEMPOTENCY_TTL_SECONDS", DEFAULT_TTL_SECONDS)


class IdempotencyStore:
    """
    Interface shared by idempotency store backends.

    Values must be JSON-compatible so every backend can hold them.
    """

    def get(self, key: str) -> Any | None:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        raise NotImplementedError

    def add(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Store value only if key is absent or expired.

        Returns:
            True if this call claimed the key, False if it was already set
        """
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def cleanup(self) -> int:
        """Remove expired entries and return how many were dropped."""
        return 0


class InMemoryIdempotencyStore(IdempotencyStore):
    """
    Process-local store with lazy expiry.

    Expired entries read as absent. Writes also sweep the whole dict, at
    most once per sweep_interval seconds, so keys that are never read again
    do not pile up; cleanup() forces a sweep.
    """

    def __init__(self, sweep_interval: float = SWEEP_INTERVAL_SECONDS) -> None:
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self.sweep_interval = sweep_interval
        self._next_sweep: float | None = None

    def _live_value(self, key: str, now: float) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        value, expires_at = entry
        if expires_at <= now:
            del self._entries[key]
            return _MISSING
        return value

    def _drop_expired(self, now: float) -> int:
        expired = [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _sweep_if_due(self, now: float) -> None:
        # Caller holds the lock
        if self._next_sweep is None:
            self._next_sweep = now + self.sweep_interval
            return
        if now < self._next_sweep:
            return
        self._next_sweep = now + self.sweep_interval
        swept = self._drop_expired(now)
        if swept:
            logger.debug("Swept expired idempotency entries", extra={"count": swept})

    def get(self, key: str) -> Any | None:
        with self._lock:
            value = self._live_value(key, time.monotonic())
        return None if value is _MISSING else value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        now = time.monotonic()
        with self._lock:
            self._sweep_if_due(now)
            self._entries[key] = (value, now + (ttl if ttl is not None else default_ttl()))

    def add(self, key: str, value: Any, ttl: int | None = None) -> bool:
        now = time.monotonic()
        with self._lock:
            self._sweep_if_due(now)
            if self._live_value(key, now) is not _MISSING:
                return False
            self._entries[key] = (value, now + (ttl if ttl is not None else default_ttl()))
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def cleanup(self) -> int:
        with self._lock:
            swept = self._drop_expired(time.monotonic())
        if swept:
            logger.debug("Swept expired idempotency entries", extra={"count": swept})
        return swept

    def __len__(self) -> int:
        return len(self._entries)


class CacheIdempotencyStore(IdempotencyStore):
    """
    Store backed by a Django cache alias.

    With django-redis, add() is a single SET NX so two workers cannot both
    claim the same notification. Expiry is handled by the cache backend,
    so cleanup() has nothing to do.
    """

    def __init__(self, alias: str | None = None) -> None:
        self.alias = alias or getattr(settings, "BILLING_CACHE_ALIAS", "default")

    @property
    def cache(self):
        return caches[self.alias]

    def _key(self, key: str) -> str:
        return f"{KEY_PREFIX}{key}"

    def get(self, key: str) -> Any | None:
        return self.cache.get(self._key(key))

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        self.cache.set(self._key(key), value, timeout=ttl if ttl is not None else default_ttl())

    def add(self, key: str, value: Any, ttl: int | None = None) -> bool:
        return bool(
            self.cache.add(
                self._key(key),
                value,
                timeout=ttl if ttl is not None else default_ttl(),
            )
        )

    def delete(self, key: str) -> None:
        self.cache.delete(self._key(key))


# =============================================================================
# Request replay
# =============================================================================

# How long a claimed-but-unfinished creation blocks other requests with the key.
IN_PROGRESS_TTL_SECONDS = 120

STATE_IN_PROGRESS = "in_progress"
STATE_COMPLETED = "completed"


def _check_cached(entry: dict[str, Any], fingerprint: str) -> dict[str, Any]:
    if entry.get("fingerprint") != fingerprint:
        raise IdempotencyConflictError(
            "Idempotency key was already used with a different request",
            error_code="IDEMPOTENCY_KEY_REUSED",
        )
    if entry.get("state") != STATE_COMPLETED:
        raise IdempotencyConflictError(
            "A request with this idempotency key is still being processed",
            error_code="IDEMPOTENCY_REQUEST_IN_PROGRESS",
        )
    return entry["response"]


def run_idempotent(
    key: str | None,
    fingerprint: str,
    produce: Callable[[], dict[str, Any]],
    ttl: int | None = None,
) -> tuple[dict[str, Any], bool]:
    """
    Run produce() at most once per key and replay its response afterwards.

    The key is claimed atomically before produce() runs so two concurrent
    requests cannot both create a resource. If produce() raises, the claim
    is released and the request can be retried with the same key.

    Args:
        key: Scoped idempotency key, or None to always run produce()
        fingerprint: Hash of the request body; a different body with the
            same key is rejected
        produce: Builds the JSON-compatible response

    Returns:
        (response, replayed)

    Raises:
        IdempotencyConflictError: Key reused with another body, or in flight
    """
    if key is None:
        return produce(), False

    store = get_idempotency_store()
    cached = store.get(key)
    if cached is not None:
        return _check_cached(cached, fingerprint), True

    claim = {"state": STATE_IN_PROGRESS, "fingerprint": fingerprint}
    if not store.add(key, claim, ttl=IN_PROGRESS_TTL_SECONDS):
        cached = store.get(key) or claim
        return _check_cached(cached, fingerprint), True

    try:
        response = produce()
    except Exception:
        store.delete(key)
        raise

    store.set(
        key,
        {"state": STATE_COMPLETED, "fingerprint": fingerprint, "response": response},
        ttl=ttl,
    )
    return response, False


# =============================================================================
# Process-wide instance
# =============================================================================

_store: IdempotencyStore | None = None
_store_lock = threading.Lock()


def get_idempotency_store() -> IdempotencyStore:
    """Return the configured store, building it on first use."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                path = getattr(
                    settings,
                    "BILLING_IDEMPOTENCY_STORE",
                    "billing.idempotency.CacheIdempotencyStore",
                )
                _store = import_string(path)()
    return _store


def reset_idempotency_store() -> None:
    """Drop the process-wide store so the next call rebuilds it."""
    global _store
    with _store_lock:
        _store = None
