"""
Project-wide pytest configuration and fixtures.

This module marks tests by filename and resets the process-wide billing
state between tests. App-specific fixtures are defined in each app's
tests/conftest.py.
"""

import pytest
from django.core.cache import caches

from billing.idempotency import reset_idempotency_store
from billing.rate_limit import reset_rate_limiter


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full webhook journeys)
    - test_views.py, test_services.py, test_tasks.py, etc. → integration
    - test_models.py, test_serializers.py, test_validators.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_handlers.py",
        "test_health.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_serializers.py",
        "test_validators.py",
        "test_signatures.py",
        "test_idempotency.py",
        "test_rate_limit.py",
        "test_hooks.py",
        "test_notifications.py",
        "test_mercadopago_adapter.py",
        "test_exceptions.py",
        "test_service_result.py",
        "test_helpers.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def _reset_billing_state():
    """Give every test an empty cache, dedupe store and rate limiter."""
    for cache in caches.all():
        cache.clear()
    reset_idempotency_store()
    reset_rate_limiter()
    yield
    reset_idempotency_store()
    reset_rate_limiter()
