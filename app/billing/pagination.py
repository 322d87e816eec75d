"""
Pagination classes for billing API lists.

Payments, subscriptions and plans are listed newest first with
limit/offset windows:
    GET /api/v1/billing/payments/?limit=10&offset=20

Response shape:
    {"count": 42, "next": "...", "previous": "...", "results": [...]}
"""

from rest_framework.pagination import LimitOffsetPagination


class BillingPagination(LimitOffsetPagination):
    """
    Limit/offset pagination for billing records.

    Default: 10 items per page (REST_FRAMEWORK["PAGE_SIZE"])
    Maximum: 100 items per page, larger limits are clamped
    """

    default_limit = 10
    max_limit = 100
