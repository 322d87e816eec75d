"""
Tests for core helper functions.
"""

import uuid
from decimal import Decimal

from django.test import RequestFactory

from core.helpers import get_client_ip, hash_payload


class TestHashPayload:
    def test_key_order_independent(self):
        assert hash_payload({"b": 1, "a": 2}) == hash_payload({"a": 2, "b": 1})

    def test_different_payloads(self):
        assert hash_payload({"amount": "10.00"}) != hash_payload({"amount": "10.01"})

    def test_encodes_decimals_and_uuids(self):
        payload = {"amount": Decimal("10.50"), "id": uuid.UUID(int=1)}

        assert len(hash_payload(payload)) == 64


class TestGetClientIp:
    def test_remote_addr(self):
        request = RequestFactory().get("/", REMOTE_ADDR="198.51.100.7")
        assert get_client_ip(request) == "198.51.100.7"

    def test_forwarded_for_chain(self):
        request = RequestFactory().get(
            "/",
            HTTP_X_FORWARDED_FOR="203.0.113.9, 10.0.0.1",
            REMOTE_ADDR="10.0.0.1",
        )
        assert get_client_ip(request) == "203.0.113.9"
