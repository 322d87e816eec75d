"""
Tests for billing validators.

Tests cover:
- Amounts, currencies and frequencies
- Provider amount comparison
- Callback URL trust rules
- Metadata sanitization
- Idempotency key format and webhook topics
"""

from decimal import Decimal

import pytest

from billing.exceptions import PaymentValidationError
from billing.validators import (
    MAX_METADATA_STRING_LENGTH,
    amounts_match,
    is_valid_amount,
    is_valid_callback_url,
    is_valid_currency,
    is_valid_frequency,
    is_valid_idempotency_key,
    is_valid_webhook_topic,
    sanitize_metadata,
    to_decimal,
    validate_amount,
    validate_callback_url,
    validate_currency,
    validate_frequency,
)


class TestAmounts:
    @pytest.mark.parametrize("value", [1, "0.01", 999999999, Decimal("12.50"), 10.5])
    def test_valid(self, value):
        assert is_valid_amount(value)

    @pytest.mark.parametrize(
        "value",
        [0, -1, "1000000000", float("inf"), float("nan"), "abc", None, True],
    )
    def test_invalid(self, value):
        assert not is_valid_amount(value)

    def test_validate_returns_decimal(self):
        assert validate_amount("10.25") == Decimal("10.25")

    def test_validate_raises(self):
        with pytest.raises(PaymentValidationError) as exc_info:
            validate_amount(0)
        assert exc_info.value.error_code == "INVALID_AMOUNT"

    def test_to_decimal_rejects_bool(self):
        assert to_decimal(False) is None


class TestCurrencyAndFrequency:
    def test_currency(self):
        assert is_valid_currency("ARS")
        assert is_valid_currency("BRL")
        assert not is_valid_currency("USD")
        assert not is_valid_currency("ars")

        with pytest.raises(PaymentValidationError) as exc_info:
            validate_currency("USD")
        assert exc_info.value.error_code == "INVALID_CURRENCY"

    @pytest.mark.parametrize(
        "value,expected",
        [(1, True), (365, True), (0, False), (366, False), (1.5, False), (True, False)],
    )
    def test_frequency(self, value, expected):
        assert is_valid_frequency(value) is expected

    def test_validate_frequency_raises(self):
        with pytest.raises(PaymentValidationError):
            validate_frequency(0)


class TestAmountsMatch:
    def test_within_tolerance(self):
        """Should treat a one-cent difference as equal."""
        assert amounts_match(Decimal("100.00"), 100.01)
        assert amounts_match("100", Decimal("99.99"))

    def test_outside_tolerance(self):
        assert not amounts_match(Decimal("100.00"), Decimal("1.00"))
        assert not amounts_match(Decimal("100.00"), 100.02)

    def test_unparseable_never_matches(self):
        assert not amounts_match(Decimal("100.00"), None)
        assert not amounts_match("abc", "abc")


class TestCallbackUrls:
    ALLOWED = ["shop.example.com", "*.example.org"]

    def test_exact_host(self):
        assert is_valid_callback_url(
            "https://shop.example.com/ok", self.ALLOWED, require_https=True
        )

    def test_wildcard_subdomain(self):
        assert is_valid_callback_url(
            "https://pay.example.org/done", self.ALLOWED, require_https=True
        )

    def test_wildcard_does_not_match_lookalike(self):
        """Should not let evilexample.org match *.example.org."""
        assert not is_valid_callback_url(
            "https://evilexample.org/", self.ALLOWED, require_https=True
        )

    def test_untrusted_host(self):
        assert not is_valid_callback_url(
            "https://attacker.test/", self.ALLOWED, require_https=True
        )

    def test_https_required_in_production(self):
        url = "http://shop.example.com/ok"
        assert not is_valid_callback_url(url, self.ALLOWED, require_https=True)
        assert is_valid_callback_url(url, self.ALLOWED, require_https=False)

    @pytest.mark.parametrize(
        "url",
        ["", None, "javascript:alert(1)", "ftp://shop.example.com/", "https://", "not a url"],
    )
    def test_malformed(self, url):
        assert not is_valid_callback_url(url, self.ALLOWED, require_https=False)

    def test_settings_defaults(self):
        """Should read trusted origins from settings when none are passed."""
        assert is_valid_callback_url("https://shop.example.com/payment/success")

    def test_validate_raises(self):
        with pytest.raises(PaymentValidationError) as exc_info:
            validate_callback_url("https://attacker.test/")
        assert exc_info.value.error_code == "INVALID_CALLBACK_URL"


class TestSanitizeMetadata:
    def test_drops_dangerous_keys(self):
        """Should drop __proto__, constructor and prototype at every level."""
        data = {
            "__proto__": {"admin": True},
            "order": {"constructor": "x", "prototype": "y", "id": 7},
            "ok": 1,
        }

        assert sanitize_metadata(data) == {"order": {"id": 7}, "ok": 1}

    def test_truncates_long_strings(self):
        result = sanitize_metadata({"note": "a" * 6000})

        assert len(result["note"]) == MAX_METADATA_STRING_LENGTH

    def test_does_not_mutate_input(self):
        data = {"__proto__": 1}
        sanitize_metadata(data)
        assert "__proto__" in data

    def test_non_dict_passthrough(self):
        assert sanitize_metadata(["__proto__"]) == ["__proto__"]
        assert sanitize_metadata(None) is None


class TestIdempotencyKeysAndTopics:
    @pytest.mark.parametrize(
        "key",
        ["4f9c0a4e-3b1d-4c5e-9a2b-1d2e3f4a5b6c", "order_12345", "a" * 64, "ABC-def_9"],
    )
    def test_valid_keys(self, key):
        assert is_valid_idempotency_key(key)

    @pytest.mark.parametrize("key", ["short", "a" * 65, "has space!", "", None, 12345678])
    def test_invalid_keys(self, key):
        assert not is_valid_idempotency_key(key)

    def test_topics(self):
        assert is_valid_webhook_topic("payment")
        assert is_valid_webhook_topic("subscription_preapproval")
        assert is_valid_webhook_topic("authorized_payment")
        assert not is_valid_webhook_topic("invoice.paid")
        assert not is_valid_webhook_topic(None)
