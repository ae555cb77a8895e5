"""Tests for webhook signature verification."""

import base64
import hashlib
import hmac
import time
from unittest.mock import patch

import pytest

from supporter360.webhooks.verification import (
    verify_gocardless,
    verify_mailchimp,
    verify_shopify,
    verify_stripe,
)

pytestmark = pytest.mark.unit

SECRET = "whsec_test"
BODY = b'{"id": 1, "email": "a@example.com"}'


def _shopify_sig(body: bytes, secret: str = SECRET) -> str:
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


def _stripe_header(body: bytes, timestamp: int, secret: str = SECRET) -> str:
    sig = hmac.new(secret.encode(), f"{timestamp}.".encode() + body, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={sig}"


def _gocardless_sig(body: bytes, secret: str = SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class TestShopify:
    def test_valid_signature(self):
        assert verify_shopify(BODY, _shopify_sig(BODY), SECRET) is True

    def test_tampered_body_rejected(self):
        assert verify_shopify(BODY + b" ", _shopify_sig(BODY), SECRET) is False

    def test_wrong_secret_rejected(self):
        assert verify_shopify(BODY, _shopify_sig(BODY, "other"), SECRET) is False

    def test_length_mismatch_rejected(self):
        assert verify_shopify(BODY, "short", SECRET) is False

    def test_empty_secret_fails_closed(self):
        assert verify_shopify(BODY, _shopify_sig(BODY, ""), "") is False

    def test_missing_signature(self):
        assert verify_shopify(BODY, None, SECRET) is False


class TestStripe:
    def test_valid_within_tolerance(self):
        header = _stripe_header(BODY, int(time.time()) - 100)
        assert verify_stripe(BODY, header, SECRET) is True

    def test_timestamp_too_old(self):
        header = _stripe_header(BODY, int(time.time()) - 400)
        assert verify_stripe(BODY, header, SECRET) is False

    def test_timestamp_in_future_beyond_tolerance(self):
        header = _stripe_header(BODY, int(time.time()) + 400)
        assert verify_stripe(BODY, header, SECRET) is False

    def test_custom_tolerance(self):
        header = _stripe_header(BODY, int(time.time()) - 50)
        assert verify_stripe(BODY, header, SECRET, tolerance=10) is False

    def test_tampered_body_rejected(self):
        header = _stripe_header(BODY, int(time.time()))
        assert verify_stripe(BODY + b" ", header, SECRET) is False

    def test_any_v1_signature_may_match(self):
        ts = int(time.time())
        good = _stripe_header(BODY, ts).split(",")[1]
        header = f"t={ts},v1={'0' * 64},{good}"
        assert verify_stripe(BODY, header, SECRET) is True

    def test_missing_timestamp(self):
        sig = _stripe_header(BODY, int(time.time())).split(",")[1]
        assert verify_stripe(BODY, sig, SECRET) is False

    def test_malformed_timestamp(self):
        assert verify_stripe(BODY, "t=abc,v1=def", SECRET) is False

    def test_empty_secret_fails_closed(self):
        header = _stripe_header(BODY, int(time.time()), secret="")
        assert verify_stripe(BODY, header, "") is False

    def test_delegates_to_stripe_sdk(self):
        header = _stripe_header(BODY, int(time.time()))
        with patch("stripe.WebhookSignature.verify_header", return_value=True) as verify_header:
            assert verify_stripe(BODY, header, SECRET, tolerance=120) is True

        verify_header.assert_called_once_with(BODY.decode(), header, SECRET, tolerance=120)


class TestGoCardless:
    def test_valid_signature(self):
        assert verify_gocardless(BODY, _gocardless_sig(BODY), SECRET) is True

    def test_prefixed_signature(self):
        assert verify_gocardless(BODY, "sha256 " + _gocardless_sig(BODY), SECRET) is True

    def test_invalid_signature(self):
        assert verify_gocardless(BODY, _gocardless_sig(b"other"), SECRET) is False

    def test_empty_secret_fails_closed(self):
        assert verify_gocardless(BODY, _gocardless_sig(BODY, ""), "") is False


class TestMailchimp:
    def test_structural_check_passes(self):
        assert verify_mailchimp({"type": "subscribe", "data": {"email": "a@example.com"}}) is True

    @pytest.mark.parametrize(
        "payload",
        [None, [], {"type": "subscribe"}, {"data": {}}, {"type": "", "data": {}}],
    )
    def test_structural_check_fails(self, payload):
        assert verify_mailchimp(payload) is False
