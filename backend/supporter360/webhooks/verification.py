"""Webhook signature verification for each provider.

Security contract:
- Shopify and GoCardless MACs are compared through ``_constant_time_equals``
  (length check, then hmac.compare_digest over bytes)
- Stripe signatures are checked by the Stripe SDK (``stripe.WebhookSignature``)
- Empty secret -> verification always fails (fail-closed)
- Stripe timestamp tolerance defaults to 300s in either direction
- Mailchimp signs nothing; its check is structural only
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from collections.abc import Mapping
from typing import Any

import stripe
import structlog

logger = structlog.get_logger(__name__)

STRIPE_DEFAULT_TOLERANCE_SECONDS = 300
GOCARDLESS_SIGNATURE_PREFIX = "sha256 "


def _constant_time_equals(expected: str, provided: str) -> bool:
    expected_bytes = expected.encode("utf-8")
    provided_bytes = provided.encode("utf-8")
    if len(expected_bytes) != len(provided_bytes):
        return False
    return hmac.compare_digest(expected_bytes, provided_bytes)


def _hmac_sha256(secret: str, message: bytes) -> hmac.HMAC:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256)


def verify_shopify(raw_body: bytes, signature: str | None, secret: str) -> bool:
    """Verify X-Shopify-Hmac-SHA256 (base64 HMAC-SHA256 of the raw body)."""
    if not secret:
        logger.warning("webhook_secret_missing", provider="shopify")
        return False
    if not signature:
        return False

    computed = base64.b64encode(_hmac_sha256(secret, raw_body).digest()).decode("ascii")
    return _constant_time_equals(computed, signature.strip())


def _stripe_timestamp(header: str) -> int | None:
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            try:
                return int(value)
            except ValueError:
                return None
    return None


def verify_stripe(
    raw_body: bytes,
    signature: str | None,
    secret: str,
    tolerance: int = STRIPE_DEFAULT_TOLERANCE_SECONDS,
) -> bool:
    """Verify Stripe-Signature through ``stripe.WebhookSignature.verify_header``.

    The SDK only rejects stale timestamps; future-dated ones beyond the
    tolerance are rejected here too.
    """
    if not secret:
        logger.warning("webhook_secret_missing", provider="stripe")
        return False
    if not signature:
        return False

    try:
        stripe.WebhookSignature.verify_header(raw_body.decode("utf-8"), signature, secret, tolerance=tolerance)
    except ValueError:
        return False
    except stripe.SignatureVerificationError as e:
        logger.warning("stripe_signature_rejected", reason=str(e))
        return False

    timestamp = _stripe_timestamp(signature)
    if timestamp is None or timestamp - time.time() > tolerance:
        logger.warning("stripe_signature_outside_tolerance", timestamp=timestamp, tolerance=tolerance)
        return False
    return True


def verify_gocardless(raw_body: bytes, signature: str | None, secret: str) -> bool:
    """Verify Webhook-Signature (hex HMAC-SHA256 of the body, optional ``sha256 `` prefix)."""
    if not secret:
        logger.warning("webhook_secret_missing", provider="gocardless")
        return False
    if not signature:
        return False

    provided = signature.strip()
    if provided.startswith(GOCARDLESS_SIGNATURE_PREFIX):
        provided = provided[len(GOCARDLESS_SIGNATURE_PREFIX):]

    computed = _hmac_sha256(secret, raw_body).hexdigest()
    return _constant_time_equals(computed, provided)


def verify_mailchimp(payload: Mapping[str, Any] | None) -> bool:
    """Structural check only: Mailchimp does not sign its webhooks.

    Accepted risk: anyone who knows the endpoint URL can post a
    well-formed body.
    """
    if not isinstance(payload, Mapping):
        return False
    return bool(payload.get("type")) and payload.get("data") is not None
