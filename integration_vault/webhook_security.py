"""
Webhook Security Module

Signature verification for the three inbound provider protocols:
- WhatsApp: subscription challenge-response, optional X-Hub-Signature-256
- Twilio: X-Twilio-Signature (HMAC-SHA1 over URL + sorted params)
- Stripe: Stripe-Signature timestamped envelope, checked by the Stripe SDK

Every verifier returns its verified result or raises WebhookVerificationError.
"""

import base64
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

import stripe

from .errors import WebhookVerificationError

logger = logging.getLogger(__name__)

# Maximum age of a signed Stripe event in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300

PAYMENT_EVENT_TYPES = {
    "payment_intent.succeeded": "payment_succeeded",
    "payment_intent.payment_failed": "payment_failed",
    "charge.refunded": "charge_refunded",
}


def constant_time_compare(a: Optional[str], b: Optional[str]) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Empty values never match.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


# ============================================================================
# WHATSAPP
# ============================================================================


def verify_subscription_challenge(
    mode: Optional[str],
    token: Optional[str],
    challenge: Optional[str],
    expected_tokens: Iterable[str],
) -> str:
    """
    WhatsApp subscription handshake.

    Returns the challenge to echo back when mode is "subscribe" and the token
    matches one of the configured verify tokens.
    """
    if mode != "subscribe":
        logger.warning(f"🚫 WhatsApp verification with unexpected mode: {mode}")
        raise WebhookVerificationError("Invalid hub.mode")

    # No early exit: every candidate is compared
    matched = False
    for expected in expected_tokens:
        if constant_time_compare(token, expected):
            matched = True

    if not matched or challenge is None:
        logger.warning("🚫 WhatsApp verify token mismatch")
        raise WebhookVerificationError("Verification token mismatch")

    logger.info("✅ WhatsApp webhook subscription verified")
    return challenge


def verify_meta_signature(app_secret: str, raw_body: bytes, signature_header: Optional[str]) -> None:
    """Check X-Hub-Signature-256 (format: "sha256=<hex_digest>") on a delivery"""
    if not signature_header:
        logger.warning("🚫 WhatsApp delivery missing X-Hub-Signature-256")
        raise WebhookVerificationError("Missing webhook signature")

    expected_header = f"sha256={compute_hmac_sha256(app_secret, raw_body)}"
    if not constant_time_compare(expected_header, signature_header):
        logger.warning("🚫 WhatsApp delivery signature mismatch")
        raise WebhookVerificationError("Invalid webhook signature")


# ============================================================================
# TWILIO
# ============================================================================


def compute_twilio_signature(auth_token: str, url: str, params: Mapping[str, Any]) -> str:
    """base64(HMAC-SHA1(auth_token, url + concatenation of sorted key+value pairs))"""
    signed = url + "".join(f"{key}{params[key]}" for key in sorted(params))
    digest = hmac.new(auth_token.encode("utf-8"), signed.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_twilio_signature(
    auth_token: Optional[str], signature: Optional[str], url: str, params: Mapping[str, Any]
) -> None:
    if not auth_token:
        logger.error("❌ No Twilio auth token available to verify webhook")
        raise WebhookVerificationError("Webhook signing secret not configured")
    if not signature:
        logger.warning("🚫 Twilio webhook missing X-Twilio-Signature")
        raise WebhookVerificationError("Missing webhook signature")

    expected = compute_twilio_signature(auth_token, url, params)
    if not constant_time_compare(expected, signature):
        logger.warning(f"🚫 Twilio webhook signature mismatch for {url}")
        raise WebhookVerificationError("Invalid webhook signature")


# ============================================================================
# STRIPE
# ============================================================================


@dataclass
class PaymentEvent:
    """A verified Stripe event with its type normalized"""

    id: Optional[str]
    type: str
    data_object: dict[str, Any] = field(default_factory=dict)
    raw_type: Optional[str] = None


def verify_payment_event(
    raw_body: bytes,
    signature_header: Optional[str],
    secret: Optional[str],
    tolerance: int = MAX_WEBHOOK_AGE_SECONDS,
) -> PaymentEvent:
    """Authenticate a Stripe-Signature envelope and parse the event"""
    if not secret:
        logger.error("❌ Stripe webhook secret not configured")
        raise WebhookVerificationError("Webhook secret not configured", status_code=400)
    if not signature_header:
        logger.warning("🚫 Stripe webhook missing signature header")
        raise WebhookVerificationError("Missing Stripe-Signature header", status_code=400)

    try:
        payload = raw_body.decode("utf-8")
        stripe.WebhookSignature.verify_header(payload, signature_header, secret, tolerance)
    except stripe.SignatureVerificationError as e:
        logger.warning(f"🚫 Stripe webhook signature verification failed: {e}")
        raise WebhookVerificationError(f"Webhook Error: {e}", status_code=400) from e
    except UnicodeDecodeError as e:
        raise WebhookVerificationError("Webhook Error: payload is not UTF-8", status_code=400) from e

    try:
        event = json.loads(payload)
    except ValueError as e:
        raise WebhookVerificationError("Webhook Error: invalid JSON payload", status_code=400) from e

    raw_type = event.get("type") or ""
    data_object = (event.get("data") or {}).get("object") or {}
    logger.info(f"✅ Stripe event verified: {event.get('id')} ({raw_type})")
    return PaymentEvent(
        id=event.get("id"),
        type=PAYMENT_EVENT_TYPES.get(raw_type, raw_type),
        data_object=data_object,
        raw_type=raw_type,
    )


def create_webhook_signature(
    secret: str,
    payload: bytes,
    provider: str = "generic",
    url: Optional[str] = None,
    params: Optional[Mapping[str, Any]] = None,
    timestamp: Optional[int] = None,
) -> str:
    """
    Create a webhook signature for testing or outgoing webhooks.

    Args:
        secret: Signing secret
        payload: Request body bytes
        provider: Provider format ('generic', 'meta', 'stripe', 'twilio')
        url, params: Signed URL and form params ('twilio' only)
        timestamp: Signing time ('stripe' only, defaults to now)

    Returns:
        Signature string in provider's format
    """
    if provider == "meta":
        return f"sha256={compute_hmac_sha256(secret, payload)}"
    elif provider == "stripe":
        timestamp = int(time.time()) if timestamp is None else timestamp
        signed_payload = f"{timestamp}.{payload.decode('utf-8')}"
        sig = compute_hmac_sha256(secret, signed_payload.encode())
        return f"t={timestamp},v1={sig}"
    elif provider == "twilio":
        return compute_twilio_signature(secret, url or "", params or {})
    else:
        return compute_hmac_sha256(secret, payload)
