"""
Stripe webhook signature verification.

Runs on the raw request body before any JSON parsing, so unverified
payloads are never interpreted.
"""

import logging
from typing import Optional

import stripe

logger = logging.getLogger(__name__)


class WebhookSignatureError(Exception):
    """Raised when a webhook body does not carry a valid provider signature."""

    def __init__(self, message: str, code: str = "invalid_signature"):
        super().__init__(message)
        self.code = code


def verify_webhook_signature(
    payload: bytes,
    signature: Optional[str],
    secret: str,
    tolerance_seconds: Optional[int] = 300,
) -> None:
    """
    Verify a Stripe-Signature header against the raw body.

    Args:
        payload: Raw request body bytes
        signature: Stripe-Signature header value
        secret: Endpoint signing secret (whsec_...)
        tolerance_seconds: Max age of the signed timestamp; None disables the check

    Raises:
        WebhookSignatureError: If the signature is missing, malformed, or wrong
    """
    if not secret:
        logger.error("Stripe webhook secret not configured for webhook verification")
        raise WebhookSignatureError("Webhook secret not configured")

    if not signature:
        raise WebhookSignatureError("Missing signature header")

    try:
        body = payload.decode("utf-8")
    except UnicodeDecodeError:
        raise WebhookSignatureError("Payload is not valid UTF-8")

    try:
        stripe.WebhookSignature.verify_header(body, signature, secret, tolerance_seconds)
    except stripe.SignatureVerificationError as e:
        raise WebhookSignatureError(str(e)) from e
