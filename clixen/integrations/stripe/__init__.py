"""Stripe payment provider integration."""

from clixen.integrations.stripe.webhook_signature import (
    WebhookSignatureError,
    verify_webhook_signature,
)

__all__ = ["WebhookSignatureError", "verify_webhook_signature"]
