"""
Stripe webhook endpoint.

SECURITY:
- The signature is verified over the raw body before anything is parsed
- No authentication middleware (webhooks come from Stripe, not users)
- Profiles are resolved from the event payload, never from request headers
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clixen.database.session import get_db_session
from clixen.platform.errors import ServiceUnavailableError, WebhookRejectedError
from clixen.services.billing_event_log import BillingEventLog
from clixen.services.billing_service import BillingWebhookProcessor, RejectReason
from clixen.services.profile_store import ProfileStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

_REJECT_ERRORS = {
    RejectReason.INVALID_SIGNATURE: ("INVALID_SIGNATURE", "Invalid webhook signature"),
    RejectReason.INVALID_PAYLOAD: ("INVALID_PAYLOAD", "Invalid webhook payload"),
}


@router.post("/stripe")
async def handle_stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db_session),
):
    """
    Handle a Stripe event delivery.

    Returns 400 for unauthenticated or unparseable deliveries; every
    authenticated event (including duplicates and unknown types) is
    acknowledged so Stripe stops retrying.
    """
    settings = request.app.state.services.settings
    body = await request.body()

    processor = BillingWebhookProcessor(
        ProfileStore(db),
        BillingEventLog(db),
        webhook_secret=settings.stripe_webhook_secret,
        signature_tolerance_seconds=settings.stripe_signature_tolerance_seconds,
    )

    try:
        result = processor.process(body, stripe_signature)
    except SQLAlchemyError as e:
        # nothing was applied; a retry from Stripe is safe
        logger.error("Billing event could not be recorded", extra={"error": str(e)})
        raise ServiceUnavailableError("Billing event could not be recorded")

    if not result.accepted:
        code, message = _REJECT_ERRORS[result.reject_reason]
        raise WebhookRejectedError(code, message)

    return {"received": True}
