"""
Payment provider webhook processing.

Pipeline per delivery:
1. Verify the signature over the raw body (before JSON parsing)
2. Parse the event envelope
3. Record the provider event id as seen; a repeat delivery stops here
4. Map event type + payload to a single conditional profile update

Once an event is authenticated and recorded, the result is always an
acknowledgement: the provider retries on any non-2xx response, and a
retry of an understood event can only cause harm. Mutation failures after
that point raise an operational alert instead.

Subscription metadata keys read:
- profile_id or user_id: internal profile id
- supabase_user_id: auth provider identity (profiles.auth_user_id), stamped
  by the subscription checkout flow
- plan_id or tier: purchased plan; subscription and invoice events only,
  checkout sessions are priced by amount
"""

import enum
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from clixen.integrations.stripe.webhook_signature import (
    WebhookSignatureError,
    verify_webhook_signature,
)
from clixen.monitoring.alerts import BILLING_MUTATION_FAILED, emit_operational_alert
from clixen.services.billing_event_log import BillingEventLog
from clixen.services.plans import plan_for_amount, plan_for_tier
from clixen.services.profile_store import ProfileStore

logger = logging.getLogger(__name__)


class RejectReason(str, enum.Enum):
    """Why a delivery was refused (client error, no state change)."""
    INVALID_SIGNATURE = "invalid_signature"
    INVALID_PAYLOAD = "invalid_payload"


class HandlingOutcome(str, enum.Enum):
    """What an accepted event did."""
    APPLIED = "applied"
    PROFILE_NOT_FOUND = "profile_not_found"
    SKIPPED = "skipped"          # recognised type, but no usable reference in payload
    LOGGED = "logged"            # recognised type with no mutation by design
    IGNORED = "ignored"          # unrecognised type
    DUPLICATE = "duplicate"
    ERROR = "error"


@dataclass(frozen=True)
class WebhookResult:
    """Result of processing one delivery."""
    accepted: bool
    reject_reason: Optional[RejectReason] = None
    event_id: Optional[str] = None
    event_type: Optional[str] = None
    outcome: Optional[HandlingOutcome] = None

    @property
    def duplicate(self) -> bool:
        return self.outcome is HandlingOutcome.DUPLICATE


def _ref(value: Any) -> Optional[str]:
    """Provider references arrive either as an id string or an expanded object."""
    if isinstance(value, str) and value:
        return value
    if isinstance(value, dict):
        ref = value.get("id")
        return ref if isinstance(ref, str) and ref else None
    return None


def _metadata(obj: Dict[str, Any]) -> Dict[str, Any]:
    metadata = obj.get("metadata")
    return metadata if isinstance(metadata, dict) else {}


def _profile_ref(metadata: Dict[str, Any]) -> Optional[str]:
    return metadata.get("profile_id") or metadata.get("user_id")


def _auth_user_ref(metadata: Dict[str, Any]) -> Optional[str]:
    return metadata.get("supabase_user_id")


def _tier_ref(metadata: Dict[str, Any]) -> Optional[str]:
    return metadata.get("plan_id") or metadata.get("tier")


def _invoice_subscription_details(invoice: Dict[str, Any]) -> Dict[str, Any]:
    details = invoice.get("subscription_details")
    if not isinstance(details, dict):
        parent = invoice.get("parent")
        details = parent.get("subscription_details") if isinstance(parent, dict) else None
    return details if isinstance(details, dict) else {}


def _invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
    return _ref(invoice.get("subscription")) or _ref(
        _invoice_subscription_details(invoice).get("subscription")
    )


class BillingWebhookProcessor:
    """Authenticates provider events and applies their profile effects at most once."""

    def __init__(
        self,
        store: ProfileStore,
        event_log: BillingEventLog,
        *,
        webhook_secret: str,
        signature_tolerance_seconds: Optional[int] = 300,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.event_log = event_log
        self._webhook_secret = webhook_secret
        self._tolerance = signature_tolerance_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._handlers: Dict[str, Callable[[Dict[str, Any], datetime], HandlingOutcome]] = {
            "checkout.session.completed": self._handle_checkout_completed,
            "customer.subscription.created": self._handle_subscription_changed,
            "customer.subscription.updated": self._handle_subscription_changed,
            "customer.subscription.deleted": self._handle_subscription_deleted,
            "invoice.payment_succeeded": self._handle_invoice_paid,
            "invoice.payment_failed": self._handle_invoice_failed,
        }

    def process(self, raw_body: bytes, signature: Optional[str]) -> WebhookResult:
        """
        Process one webhook delivery.

        Raises:
            SQLAlchemyError: only if the seen-event record itself cannot be
                written; nothing has been applied, so a provider retry is safe.
        """
        try:
            verify_webhook_signature(
                raw_body,
                signature,
                self._webhook_secret,
                tolerance_seconds=self._tolerance,
            )
        except WebhookSignatureError as e:
            logger.warning("Invalid billing webhook signature", extra={"error": str(e)})
            return WebhookResult(accepted=False, reject_reason=RejectReason.INVALID_SIGNATURE)

        try:
            event = json.loads(raw_body)
        except ValueError:
            logger.error("Invalid billing webhook JSON payload")
            return WebhookResult(accepted=False, reject_reason=RejectReason.INVALID_PAYLOAD)

        event_id = event.get("id") if isinstance(event, dict) else None
        event_type = event.get("type") if isinstance(event, dict) else None
        data = event.get("data") if isinstance(event, dict) else None
        obj = data.get("object") if isinstance(data, dict) else None
        if not event_id or not event_type or not isinstance(obj, dict):
            logger.error(
                "Billing webhook envelope incomplete",
                extra={"event_id": event_id, "event_type": event_type},
            )
            return WebhookResult(accepted=False, reject_reason=RejectReason.INVALID_PAYLOAD)

        now = self._clock()
        log_context = {"event_id": event_id, "event_type": event_type}

        if not self.event_log.mark_seen(event_id, event_type, now):
            logger.info("Duplicate billing event ignored", extra=log_context)
            return WebhookResult(
                accepted=True,
                event_id=event_id,
                event_type=event_type,
                outcome=HandlingOutcome.DUPLICATE,
            )

        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info("Unhandled billing event type", extra=log_context)
            outcome = HandlingOutcome.IGNORED
        else:
            try:
                outcome = handler(obj, now)
            except Exception as e:
                emit_operational_alert(
                    BILLING_MUTATION_FAILED,
                    {**log_context, "error_type": type(e).__name__, "error": str(e)},
                )
                outcome = HandlingOutcome.ERROR

        self.event_log.record_outcome(event_id, outcome.value, now)
        logger.info("Billing event processed", extra={**log_context, "outcome": outcome.value})
        return WebhookResult(
            accepted=True,
            event_id=event_id,
            event_type=event_type,
            outcome=outcome,
        )

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _handle_checkout_completed(self, session: Dict[str, Any], now: datetime) -> HandlingOutcome:
        """Hosted checkout: resolve by email or stored customer, infer tier from amount."""
        customer_details = session.get("customer_details")
        email = session.get("customer_email") or (
            customer_details.get("email") if isinstance(customer_details, dict) else None
        )
        customer_id = _ref(session.get("customer"))
        subscription_id = _ref(session.get("subscription"))

        if not email and not customer_id:
            logger.error("Checkout session has no customer email or customer reference")
            return HandlingOutcome.SKIPPED

        plan = plan_for_amount(session.get("amount_total"))
        applied = self.store.apply_checkout_plan(
            plan,
            email=email,
            customer_id=customer_id,
            subscription_id=subscription_id,
            now=now,
        )
        if not applied:
            logger.warning(
                "No profile found for checkout session",
                extra={"customer_id": customer_id, "has_email": bool(email)},
            )
            return HandlingOutcome.PROFILE_NOT_FOUND

        logger.info(
            "Profile upgraded from checkout",
            extra={"tier": plan.tier.value, "credits": plan.credits, "customer_id": customer_id},
        )
        return HandlingOutcome.APPLIED

    def _handle_subscription_changed(self, subscription: Dict[str, Any], now: datetime) -> HandlingOutcome:
        """Created/updated: active + known tier -> that plan, otherwise free with zero credits."""
        metadata = _metadata(subscription)
        profile_id = _profile_ref(metadata)
        auth_user_id = _auth_user_ref(metadata)
        if not profile_id and not auth_user_id:
            logger.warning(
                "Subscription event without profile reference",
                extra={"subscription_id": subscription.get("id")},
            )
            return HandlingOutcome.SKIPPED

        status = subscription.get("status")
        plan = plan_for_tier(_tier_ref(metadata)) if status == "active" else None

        applied = self.store.apply_subscription_state(
            profile_id,
            plan,
            auth_user_id=auth_user_id,
            subscription_id=_ref(subscription.get("id")),
            status=status,
            now=now,
        )
        if not applied:
            logger.warning(
                "No profile found for subscription event",
                extra={"profile_id": profile_id, "auth_user_id": auth_user_id},
            )
            return HandlingOutcome.PROFILE_NOT_FOUND

        logger.info(
            "Subscription state synced",
            extra={
                "profile_id": profile_id,
                "auth_user_id": auth_user_id,
                "subscription_status": status,
                "tier": plan.tier.value if plan else "free",
            },
        )
        return HandlingOutcome.APPLIED

    def _handle_subscription_deleted(self, subscription: Dict[str, Any], now: datetime) -> HandlingOutcome:
        metadata = _metadata(subscription)
        profile_id = _profile_ref(metadata)
        auth_user_id = _auth_user_ref(metadata)
        subscription_id = _ref(subscription.get("id"))
        if not profile_id and not auth_user_id and not subscription_id:
            return HandlingOutcome.SKIPPED

        applied = self.store.downgrade_to_free(
            profile_id=profile_id,
            auth_user_id=auth_user_id,
            subscription_id=subscription_id,
            now=now,
        )

        if not applied:
            logger.warning(
                "No profile found for cancelled subscription",
                extra={"profile_id": profile_id, "subscription_id": subscription_id},
            )
            return HandlingOutcome.PROFILE_NOT_FOUND

        logger.info(
            "Profile downgraded after subscription cancellation",
            extra={"profile_id": profile_id, "subscription_id": subscription_id},
        )
        return HandlingOutcome.APPLIED

    def _handle_invoice_paid(self, invoice: Dict[str, Any], now: datetime) -> HandlingOutcome:
        """Renewal: refill credits to the subscription tier's allotment."""
        subscription_id = _invoice_subscription_id(invoice)
        if not subscription_id:
            logger.info("Invoice without subscription, nothing to refill")
            return HandlingOutcome.SKIPPED

        metadata = _invoice_subscription_details(invoice).get("metadata")
        plan = plan_for_tier(_tier_ref(metadata)) if isinstance(metadata, dict) else None

        applied = self.store.refill_for_subscription(subscription_id, plan, now=now)
        if not applied:
            logger.warning(
                "No paid profile found for invoice subscription",
                extra={"subscription_id": subscription_id},
            )
            return HandlingOutcome.PROFILE_NOT_FOUND

        logger.info("Credits refilled on renewal", extra={"subscription_id": subscription_id})
        return HandlingOutcome.APPLIED

    def _handle_invoice_failed(self, invoice: Dict[str, Any], now: datetime) -> HandlingOutcome:
        """Logged only; the profile keeps its tier until a subscription event changes it."""
        logger.warning(
            "Invoice payment failed",
            extra={
                "subscription_id": _invoice_subscription_id(invoice),
                "customer_id": _ref(invoice.get("customer")),
                "attempt_count": invoice.get("attempt_count"),
            },
        )
        return HandlingOutcome.LOGGED
