"""
Database models for profiles, usage, and billing idempotency.
"""

from clixen.models.base import TimestampMixin, utcnow
from clixen.models.profile import Profile, Tier, TIER_RANK, SubscriptionStatus
from clixen.models.usage_record import UsageRecord
from clixen.models.processed_billing_event import ProcessedBillingEvent

__all__ = [
    "TimestampMixin",
    "utcnow",
    "Profile",
    "Tier",
    "TIER_RANK",
    "SubscriptionStatus",
    "UsageRecord",
    "ProcessedBillingEvent",
]
