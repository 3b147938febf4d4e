"""
Profile model - one row per end user.

Lifecycle:
1. Created at signup with tier=free and trial fields unset
2. Billing fields mutated by the payment webhook processor
3. Activity/metering fields mutated by the inbound message router
4. Never deleted by this service

Invariants enforced here:
- telegram_chat_id is unique when set (one chat binding per user)
- credits_remaining is never negative (CHECK constraint; debits are
  conditional updates that refuse to cross zero)
- trial_started_at is set at most once (start is a conditional update
  on trial_started_at IS NULL)
"""

import enum
import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String

from clixen.db_base import Base
from clixen.models.base import TimestampMixin


class Tier(str, enum.Enum):
    """Subscription tier."""
    FREE = "free"
    STARTER = "starter"
    PRO = "pro"
    ENTERPRISE = "enterprise"

    @classmethod
    def parse(cls, value) -> "Tier":
        """Parse a stored/provider tier string; unknown values are free."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.FREE


TIER_RANK = {
    Tier.FREE: 0,
    Tier.STARTER: 1,
    Tier.PRO: 2,
    Tier.ENTERPRISE: 3,
}


class SubscriptionStatus(str, enum.Enum):
    """Mirror of the payment provider's subscription status."""
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    UNPAID = "unpaid"


class Profile(Base, TimestampMixin):
    """End-user profile: identity, billing, trial, and metering facts."""

    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("credits_remaining >= 0", name="ck_profiles_credits_non_negative"),
    )

    # Identity
    id = Column(
        String(255),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
        comment="Internal UUID primary key",
    )
    auth_user_id = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="External auth provider identity",
    )
    email = Column(
        String(255),
        nullable=True,
        index=True,
        comment="Email used to resolve checkout events",
    )
    telegram_chat_id = Column(
        String(64),
        nullable=True,
        unique=True,
        comment="Bound chat identity (unique when set)",
    )
    telegram_username = Column(String(255), nullable=True)
    link_token = Column(
        String(64),
        nullable=True,
        unique=True,
        comment="One-time token for binding a chat identity",
    )
    link_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    # Billing
    tier = Column(
        String(32),
        nullable=False,
        default=Tier.FREE.value,
        index=True,
    )
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=True, index=True)
    subscription_status = Column(String(50), nullable=True)

    # Trial
    trial_active = Column(Boolean, nullable=False, default=False)
    trial_started_at = Column(DateTime(timezone=True), nullable=True)
    trial_expires_at = Column(DateTime(timezone=True), nullable=True)

    # Metering
    credits_remaining = Column(Integer, nullable=False, default=0)
    credits_used = Column(Integer, nullable=False, default=0)
    quota_limit = Column(
        Integer,
        nullable=True,
        comment="Max metered requests; NULL means unlimited",
    )
    quota_used = Column(Integer, nullable=False, default=0)

    last_activity_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def tier_enum(self) -> Tier:
        return Tier.parse(self.tier)

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, tier={self.tier})>"
