"""
Profile record store.

The profile row is the only shared mutable resource: billing webhooks and
chat messages hit the same row concurrently from independent requests.
Every mutation here is therefore a single conditional UPDATE
(match-then-set, computed relative to the stored value) committed on its
own, never a load-mutate-save across two round trips.

Methods return whether a row matched; callers treat "no match" as a
non-fatal outcome (profile missing, precondition not met).
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import case, func, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clixen.entitlements.evaluator import (
    TRIAL_CREDITS,
    TRIAL_DURATION,
    TRIAL_ELIGIBILITY_WINDOW,
)
from clixen.models.profile import Profile, SubscriptionStatus, Tier
from clixen.services.plans import FREE_TIER_CREDITS, PLANS, PlanDefinition

logger = logging.getLogger(__name__)

LINK_TOKEN_TTL = timedelta(minutes=10)


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def _identity_criteria(profile_id: Optional[str], auth_user_id: Optional[str]):
    """Internal id wins; the auth identity is the fallback reference."""
    if profile_id:
        return Profile.id == profile_id
    return Profile.auth_user_id == auth_user_id


class ProfileStore:
    """Narrow, conditional reads and writes against the profiles table."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_chat_id(self, chat_id) -> Optional[Profile]:
        if chat_id is None or str(chat_id).strip() == "":
            return None
        return self.db.query(Profile).filter(
            Profile.telegram_chat_id == str(chat_id),
        ).first()

    def get_by_email(self, email: str) -> Optional[Profile]:
        if not email:
            return None
        return self.db.query(Profile).filter(
            func.lower(Profile.email) == email.strip().lower(),
        ).first()

    # ------------------------------------------------------------------
    # Signup / trial
    # ------------------------------------------------------------------

    def create_profile(
        self,
        auth_user_id: str,
        email: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Profile:
        """Create a free-tier profile with trial fields unset."""
        created_at = _now(now)
        profile = Profile(
            auth_user_id=auth_user_id,
            email=email.strip().lower() if email else None,
            tier=Tier.FREE.value,
            trial_active=False,
            trial_started_at=None,
            trial_expires_at=None,
            credits_remaining=0,
            credits_used=0,
            quota_used=0,
            created_at=created_at,
            updated_at=created_at,
        )
        self.db.add(profile)
        self._commit()
        logger.info("Profile created", extra={"profile_id": profile.id})
        return profile

    def start_trial(self, profile_id: str, now: Optional[datetime] = None) -> bool:
        """
        Start the one-time trial.

        Matches only free profiles that never started a trial and signed up
        within the eligibility window, so a trial can never be restarted.
        """
        current = _now(now)
        stmt = (
            update(Profile)
            .where(
                Profile.id == profile_id,
                Profile.tier == Tier.FREE.value,
                Profile.trial_started_at.is_(None),
                Profile.created_at >= current - TRIAL_ELIGIBILITY_WINDOW,
            )
            .values(
                trial_active=True,
                trial_started_at=current,
                trial_expires_at=current + TRIAL_DURATION,
                credits_remaining=Profile.credits_remaining + TRIAL_CREDITS,
                updated_at=current,
            )
        )
        started = self._execute(stmt) > 0
        logger.info(
            "Trial start requested",
            extra={"profile_id": profile_id, "started": started},
        )
        return started

    # ------------------------------------------------------------------
    # Billing mutations
    # ------------------------------------------------------------------

    def apply_checkout_plan(
        self,
        plan: PlanDefinition,
        *,
        email: Optional[str] = None,
        customer_id: Optional[str] = None,
        subscription_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Upgrade the profile identified by email (or stored customer ref)."""
        current = _now(now)
        values = {
            "tier": plan.tier.value,
            "credits_remaining": plan.credits,
            "subscription_status": SubscriptionStatus.ACTIVE.value,
            "updated_at": current,
        }
        if customer_id:
            values["stripe_customer_id"] = customer_id
        if subscription_id:
            values["stripe_subscription_id"] = subscription_id

        if email:
            stmt = (
                update(Profile)
                .where(func.lower(Profile.email) == email.strip().lower())
                .values(**values)
            )
            if self._execute(stmt) > 0:
                return True

        if customer_id:
            stmt = (
                update(Profile)
                .where(Profile.stripe_customer_id == customer_id)
                .values(**values)
            )
            return self._execute(stmt) > 0

        return False

    def apply_subscription_state(
        self,
        profile_id: Optional[str],
        plan: Optional[PlanDefinition],
        *,
        auth_user_id: Optional[str] = None,
        subscription_id: Optional[str],
        status: Optional[str],
        now: Optional[datetime] = None,
    ) -> bool:
        """Sync tier/credits to a subscription; no plan means downgrade to free with zero credits."""
        if not profile_id and not auth_user_id:
            raise ValueError("profile_id or auth_user_id is required")

        current = _now(now)
        values = {
            "tier": plan.tier.value if plan else Tier.FREE.value,
            "credits_remaining": plan.credits if plan else 0,
            "subscription_status": status,
            "updated_at": current,
        }
        if subscription_id:
            values["stripe_subscription_id"] = subscription_id

        stmt = update(Profile).where(_identity_criteria(profile_id, auth_user_id)).values(**values)
        return self._execute(stmt) > 0

    def downgrade_to_free(
        self,
        *,
        profile_id: Optional[str] = None,
        auth_user_id: Optional[str] = None,
        subscription_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Cancelled subscription: free tier, minimal credit grant, clear subscription ref."""
        if not profile_id and not auth_user_id and not subscription_id:
            raise ValueError("profile_id, auth_user_id or subscription_id is required")

        current = _now(now)
        if profile_id or auth_user_id:
            criteria = _identity_criteria(profile_id, auth_user_id)
        else:
            criteria = Profile.stripe_subscription_id == subscription_id
        stmt = (
            update(Profile)
            .where(criteria)
            .values(
                tier=Tier.FREE.value,
                credits_remaining=FREE_TIER_CREDITS,
                stripe_subscription_id=None,
                subscription_status=SubscriptionStatus.CANCELED.value,
                updated_at=current,
            )
        )
        return self._execute(stmt) > 0

    def refill_for_subscription(
        self,
        subscription_id: str,
        plan: Optional[PlanDefinition] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Renewal top-up for the profile holding subscription_id.

        An explicit plan sets tier and credits together. Without one, the
        allotment is derived from the stored tier inside the same UPDATE.
        """
        current = _now(now)
        values = {
            "subscription_status": SubscriptionStatus.ACTIVE.value,
            "updated_at": current,
        }
        if plan is not None:
            values["tier"] = plan.tier.value
            values["credits_remaining"] = plan.credits
        else:
            values["credits_remaining"] = case(
                {p.tier.value: p.credits for p in PLANS.values()},
                value=Profile.tier,
                else_=Profile.credits_remaining,
            )

        stmt = (
            update(Profile)
            .where(
                Profile.stripe_subscription_id == subscription_id,
                Profile.tier != Tier.FREE.value,
            )
            .values(**values)
        )
        return self._execute(stmt) > 0

    # ------------------------------------------------------------------
    # Message-path mutations
    # ------------------------------------------------------------------

    def debit_credits(self, profile_id: str, amount: int, now: Optional[datetime] = None) -> bool:
        """
        Conditionally decrement credits.

        Rejected (returns False) when the balance would cross zero or the
        quota is exhausted; the balance is never clamped.
        """
        if amount <= 0:
            raise ValueError("amount must be positive")

        current = _now(now)
        stmt = (
            update(Profile)
            .where(
                Profile.id == profile_id,
                Profile.credits_remaining >= amount,
                or_(
                    Profile.quota_limit.is_(None),
                    Profile.quota_used < Profile.quota_limit,
                ),
            )
            .values(
                credits_remaining=Profile.credits_remaining - amount,
                credits_used=Profile.credits_used + amount,
                quota_used=Profile.quota_used + 1,
                last_activity_at=current,
                updated_at=current,
            )
        )
        debited = self._execute(stmt) > 0
        if not debited:
            logger.info(
                "Credit debit rejected",
                extra={"profile_id": profile_id, "amount": amount},
            )
        return debited

    def touch_activity(self, profile_id: str, now: Optional[datetime] = None) -> bool:
        stmt = (
            update(Profile)
            .where(Profile.id == profile_id)
            .values(last_activity_at=_now(now))
        )
        return self._execute(stmt) > 0

    # ------------------------------------------------------------------
    # Chat identity binding
    # ------------------------------------------------------------------

    def issue_link_token(self, profile_id: str, now: Optional[datetime] = None) -> Optional[str]:
        """Issue a one-time linking token; None if the profile is already bound."""
        current = _now(now)
        token = secrets.token_hex(32)
        stmt = (
            update(Profile)
            .where(
                Profile.id == profile_id,
                Profile.telegram_chat_id.is_(None),
            )
            .values(
                link_token=token,
                link_token_expires_at=current + LINK_TOKEN_TTL,
                updated_at=current,
            )
        )
        if self._execute(stmt) == 0:
            return None
        return token

    def link_chat_identity(
        self,
        token: str,
        chat_id,
        username: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[str]:
        """
        Bind a chat identity using an unexpired link token.

        Returns the linked profile id, or None when the token is unknown or
        expired, the profile is already bound, or the chat identity already
        belongs to another profile.
        """
        current = _now(now)
        chat_key = str(chat_id)
        stmt = (
            update(Profile)
            .where(
                Profile.link_token == token,
                Profile.link_token_expires_at > current,
                Profile.telegram_chat_id.is_(None),
            )
            .values(
                telegram_chat_id=chat_key,
                telegram_username=username,
                link_token=None,
                link_token_expires_at=None,
                updated_at=current,
            )
        )
        try:
            matched = self._execute(stmt)
        except IntegrityError:
            logger.warning(
                "Chat identity already bound to another profile",
                extra={"chat_id": chat_key},
            )
            return None

        if matched == 0:
            return None

        profile = self.get_by_chat_id(chat_key)
        return profile.id if profile else None

    def unlink_chat_identity(self, profile_id: str, now: Optional[datetime] = None) -> bool:
        stmt = (
            update(Profile)
            .where(
                Profile.id == profile_id,
                Profile.telegram_chat_id.is_not(None),
            )
            .values(
                telegram_chat_id=None,
                telegram_username=None,
                updated_at=_now(now),
            )
        )
        return self._execute(stmt) > 0

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _execute(self, stmt) -> int:
        try:
            result = self.db.execute(stmt.execution_options(synchronize_session=False))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        # expire cached instances so reads after a conditional update see the new values
        self.db.expire_all()
        return result.rowcount

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
