"""
Entitlement evaluation.

Pure functions: derive a profile's access state from stored tier, trial,
and credit facts. No I/O, no persistence; callers decide what to do with
the result.

Resolution order:
1. Paid tier -> active_paid (trial fields and credit balance are ignored)
2. Free tier, trial never started -> no_access (+ trial eligibility)
3. Free tier, trial started -> active_trial until trial_expires_at, then
   trial_expired. Expiry is exact; there is no leeway window.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from clixen.entitlements.models import AccessState, EntitlementResult
from clixen.models.profile import Profile, Tier

TRIAL_DURATION = timedelta(days=7)
TRIAL_CREDITS = 50
TRIAL_ELIGIBILITY_WINDOW = timedelta(hours=24)

_MS_PER_DAY = 86_400_000


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_eligible_for_trial(profile: Profile, now: Optional[datetime] = None) -> bool:
    """A free profile that never started a trial and signed up within 24h."""
    if Tier.parse(profile.tier) is not Tier.FREE:
        return False
    if profile.trial_started_at is not None:
        return False

    created_at = as_utc(profile.created_at)
    if created_at is None:
        return False
    compare_at = as_utc(now) or datetime.now(timezone.utc)
    return compare_at - created_at <= TRIAL_ELIGIBILITY_WINDOW


def evaluate(profile: Profile, now: Optional[datetime] = None) -> EntitlementResult:
    """Compute the access state for a profile."""
    evaluated_at = as_utc(now) or datetime.now(timezone.utc)
    tier = Tier.parse(profile.tier)
    credits = max(int(profile.credits_remaining or 0), 0)

    if tier is not Tier.FREE:
        return EntitlementResult(
            state=AccessState.ACTIVE_PAID,
            tier=tier.value,
            evaluated_at=evaluated_at,
            credits_remaining=credits,
        )

    if profile.trial_started_at is None:
        return EntitlementResult(
            state=AccessState.NO_ACCESS,
            tier=tier.value,
            evaluated_at=evaluated_at,
            credits_remaining=credits,
            eligible_for_trial=is_eligible_for_trial(profile, evaluated_at),
        )

    expires_at = as_utc(profile.trial_expires_at)
    if expires_at is None:
        # started without an expiry is treated as already expired
        return EntitlementResult(
            state=AccessState.TRIAL_EXPIRED,
            tier=tier.value,
            evaluated_at=evaluated_at,
            credits_remaining=credits,
        )

    ms_remaining = (expires_at - evaluated_at) / timedelta(milliseconds=1)
    if ms_remaining <= 0:
        return EntitlementResult(
            state=AccessState.TRIAL_EXPIRED,
            tier=tier.value,
            evaluated_at=evaluated_at,
            credits_remaining=credits,
            trial_expires_at=expires_at,
        )

    return EntitlementResult(
        state=AccessState.ACTIVE_TRIAL,
        tier=tier.value,
        evaluated_at=evaluated_at,
        days_remaining=math.ceil(ms_remaining / _MS_PER_DAY),
        credits_remaining=credits,
        trial_expires_at=expires_at,
    )
