from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


class AccessState(str, enum.Enum):
    """Derived access decision for a profile at a point in time."""

    ACTIVE_PAID = "active_paid"
    ACTIVE_TRIAL = "active_trial"
    TRIAL_EXPIRED = "trial_expired"
    NO_ACCESS = "no_access"


GRANTING_STATES = frozenset({AccessState.ACTIVE_PAID, AccessState.ACTIVE_TRIAL})


@dataclass(frozen=True)
class EntitlementResult:
    """Typed entitlement snapshot for a profile.

    days_remaining and credits_remaining are display values only; credit
    exhaustion is a usage decision, not an entitlement decision.
    """

    state: AccessState
    tier: str
    evaluated_at: datetime
    days_remaining: int = 0
    credits_remaining: int = 0
    eligible_for_trial: bool = False
    trial_expires_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.evaluated_at.tzinfo is None:
            raise ValueError("evaluated_at must be timezone-aware")
        if self.days_remaining < 0:
            raise ValueError("days_remaining must be >= 0")
        if self.eligible_for_trial and self.state is not AccessState.NO_ACCESS:
            raise ValueError("eligible_for_trial only applies to no_access")

    @property
    def has_access(self) -> bool:
        return self.state in GRANTING_STATES

    @property
    def is_trial(self) -> bool:
        return self.state is AccessState.ACTIVE_TRIAL
