"""
Entitlement evaluation for chat access.

Usage:
    from clixen.entitlements import evaluate

    result = evaluate(profile)
    if not result.has_access:
        ...
"""

from clixen.entitlements.models import AccessState, EntitlementResult, GRANTING_STATES
from clixen.entitlements.evaluator import (
    TRIAL_CREDITS,
    TRIAL_DURATION,
    TRIAL_ELIGIBILITY_WINDOW,
    as_utc,
    evaluate,
    is_eligible_for_trial,
)

__all__ = [
    "AccessState",
    "EntitlementResult",
    "GRANTING_STATES",
    "TRIAL_CREDITS",
    "TRIAL_DURATION",
    "TRIAL_ELIGIBILITY_WINDOW",
    "as_utc",
    "evaluate",
    "is_eligible_for_trial",
]
