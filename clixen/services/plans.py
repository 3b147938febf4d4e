"""
Plan table: tier -> credit allotment -> checkout amount.

Checkout sessions created from hosted payment links carry no plan
metadata, so the purchased tier is inferred from the charged amount.
Changing a price here without updating the payment links breaks that
mapping; see DESIGN.md (amount-based tier inference).
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from clixen.models.profile import Tier

logger = logging.getLogger(__name__)

# Credits granted when a subscription is cancelled
FREE_TIER_CREDITS = 10


@dataclass(frozen=True)
class PlanDefinition:
    """A paid plan."""
    tier: Tier
    credits: int
    amount_cents: int


PLANS: Dict[Tier, PlanDefinition] = {
    Tier.STARTER: PlanDefinition(tier=Tier.STARTER, credits=100, amount_cents=900),
    Tier.PRO: PlanDefinition(tier=Tier.PRO, credits=500, amount_cents=2900),
    Tier.ENTERPRISE: PlanDefinition(tier=Tier.ENTERPRISE, credits=2000, amount_cents=9900),
}

_PLANS_BY_AMOUNT: Dict[int, PlanDefinition] = {plan.amount_cents: plan for plan in PLANS.values()}

# Fallback for unrecognised checkout amounts
DEFAULT_CHECKOUT_PLAN = PLANS[Tier.PRO]


def plan_for_tier(value) -> Optional[PlanDefinition]:
    """Return the paid plan for a tier key, or None for free/unknown keys."""
    if value is None:
        return None
    if isinstance(value, Tier):
        return PLANS.get(value)
    normalized = str(value).strip().lower()
    if normalized.startswith("plan_"):
        normalized = normalized[len("plan_"):]
    try:
        return PLANS.get(Tier(normalized))
    except ValueError:
        return None


def plan_for_amount(amount_cents: Optional[int]) -> PlanDefinition:
    """Map a charged amount (minor units) to the purchased plan."""
    try:
        amount = int(amount_cents or 0)
    except (TypeError, ValueError):
        amount = 0

    plan = _PLANS_BY_AMOUNT.get(amount)
    if plan is None:
        logger.warning(
            "Unrecognised checkout amount, using default plan",
            extra={"amount_cents": amount, "default_tier": DEFAULT_CHECKOUT_PLAN.tier.value},
        )
        return DEFAULT_CHECKOUT_PLAN
    return plan
