"""
Supported automation workflows.

The classifier may only route to keys listed here; anything else is
treated as "not available". Tier requirements follow the plan matrix:
trial users are gated like the free tier.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from clixen.models.profile import TIER_RANK, Tier


@dataclass(frozen=True)
class WorkflowDefinition:
    """A workflow the executor can run."""
    key: str
    description: str
    example: str
    min_tier: Tier = Tier.FREE
    credit_cost: int = 1
    parameters: Tuple[str, ...] = ()

    def allows(self, tier: Tier) -> bool:
        return TIER_RANK[tier] >= TIER_RANK[self.min_tier]


_WORKFLOWS = (
    WorkflowDefinition(
        key="weather",
        description="Current weather and short forecast for a city",
        example="What's the weather in Paris?",
        parameters=("city",),
    ),
    WorkflowDefinition(
        key="translate",
        description="Translate text into another language",
        example="Translate 'hello' to Spanish",
        parameters=("text", "target_language"),
    ),
    WorkflowDefinition(
        key="email_scanner",
        description="Scan the connected inbox for invoices and spending",
        example="Check my emails for invoices",
        min_tier=Tier.STARTER,
        credit_cost=3,
        parameters=("period",),
    ),
    WorkflowDefinition(
        key="pdf_summary",
        description="Summarize an uploaded PDF or document",
        example="Summarize this document",
        min_tier=Tier.STARTER,
        credit_cost=2,
        parameters=("file_id", "file_name"),
    ),
    WorkflowDefinition(
        key="reminder",
        description="Schedule a reminder message",
        example="Remind me to call John tomorrow at 9",
        min_tier=Tier.STARTER,
        parameters=("text", "when"),
    ),
)

WORKFLOWS: Mapping[str, WorkflowDefinition] = MappingProxyType({w.key: w for w in _WORKFLOWS})


def get_workflow(key: Optional[str]) -> Optional[WorkflowDefinition]:
    if not key:
        return None
    return WORKFLOWS.get(str(key).strip().lower())


def workflows_for_tier(tier: Tier) -> Tuple[WorkflowDefinition, ...]:
    return tuple(w for w in WORKFLOWS.values() if w.allows(tier))
