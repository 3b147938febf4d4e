"""
Operational alerts for failures that are acknowledged upstream but need
an operator to look at them (billing mutations lost after the event was
recorded as seen, repeated executor failures).
"""

import logging
import time
from collections import defaultdict
from typing import Any, Dict

logger = logging.getLogger(__name__)

BILLING_MUTATION_FAILED = "BILLING_MUTATION_FAILED"
EXECUTOR_FAILURE_BURST = "EXECUTOR_FAILURE_BURST"

# Sliding one-minute window of executor failures per workflow
_executor_failures: defaultdict[str, list] = defaultdict(list)
EXECUTOR_FAILURE_THRESHOLD_PER_MIN = 5


def emit_operational_alert(code: str, payload: Dict[str, Any]) -> None:
    """Emit an operator-facing alert."""
    logger.error(
        "Operational alert",
        extra={"alert_code": code, **payload},
    )


def record_executor_failure(workflow: str) -> None:
    """Record an executor failure; alert once the per-minute threshold is reached."""
    now = time.time()
    cutoff = now - 60
    recent = [t for t in _executor_failures[workflow] if t > cutoff]
    recent.append(now)
    _executor_failures[workflow] = recent

    if len(recent) >= EXECUTOR_FAILURE_THRESHOLD_PER_MIN:
        emit_operational_alert(
            EXECUTOR_FAILURE_BURST,
            {"workflow": workflow, "count_per_min": len(recent)},
        )


def reset_executor_failures() -> None:
    _executor_failures.clear()
