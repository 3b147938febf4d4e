"""
Idempotency log for payment provider events.

mark_seen() inserts the provider event id under a primary-key constraint
and commits before any profile mutation runs. A second delivery of the same
id hits the constraint and is reported as a duplicate.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clixen.models.processed_billing_event import ProcessedBillingEvent

logger = logging.getLogger(__name__)


class BillingEventLog:
    """Append-only set of processed provider event ids."""

    def __init__(self, db: Session):
        self.db = db

    def mark_seen(self, event_id: str, event_type: str, now: Optional[datetime] = None) -> bool:
        """
        Record an event id as accepted.

        Returns:
            True if this is the first delivery, False if already recorded.

        Raises:
            SQLAlchemyError: storage failures other than the duplicate key
        """
        self.db.add(ProcessedBillingEvent(
            event_id=event_id,
            event_type=event_type,
            received_at=now or datetime.now(timezone.utc),
        ))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return True

    def record_outcome(self, event_id: str, outcome: str, now: Optional[datetime] = None) -> None:
        """Store the handling outcome; failures are logged, never raised."""
        try:
            self.db.execute(
                update(ProcessedBillingEvent)
                .where(ProcessedBillingEvent.event_id == event_id)
                .values(outcome=outcome, processed_at=now or datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Failed to record billing event outcome",
                extra={"event_id": event_id, "outcome": outcome, "error": str(e)},
            )
