"""
Seen-events set for payment provider webhooks.

The provider delivers at least once; a row here means the event id was
accepted for processing and its effect must not be applied again.
"""

from sqlalchemy import Column, DateTime, String

from clixen.db_base import Base
from clixen.models.base import utcnow


class ProcessedBillingEvent(Base):
    """Provider event id that has already been handled."""

    __tablename__ = "processed_billing_events"

    event_id = Column(
        String(255),
        primary_key=True,
        comment="Provider-assigned event id (idempotency key)",
    )
    event_type = Column(String(100), nullable=False)
    outcome = Column(
        String(50),
        nullable=True,
        comment="applied | profile_not_found | ignored | skipped | error",
    )
    received_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    processed_at = Column(DateTime(timezone=True), nullable=True)
