"""
Usage record model.

Append-only: one row per routed chat message. Rows are never updated
or deleted; they feed billing reconciliation and analytics.
"""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String

from clixen.db_base import Base
from clixen.models.base import utcnow


class UsageRecord(Base):
    """Immutable audit/usage entry for a routed message."""

    __tablename__ = "usage_records"
    __table_args__ = (
        Index("ix_usage_records_profile_created", "profile_id", "created_at"),
    )

    id = Column(
        String(255),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    profile_id = Column(
        String(255),
        ForeignKey("profiles.id"),
        nullable=False,
    )
    action = Column(
        String(100),
        nullable=False,
        comment="Action/intent label, e.g. workflow:weather, direct_response",
    )
    external_message_id = Column(String(64), nullable=True)
    chat_id = Column(String(64), nullable=True)
    succeeded = Column(Boolean, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<UsageRecord(profile_id={self.profile_id}, action={self.action})>"
