"""
Usage recording.

Appends one record per handled message for an identified profile. A
failed write is logged and swallowed: the reply path never depends on it.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clixen.models.usage_record import UsageRecord

logger = logging.getLogger(__name__)


class UsageRecorder:
    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        profile_id: Optional[str],
        action: str,
        external_message_id=None,
        *,
        chat_id=None,
        succeeded: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Append a usage record. Returns False when nothing was stored."""
        if not profile_id:
            return False

        record = UsageRecord(
            profile_id=profile_id,
            action=action[:100],
            external_message_id=str(external_message_id) if external_message_id is not None else None,
            chat_id=str(chat_id) if chat_id is not None else None,
            succeeded=succeeded,
        )
        if now is not None:
            record.created_at = now

        try:
            self.db.add(record)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Failed to record usage",
                extra={"profile_id": profile_id, "action": action, "error": str(e)},
            )
            return False
        return True
