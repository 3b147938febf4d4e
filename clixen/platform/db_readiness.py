"""Database schema readiness checks for the tables the webhooks write to."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

REQUIRED_TABLES = (
    "profiles",
    "usage_records",
    "processed_billing_events",
)


@dataclass(frozen=True)
class DBReadinessResult:
    """Result payload for DB readiness checks."""

    ready: bool
    database_ok: bool
    missing_tables: list[str]
    checked_tables: list[str]


def check_database(session: Session, required_tables: Iterable[str] = REQUIRED_TABLES) -> DBReadinessResult:
    """Probe connectivity (SELECT 1) and check required tables exist."""
    checked = list(required_tables)
    try:
        session.execute(text("SELECT 1"))
        inspector = inspect(session.get_bind())
        missing = [name for name in checked if not inspector.has_table(name)]
    except SQLAlchemyError:
        logger.exception("Database readiness probe failed")
        return DBReadinessResult(
            ready=False,
            database_ok=False,
            missing_tables=checked,
            checked_tables=checked,
        )

    return DBReadinessResult(
        ready=len(missing) == 0,
        database_ok=True,
        missing_tables=missing,
        checked_tables=checked,
    )
