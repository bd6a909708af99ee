"""
Session log utilities for trading engine

Writes the append-only session audit trail (trader_logs) and mirrors every
entry to the process log so both tell the same story.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from fxtrader.constants import LOG_ERROR, LOG_LEVELS, LOG_WARN
from fxtrader.models import TraderLog

logger = logging.getLogger(__name__)

_PROCESS_LOG_LEVELS = {
    LOG_WARN: logging.WARNING,
    LOG_ERROR: logging.ERROR,
}

MAX_LOG_LIMIT = 500
DEFAULT_LOG_LIMIT = 100


def _json_safe(details: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Drop None values so the stored JSON matches what was actually known."""
    if details is None:
        return None
    return {key: value for key, value in details.items() if value is not None}


async def log_event(
    db: AsyncSession,
    session_id: int,
    level: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> TraderLog:
    """
    Append one entry to a session's log and commit it.

    Each entry is committed on its own: a later failure in the same tick must
    not roll back what was already recorded.
    """
    if level not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {level}")

    entry = TraderLog(
        session_id=session_id,
        level=level,
        message=message,
        details=_json_safe(details),
        created_at=datetime.utcnow(),
    )
    db.add(entry)
    await db.commit()

    logger.log(
        _PROCESS_LOG_LEVELS.get(level, logging.INFO),
        f"[session {session_id}] {level.upper()}: {message}",
    )
    return entry


async def list_logs(db: AsyncSession, session_id: int, limit: Optional[int] = None) -> list:
    """Newest-first log entries for a session, limit clamped to 1..500 (default 100)."""
    limit = min(MAX_LOG_LIMIT, max(1, limit if limit is not None else DEFAULT_LOG_LIMIT))
    query = (
        select(TraderLog)
        .where(TraderLog.session_id == session_id)
        .order_by(desc(TraderLog.created_at), desc(TraderLog.id))
        .limit(limit)
    )
    result = await db.execute(query)
    return list(result.scalars().all())
