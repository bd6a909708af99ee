"""
Session Service

Business logic behind the session API:
- Configuration validation
- Session creation and configuration updates
- Lifecycle commands (start, stop, immediate tick)
- Read access to sessions, positions and logs

Raises domain exceptions (ValidationError, NotFoundError); the routers never
touch the trading engine directly.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from fxtrader.constants import (
    CLOSE_REASON_MANUAL_STOP,
    DEFAULT_SESSION_CONFIG,
    LOG_INFO,
    SESSION_RUNNING,
    SESSION_STOPPED,
    SIGNAL_NEUTRAL,
    TICK_REASON_MANUAL_START,
    TICK_REASON_MANUAL_TICK,
)
from fxtrader.exceptions import NotFoundError, ValidationError
from fxtrader.models import TraderLog, TraderPosition, TraderSession
from fxtrader.services.job_scheduler import JobScheduler, job_scheduler
from fxtrader.trading_engine.position_manager import list_positions
from fxtrader.trading_engine.session_logger import list_logs, log_event

logger = logging.getLogger(__name__)

CONFIG_FIELDS = tuple(DEFAULT_SESSION_CONFIG.keys())


def default_session_config() -> Dict[str, Any]:
    """Configuration pre-filled for a new session."""
    return dict(DEFAULT_SESSION_CONFIG)


def validate_config(config: Dict[str, Any]) -> None:
    """Reject configurations the engine cannot run. Raises ValidationError."""
    for field in ("name", "instrument", "granularity"):
        if not str(config.get(field) or "").strip():
            raise ValidationError(f"{field.capitalize()} is required.")
    if config["short_window"] < 1:
        raise ValidationError("Short window must be at least 1.")
    if config["long_window"] <= config["short_window"]:
        raise ValidationError("Long window must be greater than short window.")
    if config["trade_units"] <= 0:
        raise ValidationError("Trade units must be greater than zero.")
    if config["take_profit_multiplier"] <= 0 or config["stop_loss_multiplier"] <= 0:
        raise ValidationError("Take profit and stop loss multipliers must be positive numbers.")
    if config["neutral_threshold"] < 0:
        raise ValidationError("Neutral threshold must be zero or positive.")


def _normalize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    missing = [field for field in CONFIG_FIELDS if config.get(field) is None]
    if missing:
        raise ValidationError(f"Missing configuration fields: {', '.join(missing)}")
    normalized = {field: config[field] for field in CONFIG_FIELDS}
    for field in ("name", "instrument", "granularity"):
        normalized[field] = str(normalized[field]).strip()
    validate_config(normalized)
    return normalized


async def get_session(db: AsyncSession, session_id: int) -> Optional[TraderSession]:
    return await db.get(TraderSession, session_id)


async def require_session(db: AsyncSession, session_id: int) -> TraderSession:
    session = await get_session(db, session_id)
    if session is None:
        raise NotFoundError(f"Trader session {session_id} not found")
    return session


async def list_sessions(db: AsyncSession) -> List[TraderSession]:
    """All sessions, newest first"""
    query = select(TraderSession).order_by(desc(TraderSession.created_at), desc(TraderSession.id))
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_session(db: AsyncSession, config: Dict[str, Any]) -> TraderSession:
    """Create a stopped session from a full configuration."""
    normalized = _normalize_config(config)
    now = datetime.utcnow()
    session = TraderSession(
        **normalized,
        status=SESSION_STOPPED,
        last_signal=SIGNAL_NEUTRAL,
        created_at=now,
        updated_at=now,
    )
    db.add(session)
    await db.commit()
    await db.refresh(session)

    await log_event(
        db,
        session.id,
        LOG_INFO,
        f"Created trading session for {session.instrument} ({session.granularity})",
    )
    logger.info(f"Created session {session.id} '{session.name}'")
    return session


async def update_session(db: AsyncSession, session_id: int, config: Dict[str, Any]) -> TraderSession:
    """
    Replace a session's configuration. Last write wins.

    Takes effect on the next tick; a running session keeps running and its
    open position is left alone.
    """
    session = await require_session(db, session_id)
    normalized = _normalize_config(config)
    for field, value in normalized.items():
        setattr(session, field, value)
    session.updated_at = datetime.utcnow()
    await db.commit()

    await log_event(db, session.id, LOG_INFO, f"Updated configuration for {session.instrument}")
    return session


async def start_session(
    db: AsyncSession,
    session_id: int,
    scheduler: Optional[JobScheduler] = None,
) -> TraderSession:
    """
    Move a session to running and schedule one immediate tick.

    Starting a running session does nothing.
    """
    session = await require_session(db, session_id)
    if session.status == SESSION_RUNNING:
        return session

    session.status = SESSION_RUNNING
    session.error_message = None
    session.updated_at = datetime.utcnow()
    await db.commit()

    await log_event(db, session.id, LOG_INFO, "Trading session started")
    (scheduler or job_scheduler).schedule_evaluation(session.id, TICK_REASON_MANUAL_START)
    return session


async def stop_session(
    db: AsyncSession,
    session_id: int,
    close_positions: bool = True,
    scheduler: Optional[JobScheduler] = None,
) -> TraderSession:
    """
    Move a session to stopped from any state.

    With close_positions, a close-all job is scheduled for its open positions.
    """
    session = await require_session(db, session_id)
    session.status = SESSION_STOPPED
    session.error_message = None
    session.updated_at = datetime.utcnow()
    await db.commit()

    await log_event(db, session.id, LOG_INFO, "Trading session stopped")
    if close_positions:
        (scheduler or job_scheduler).schedule_close_positions(session.id, CLOSE_REASON_MANUAL_STOP)
    return session


async def request_immediate_tick(
    db: AsyncSession,
    session_id: int,
    scheduler: Optional[JobScheduler] = None,
) -> TraderSession:
    """Schedule a tick now. A session that is not running ignores it."""
    session = await require_session(db, session_id)
    await log_event(db, session.id, LOG_INFO, "Manual tick requested")
    (scheduler or job_scheduler).schedule_evaluation(session.id, TICK_REASON_MANUAL_TICK)
    return session


async def get_session_positions(db: AsyncSession, session_id: int) -> List[TraderPosition]:
    await require_session(db, session_id)
    return await list_positions(db, session_id)


async def get_session_logs(db: AsyncSession, session_id: int, limit: Optional[int] = None) -> List[TraderLog]:
    await require_session(db, session_id)
    return await list_logs(db, session_id, limit)
