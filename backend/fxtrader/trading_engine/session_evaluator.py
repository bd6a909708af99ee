"""
Session evaluation: one tick of the crossover strategy for one session.

A tick runs under the session's lock, in order:
1. Load the session (missing or not running: nothing happens)
2. Fetch recent candles and compute both averages and the signal
3. Record analytics and an "analysis" log entry
4. Reconcile local positions with the broker
5. Close the active position when the signal no longer supports it
6. Open a new position when flat and the signal changed to long/short

Any exception after step 1 is recorded as an "error" log entry and moves the
session to status "error"; it never escapes the tick.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from fxtrader.constants import (
    CLOSE_REASON_FLIP,
    CLOSE_REASON_MANUAL,
    CLOSE_REASON_NEUTRAL,
    LOG_ANALYSIS,
    LOG_ERROR,
    LOG_INFO,
    LOG_WARN,
    SESSION_ERROR,
    SESSION_RUNNING,
    SIGNAL_NEUTRAL,
    TICK_REASON_SCHEDULED,
)
from fxtrader.exceptions import format_error
from fxtrader.exchange_clients.base import BrokerClient, BrokerConfig
from fxtrader.models import TraderPosition, TraderSession
from fxtrader.services.session_locks import get_session_lock
from fxtrader.trading_engine.order_executor import close_position, open_position
from fxtrader.trading_engine.position_manager import get_open_positions
from fxtrader.trading_engine.position_reconciler import reconcile_open_positions
from fxtrader.trading_engine.session_logger import log_event
from fxtrader.trading_engine.signal_calculator import SignalResult, calculate_signal
from fxtrader.trading_engine.trade_context import TradeContext
from fxtrader.utils.candle_utils import candle_lookback, extract_closes

logger = logging.getLogger(__name__)


async def _load_session(db: AsyncSession, session_id: int) -> Optional[TraderSession]:
    # Always read the stored row: another request may have stopped the session
    return await db.get(TraderSession, session_id, populate_existing=True)


async def evaluate_session(
    db: AsyncSession,
    session_id: int,
    broker: BrokerClient,
    broker_config: BrokerConfig,
    reason: Optional[str] = None,
) -> Optional[SignalResult]:
    """
    Run one tick for a session.

    Args:
        db: Database session
        session_id: Session to evaluate
        broker: Broker client used for candles and, when allowed, orders
        broker_config: Decides between live trading and paper mode
        reason: Why the tick runs ("scheduled", "manual-start", "manual-tick")

    Returns:
        The computed signal, or None when the tick ended before computing one
    """
    async with get_session_lock(session_id):
        session = await _load_session(db, session_id)
        if session is None:
            logger.debug(f"Session {session_id} not found, skipping tick")
            return None
        if session.status != SESSION_RUNNING:
            return None

        try:
            return await _run_tick(db, session, broker, broker_config, reason or TICK_REASON_SCHEDULED)
        except Exception as e:
            await _mark_failed(db, session_id, e)
            return None


async def _run_tick(
    db: AsyncSession,
    session: TraderSession,
    broker: BrokerClient,
    broker_config: BrokerConfig,
    reason: str,
) -> Optional[SignalResult]:
    open_positions = await get_open_positions(db, session.id)

    candles = await broker.get_candles(
        session.instrument,
        session.granularity,
        candle_lookback(session.long_window),
        price="M",
    )
    closes = extract_closes(candles)
    if len(closes) < session.long_window:
        await log_event(
            db,
            session.id,
            LOG_WARN,
            f"Not enough historical candles to evaluate strategy (have {len(closes)}, need {session.long_window})",
        )
        return None

    result = calculate_signal(closes, session.short_window, session.long_window, session.neutral_threshold)
    previous_signal = session.last_signal

    now = datetime.utcnow()
    session.last_short_ma = result.short_ma
    session.last_long_ma = result.long_ma
    session.last_price = result.latest_price
    session.last_signal = result.signal
    session.last_evaluation_time = now
    session.updated_at = now
    await db.commit()

    await log_event(
        db,
        session.id,
        LOG_ANALYSIS,
        "Tick processed",
        {
            "shortMA": result.short_ma,
            "longMA": result.long_ma,
            "latestPrice": result.latest_price,
            "signal": result.signal,
            "previousSignal": previous_signal,
            "reason": reason,
        },
    )

    ctx = TradeContext(db=db, session=session, broker_config=broker_config, broker=broker)
    open_positions = await reconcile_open_positions(ctx, open_positions, result.latest_price)

    active = open_positions[0] if open_positions else None
    if active is not None and (result.signal == SIGNAL_NEUTRAL or result.signal != active.direction):
        await log_event(
            db,
            session.id,
            LOG_INFO,
            "Signal requires closing current position",
            {"signal": result.signal, "activeDirection": active.direction},
        )
        close_reason = CLOSE_REASON_NEUTRAL if result.signal == SIGNAL_NEUTRAL else CLOSE_REASON_FLIP
        await close_position(ctx, active, result.latest_price, close_reason)
        open_positions = await get_open_positions(db, session.id)

    if not open_positions and result.signal != SIGNAL_NEUTRAL and result.signal != previous_signal:
        await log_event(
            db,
            session.id,
            LOG_INFO,
            "Attempting to open new position",
            {"signal": result.signal, "price": result.latest_price},
        )
        await open_position(ctx, result.signal, result.latest_price)

    return result


async def _mark_failed(db: AsyncSession, session_id: int, error: Exception):
    message = format_error(error)
    logger.error(f"Session {session_id} evaluation failed: {message}", exc_info=True)

    # Anything already committed in this tick stays; only the failed write is discarded
    await db.rollback()
    await log_event(db, session_id, LOG_ERROR, f"Evaluation failed: {message}")

    session = await _load_session(db, session_id)
    if session is None:
        return
    session.status = SESSION_ERROR
    session.error_message = message
    session.updated_at = datetime.utcnow()
    await db.commit()


async def close_session_positions(
    db: AsyncSession,
    session_id: int,
    broker: BrokerClient,
    broker_config: BrokerConfig,
    reason: Optional[str] = None,
) -> int:
    """
    Close every open position of a session.

    Positions close at the session's last observed price, falling back to each
    position's entry price. A position that fails to close is logged and the
    rest are still attempted; the session's status is left alone.

    Returns:
        Number of positions closed
    """
    close_reason = reason or CLOSE_REASON_MANUAL
    async with get_session_lock(session_id):
        session = await _load_session(db, session_id)
        if session is None:
            return 0

        position_ids = [position.id for position in await get_open_positions(db, session_id)]
        closed = 0
        for position_id in position_ids:
            position = await db.get(TraderPosition, position_id)
            market_price = session.last_price if session.last_price is not None else position.entry_price
            ctx = TradeContext(db=db, session=session, broker_config=broker_config, broker=broker)
            try:
                await close_position(ctx, position, market_price, close_reason)
                closed += 1
            except Exception as e:
                message = format_error(e)
                logger.error(f"Session {session_id}: failed to close position {position_id}: {message}")
                await db.rollback()
                await log_event(db, session_id, LOG_ERROR, f"Failed to close position {position_id}: {message}")
                session = await _load_session(db, session_id)

        return closed


async def list_running_session_ids(db: AsyncSession) -> List[int]:
    """Ids of sessions currently in status "running", newest first."""
    query = (
        select(TraderSession.id)
        .where(TraderSession.status == SESSION_RUNNING)
        .order_by(desc(TraderSession.created_at), desc(TraderSession.id))
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def tick_active_sessions(
    db: AsyncSession,
    broker: BrokerClient,
    broker_config: BrokerConfig,
    reason: Optional[str] = None,
) -> int:
    """
    Evaluate every running session, one after another.

    Returns:
        Number of sessions evaluated
    """
    session_ids = await list_running_session_ids(db)
    for session_id in session_ids:
        await evaluate_session(db, session_id, broker, broker_config, reason=reason)
    return len(session_ids)
