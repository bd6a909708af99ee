"""
Position management utilities for trading engine

Handles position store operations:
- Getting open positions
- Creating new positions
- Closing position records
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from fxtrader.constants import POSITION_CLOSED, POSITION_OPEN
from fxtrader.models import TraderPosition, TraderSession

logger = logging.getLogger(__name__)


async def get_open_positions(db: AsyncSession, session_id: int) -> List[TraderPosition]:
    """Open positions for a session, oldest first"""
    query = (
        select(TraderPosition)
        .where(
            TraderPosition.session_id == session_id,
            TraderPosition.status == POSITION_OPEN,
        )
        .order_by(TraderPosition.opened_at, TraderPosition.id)
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_positions(db: AsyncSession, session_id: int) -> List[TraderPosition]:
    """All positions for a session, newest first"""
    query = (
        select(TraderPosition)
        .where(TraderPosition.session_id == session_id)
        .order_by(desc(TraderPosition.opened_at), desc(TraderPosition.id))
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_position(
    db: AsyncSession,
    session: TraderSession,
    direction: str,
    units: float,
    entry_price: float,
    take_profit_price: Optional[float] = None,
    stop_loss_price: Optional[float] = None,
    broker_trade_id: Optional[str] = None,
) -> TraderPosition:
    """
    Record a newly opened position and commit it.

    Args:
        db: Database session
        session: Owning trader session
        direction: "long" or "short"
        units: Signed unit size (negative for shorts)
        entry_price: Fill price (or market price in paper mode)
        take_profit_price: Target attached to the order, if any
        stop_loss_price: Stop attached to the order, if any
        broker_trade_id: Broker trade id; None records a paper position
    """
    now = datetime.utcnow()
    position = TraderPosition(
        session_id=session.id,
        direction=direction,
        units=units,
        entry_price=entry_price,
        take_profit_price=take_profit_price,
        stop_loss_price=stop_loss_price,
        status=POSITION_OPEN,
        broker_trade_id=broker_trade_id,
        opened_at=now,
    )
    db.add(position)
    session.updated_at = now
    await db.commit()
    await db.refresh(position)
    return position


async def close_position_record(
    db: AsyncSession,
    position: TraderPosition,
    exit_price: Optional[float],
    close_reason: str,
    realized_pnl: Optional[float] = None,
) -> bool:
    """
    Mark a position closed and commit.

    Returns:
        False if the position was already closed (closing is terminal), True otherwise
    """
    if position.status == POSITION_CLOSED:
        logger.warning(f"Position {position.id} already closed ({position.close_reason}), ignoring close")
        return False

    now = datetime.utcnow()
    position.status = POSITION_CLOSED
    position.closed_at = now
    position.close_reason = close_reason
    if exit_price is not None:
        position.exit_price = exit_price
    if realized_pnl is not None:
        position.realized_pnl = realized_pnl

    session = await db.get(TraderSession, position.session_id)
    if session is not None:
        session.updated_at = now

    await db.commit()
    return True
