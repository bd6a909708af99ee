"""
Position reconciliation against the broker's open trades.

Runs once per tick before any new decision. Local positions whose broker trade
no longer exists (take-profit, stop-loss or a manual close at the broker) are
closed locally. Best-effort: a failed broker query leaves the local view as is.
"""

import logging
from typing import List, Set

from fxtrader.constants import CLOSE_REASON_BROKER, LOG_TRADE, LOG_WARN
from fxtrader.exceptions import format_error
from fxtrader.models import TraderPosition
from fxtrader.trading_engine.position_manager import close_position_record, get_open_positions
from fxtrader.trading_engine.session_logger import log_event
from fxtrader.trading_engine.trade_context import TradeContext

logger = logging.getLogger(__name__)


def live_trade_ids(trades: List[dict]) -> Set[str]:
    """Trade ids from an open-trades listing (`id`, falling back to `tradeID`)."""
    ids = set()
    for trade in trades:
        trade_id = trade.get("id") or trade.get("tradeID")
        if trade_id:
            ids.add(str(trade_id))
    return ids


async def reconcile_open_positions(
    ctx: TradeContext,
    open_positions: List[TraderPosition],
    latest_price: float,
) -> List[TraderPosition]:
    """
    Close local records the broker no longer holds.

    Args:
        ctx: Trade context
        open_positions: The session's locally open positions
        latest_price: Latest observed close, recorded as the exit price

    Returns:
        The session's open positions after reconciliation (the input list
        unchanged when reconciliation was skipped or failed)
    """
    if not open_positions or not ctx.can_trade:
        return open_positions

    session_id = ctx.session.id
    try:
        trades = await ctx.broker.get_open_trades()
    except Exception as e:
        await log_event(ctx.db, session_id, LOG_WARN, f"Failed to sync open trades: {format_error(e)}")
        return open_positions

    live_ids = live_trade_ids(trades)
    closed_any = False
    for position in open_positions:
        # Paper positions have no broker counterpart
        if not position.broker_trade_id or position.broker_trade_id in live_ids:
            continue

        await close_position_record(
            ctx.db,
            position,
            exit_price=latest_price,
            close_reason=CLOSE_REASON_BROKER,
        )
        await log_event(
            ctx.db,
            session_id,
            LOG_TRADE,
            "Detected broker-closed position",
            {"positionId": position.id, "tradeId": position.broker_trade_id},
        )
        closed_any = True

    if not closed_any:
        return open_positions
    return await get_open_positions(ctx.db, session_id)
