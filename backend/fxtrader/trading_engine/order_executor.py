"""
Order execution for trading engine

Opens and closes session positions. With broker trading enabled the broker's
fill is authoritative for prices and P&L; in paper mode the tick's market price
is used and no network call is made.

Broker failures propagate to the caller. A failed open records nothing.
"""

import logging
from typing import Optional, Tuple

from fxtrader.constants import LOG_TRADE, SIGNAL_LONG, SIGNAL_SHORT
from fxtrader.models import TraderPosition
from fxtrader.trading_engine.fill_parser import parse_fill
from fxtrader.trading_engine.position_manager import close_position_record, create_position
from fxtrader.trading_engine.session_logger import log_event
from fxtrader.trading_engine.trade_context import TradeContext

logger = logging.getLogger(__name__)


def calculate_targets(
    direction: str,
    market_price: float,
    take_profit_multiplier: float,
    stop_loss_multiplier: float,
) -> Tuple[float, float]:
    """
    Take-profit and stop-loss prices for a new position.

    Returns:
        (take_profit_price, stop_loss_price)
    """
    if direction == SIGNAL_LONG:
        return (
            market_price * (1 + take_profit_multiplier),
            market_price * (1 - stop_loss_multiplier),
        )
    return (
        market_price * (1 - take_profit_multiplier),
        market_price * (1 + stop_loss_multiplier),
    )


def signed_units(direction: str, trade_units: float) -> float:
    """Unit size signed by direction: positive buys, negative sells."""
    return abs(trade_units) * (1 if direction == SIGNAL_LONG else -1)


async def open_position(ctx: TradeContext, signal: str, market_price: float) -> TraderPosition:
    """
    Open a position in the signal's direction.

    Args:
        ctx: Trade context (db, session, broker)
        signal: "long" or "short"
        market_price: Latest observed close

    Returns:
        The recorded open position
    """
    if signal not in (SIGNAL_LONG, SIGNAL_SHORT):
        raise ValueError(f"Cannot open a position on a {signal} signal")

    session = ctx.session
    direction = signal
    units = signed_units(direction, session.trade_units)
    take_profit_price, stop_loss_price = calculate_targets(
        direction,
        market_price,
        session.take_profit_multiplier,
        session.stop_loss_multiplier,
    )

    trade_id: Optional[str] = None
    entry_price = market_price
    if ctx.can_trade:
        response = await ctx.broker.place_market_order(
            instrument=session.instrument,
            units=units,
            take_profit_price=take_profit_price,
            stop_loss_price=stop_loss_price,
        )
        fill = parse_fill(response, fallback_price=market_price)
        trade_id = fill.trade_id
        entry_price = fill.price
        if not trade_id:
            logger.warning(f"Session {session.id}: order filled without a trade id, recording as untracked")

    position = await create_position(
        ctx.db,
        session,
        direction=direction,
        units=units,
        entry_price=entry_price,
        take_profit_price=take_profit_price,
        stop_loss_price=stop_loss_price,
        broker_trade_id=trade_id,
    )
    await log_event(
        ctx.db,
        session.id,
        LOG_TRADE,
        f"Opened {direction.upper()} position ({units:g} units)",
        {
            "positionId": position.id,
            "tradeId": trade_id,
            "entryPrice": entry_price,
            "takeProfitPrice": take_profit_price,
            "stopLossPrice": stop_loss_price,
            "paper": not ctx.can_trade,
        },
    )
    return position


async def close_position(
    ctx: TradeContext,
    position: TraderPosition,
    market_price: float,
    reason: str,
) -> TraderPosition:
    """
    Close a position in full.

    Broker positions are closed at the broker when trading is enabled and take the
    broker's fill price and P&L. Paper positions (or paper mode) close at
    market_price with no computed P&L.
    """
    exit_price = market_price
    realized_pnl: Optional[float] = None
    if position.broker_trade_id and ctx.can_trade:
        response = await ctx.broker.close_trade(position.broker_trade_id)
        fill = parse_fill(response, fallback_price=market_price)
        exit_price = fill.price
        realized_pnl = fill.realized_pnl

    await close_position_record(
        ctx.db,
        position,
        exit_price=exit_price,
        close_reason=reason,
        realized_pnl=realized_pnl,
    )
    await log_event(
        ctx.db,
        ctx.session.id,
        LOG_TRADE,
        f"Closed position {position.id} ({reason})",
        {
            "positionId": position.id,
            "tradeId": position.broker_trade_id,
            "exitPrice": exit_price,
            "realizedPnl": realized_pnl,
        },
    )
    return position
