"""
Fill parsing for OANDA order responses.

Both opening and closing a position go through the same response shape:
the fill sits in orderFillTransaction (or the first of orderFillTransactions)
and the trade id can live in one of four places depending on what the fill did.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class FillData:
    """Result of parsing an order fill."""
    price: float  # Broker fill price, or the fallback when the broker sent none
    realized_pnl: Optional[float]  # Only present on fills that reduce/close a trade
    trade_id: Optional[str]


def select_fill(response: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Pick the fill transaction from an order response."""
    if not response:
        return None
    fill = response.get("orderFillTransaction")
    if fill:
        return fill
    fills = response.get("orderFillTransactions") or []
    return fills[0] if fills else None


def extract_trade_id(response: Optional[Dict[str, Any]]) -> Optional[str]:
    """
    Trade identifier affected by an order.

    Checked in order: tradeOpened, tradesOpened[0], tradeReduced, tradesClosed[0].
    Returns None when the response carries no fill or no trade reference.
    """
    fill = select_fill(response)
    if not fill:
        return None

    trade_opened = fill.get("tradeOpened") or {}
    if trade_opened.get("tradeID"):
        return str(trade_opened["tradeID"])

    trades_opened = fill.get("tradesOpened") or []
    if trades_opened and trades_opened[0].get("tradeID"):
        return str(trades_opened[0]["tradeID"])

    trade_reduced = fill.get("tradeReduced") or {}
    if trade_reduced.get("tradeID"):
        return str(trade_reduced["tradeID"])

    trades_closed = fill.get("tradesClosed") or []
    if trades_closed and trades_closed[0].get("tradeID"):
        return str(trades_closed[0]["tradeID"])

    return None


def _parse_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unparseable fill value: {value!r}")
        return None


def fill_price(fill: Optional[Dict[str, Any]]) -> Optional[float]:
    """Fill price from `price`, else `fullPrice.price`."""
    if not fill:
        return None
    price = _parse_float(fill.get("price"))
    if price is not None:
        return price
    full_price = fill.get("fullPrice") or {}
    return _parse_float(full_price.get("price"))


def parse_fill(response: Optional[Dict[str, Any]], fallback_price: float) -> FillData:
    """
    Price, realized P&L and trade id of an order response.

    Args:
        response: Raw order response from the broker
        fallback_price: Market price used when the fill carries no price

    Returns:
        FillData; realized_pnl is None unless the fill reported `pl`
    """
    fill = select_fill(response)
    price = fill_price(fill)
    if price is None:
        logger.warning(f"Broker fill has no price, using market price {fallback_price}")
        price = fallback_price

    realized_pnl = _parse_float(fill.get("pl")) if fill else None

    return FillData(
        price=price,
        realized_pnl=realized_pnl,
        trade_id=extract_trade_id(response),
    )
