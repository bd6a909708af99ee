"""
Candle Data Utilities

Helpers for OANDA candlestick payloads: how many to request and how to turn
them into a closing-price series.
"""

import logging
from typing import Any, Dict, List

from fxtrader.constants import MAX_CANDLE_COUNT

logger = logging.getLogger(__name__)


def candle_lookback(long_window: int) -> int:
    """Candles to request for a long window: max(2x, window + 5), within 1..5000."""
    count = max(long_window * 2, long_window + 5)
    return max(1, min(MAX_CANDLE_COUNT, count))


def extract_closes(candles: List[Dict[str, Any]]) -> List[float]:
    """
    Closing mid prices of completed candles, oldest first.

    The in-progress candle (complete == False) is dropped, as are candles
    without a usable mid close.
    """
    closes = []
    for candle in candles:
        if not candle.get("complete"):
            continue
        mid = candle.get("mid") or {}
        try:
            closes.append(float(mid["c"]))
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Skipping candle without a mid close: {candle.get('time')}")
    return closes
