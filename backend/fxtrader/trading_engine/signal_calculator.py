"""
Dual moving-average crossover signal.

Pure functions only: same closes and configuration always give the same signal.
Callers must supply at least long_window closes; nothing here checks it.
"""

import sys
from dataclasses import dataclass
from typing import Sequence

from fxtrader.constants import SIGNAL_LONG, SIGNAL_NEUTRAL, SIGNAL_SHORT


@dataclass(frozen=True)
class SignalResult:
    short_ma: float
    long_ma: float
    latest_price: float
    signal: str


def moving_average(series: Sequence[float], length: int) -> float:
    """
    Simple moving average of the last `length` values.

    A series shorter than `length` degrades to its most recent value.
    """
    if len(series) < length:
        return series[-1]
    window = series[len(series) - length:]
    return sum(window) / len(window)


def _sign_signal(diff: float) -> str:
    if diff > 0:
        return SIGNAL_LONG
    if diff < 0:
        return SIGNAL_SHORT
    return SIGNAL_NEUTRAL


def compute_signal(short_ma: float, long_ma: float, neutral_threshold: float) -> str:
    """
    Classify the gap between the two averages.

    The gap is measured relative to the long average; anything under
    neutral_threshold is neutral. A long average of zero cannot be used as a
    denominator, so only the sign of the gap counts there.
    """
    diff = short_ma - long_ma
    if abs(long_ma) < sys.float_info.epsilon:
        return _sign_signal(diff)

    ratio = abs(diff) / abs(long_ma)
    if ratio < neutral_threshold:
        return SIGNAL_NEUTRAL
    # Identical averages stay neutral even with a zero threshold
    return _sign_signal(diff)


def calculate_signal(
    closes: Sequence[float],
    short_window: int,
    long_window: int,
    neutral_threshold: float,
) -> SignalResult:
    """Averages, latest close and signal for a chronologically ordered close series."""
    short_ma = moving_average(closes, short_window)
    long_ma = moving_average(closes, long_window)
    return SignalResult(
        short_ma=short_ma,
        long_ma=long_ma,
        latest_price=closes[-1],
        signal=compute_signal(short_ma, long_ma, neutral_threshold),
    )
