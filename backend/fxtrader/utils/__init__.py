"""
Trader Utilities Package

Common utility functions and helpers.
"""

from .candle_utils import (
    candle_lookback,
    extract_closes,
)

__all__ = [
    "candle_lookback",
    "extract_closes",
]
