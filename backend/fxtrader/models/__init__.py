"""
Database Models

All model classes are re-exported here:
    from fxtrader.models import TraderSession, TraderPosition, TraderLog
"""

from fxtrader.database import Base  # noqa: F401 - re-exported for tests/conftest.py
from fxtrader.models.trading import TraderLog, TraderPosition, TraderSession

__all__ = [
    "Base",
    "TraderSession",
    "TraderPosition",
    "TraderLog",
]
