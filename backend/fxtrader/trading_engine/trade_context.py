"""
Trade context dataclass: bundles the common parameters threaded through
reconciliation and order execution functions.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fxtrader.exchange_clients.base import BrokerClient, BrokerConfig
from fxtrader.models import TraderSession


@dataclass
class TradeContext:
    """Common parameters for trading engine operations."""
    db: AsyncSession
    session: TraderSession
    broker_config: BrokerConfig
    broker: Optional[BrokerClient] = None

    @property
    def can_trade(self) -> bool:
        """True when orders go to the broker; False means paper trading on local records."""
        return self.broker is not None and self.broker_config.can_trade
