"""
BrokerClient Abstract Base Class

This module defines the interface the trading engine needs from a broker, plus
the explicit broker configuration that decides whether orders may be sent at all.

The engine never checks environment variables itself: a BrokerConfig is built
once from settings and injected wherever broker access is needed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

DEFAULT_OANDA_API_URL = "https://api-fxpractice.oanda.com/v3"


@dataclass(frozen=True)
class BrokerConfig:
    """
    Broker credentials and operating mode.

    Capabilities:
    - has_market_data: an API key is present, so candles can be fetched
    - can_trade: API key and account id are present and paper mode is not forced.
      When False the engine keeps the whole position lifecycle on local records
      ("paper trading") and never calls the order, close or open-trades endpoints.
    """
    api_key: str = ""
    account_id: str = ""
    base_url: str = DEFAULT_OANDA_API_URL
    timeout: float = 10.0
    paper_trading: bool = False

    @property
    def has_market_data(self) -> bool:
        return bool(self.api_key)

    @property
    def can_trade(self) -> bool:
        return bool(self.api_key) and bool(self.account_id) and not self.paper_trading

    @property
    def mode(self) -> str:
        return "live" if self.can_trade else "paper"

    def normalized_base_url(self) -> str:
        return (self.base_url or DEFAULT_OANDA_API_URL).rstrip("/")


class BrokerClient(ABC):
    """
    Abstract base class for broker clients.

    Design Philosophy:
    - Methods return the broker's JSON payloads as plain dicts/lists
    - Prices stay strings as the broker sends them; parsing happens in the engine
    - Any failure raises a BrokerError subclass, the engine decides what it means
    """

    @abstractmethod
    async def get_candles(
        self,
        instrument: str,
        granularity: str,
        count: int,
        price: str = "M",
    ) -> List[Dict[str, Any]]:
        """
        Get the most recent candles, oldest first.

        Returns:
            [
                {
                    "complete": True,
                    "time": "2024-01-01T00:00:00.000000000Z",
                    "volume": 10,
                    "mid": {"o": "1.1", "h": "1.2", "l": "1.0", "c": "1.15"},
                },
                ...
            ]
        """
        pass

    @abstractmethod
    async def place_market_order(
        self,
        instrument: str,
        units: float,
        take_profit_price: Optional[float] = None,
        stop_loss_price: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Submit a market order; positive units buy, negative units sell.

        Returns:
            Order response containing orderFillTransaction(s)
        """
        pass

    @abstractmethod
    async def close_trade(self, trade_id: str) -> Dict[str, Any]:
        """Fully close an open trade. Returns the order response with the closing fill."""
        pass

    @abstractmethod
    async def get_open_trades(self) -> List[Dict[str, Any]]:
        """
        List currently open trades for the account.

        Returns:
            [{"id": "123", "instrument": "EUR_USD", "price": "1.1", "currentUnits": "100"}, ...]
        """
        pass

    async def close(self):
        """Release network resources (no-op by default)."""
        pass
