"""
Broker Client Factory

Creates the broker client for a deployment's BrokerConfig.
The client is shared by every session; whether it is allowed to trade is
decided by BrokerConfig.can_trade, not by the client.
"""

import logging
from typing import Optional

from fxtrader.exchange_clients.base import BrokerClient, BrokerConfig
from fxtrader.exchange_clients.oanda_client import OandaClient

logger = logging.getLogger(__name__)

_broker_client: Optional[BrokerClient] = None


def create_broker_client(config: BrokerConfig) -> BrokerClient:
    """
    Factory function to create the broker client.

    Args:
        config: Broker credentials and operating mode

    Returns:
        OandaClient instance. It is created even without credentials so candle
        requests fail with a clear configuration error instead of an AttributeError.
    """
    if not config.has_market_data:
        logger.warning("No OANDA API key configured - candle requests will fail until one is set")
    elif not config.can_trade:
        logger.info("Broker trading disabled - sessions run in paper mode")
    return OandaClient(config)


def get_broker_client(config: BrokerConfig) -> BrokerClient:
    """Return the process-wide broker client, creating it on first use."""
    global _broker_client
    if _broker_client is None:
        _broker_client = create_broker_client(config)
    return _broker_client


async def close_broker_client():
    """Close and forget the process-wide broker client."""
    global _broker_client
    if _broker_client is not None:
        await _broker_client.close()
        _broker_client = None
