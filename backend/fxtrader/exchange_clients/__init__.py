"""
Broker Client Abstraction Layer

This package provides the interface the trading engine uses to talk to a broker.
All broker clients implement the BrokerClient abstract base class.

Supported Brokers:
- OANDA v20 REST (via OandaClient)

Usage:
    from fxtrader.config import settings
    from fxtrader.exchange_clients.factory import create_broker_client

    broker_config = settings.broker_config()
    broker = create_broker_client(broker_config)
"""

from fxtrader.exchange_clients.base import BrokerClient, BrokerConfig

__all__ = ["BrokerClient", "BrokerConfig"]
