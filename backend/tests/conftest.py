"""
Shared test fixtures for the trader backend tests.

Provides reusable fixtures for:
- Async database sessions (in-memory SQLite)
- Broker configurations (live and paper) and a mock broker client
- Session and candle factories
"""

from datetime import datetime, timedelta

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)

from fxtrader.exchange_clients.base import BrokerClient, BrokerConfig

# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def async_engine():
    """Create an in-memory async SQLite engine for testing."""
    from fxtrader.models import Base

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_maker(async_engine):
    """Session factory bound to the test engine (what background jobs use)."""
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    """Provide an async database session for tests.

    Each test gets its own session that rolls back after the test.
    """
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
def reset_session_locks():
    """Locks bind to the event loop that first waits on them; start each test clean."""
    from fxtrader.services import session_locks

    session_locks._session_locks.clear()
    yield
    session_locks._session_locks.clear()


# ---------------------------------------------------------------------------
# Broker fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def live_config():
    return BrokerConfig(api_key="test-key", account_id="101-001-1234567-001")


@pytest.fixture
def paper_config():
    """Market data available, no account: orders stay local."""
    return BrokerConfig(api_key="test-key", account_id="")


@pytest.fixture
def mock_broker():
    """Create a mock broker client for testing without hitting OANDA."""
    broker = MagicMock(spec=BrokerClient)
    broker.get_candles = AsyncMock(return_value=[])
    broker.place_market_order = AsyncMock(return_value={
        "orderFillTransaction": {
            "price": "1.10000",
            "tradeOpened": {"tradeID": "T-1"},
        },
    })
    broker.close_trade = AsyncMock(return_value={
        "orderFillTransaction": {
            "price": "1.10500",
            "pl": "5.0000",
            "tradesClosed": [{"tradeID": "T-1"}],
        },
    })
    broker.get_open_trades = AsyncMock(return_value=[])
    broker.close = AsyncMock()
    return broker


# ---------------------------------------------------------------------------
# Sample data factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_candles():
    """Build OANDA candle payloads (oldest first) from closing prices."""
    def _make_candles(closes, complete_last=True):
        start = datetime(2024, 1, 1)
        candles = []
        for i, close in enumerate(closes):
            candles.append({
                "complete": True,
                "time": (start + timedelta(minutes=5 * i)).isoformat() + "Z",
                "volume": 10,
                "mid": {"o": str(close), "h": str(close), "l": str(close), "c": str(close)},
            })
        if candles and not complete_last:
            candles[-1]["complete"] = False
        return candles
    return _make_candles


@pytest.fixture
def make_session(db_session):
    """Insert a TraderSession with sensible defaults (short=2, long=4)."""
    from fxtrader.models import TraderSession

    async def _make_session(**overrides):
        values = {
            "name": "Test Session",
            "instrument": "EUR_USD",
            "granularity": "M5",
            "short_window": 2,
            "long_window": 4,
            "trade_units": 100.0,
            "take_profit_multiplier": 0.01,
            "stop_loss_multiplier": 0.005,
            "neutral_threshold": 0.0,
            "status": "running",
            "last_signal": "neutral",
        }
        values.update(overrides)
        session = TraderSession(**values)
        db_session.add(session)
        await db_session.commit()
        await db_session.refresh(session)
        return session

    return _make_session
