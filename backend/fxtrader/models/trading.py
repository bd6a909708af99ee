"""Trading models: sessions, positions, session logs."""

from datetime import datetime

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from fxtrader.database import Base


class TraderSession(Base):
    """
    A single crossover strategy bound to one instrument.

    Status only changes through start/stop commands or a failed tick.
    Analytics columns (last_*) are overwritten by every successful tick.
    """
    __tablename__ = "trader_sessions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)

    # Strategy configuration
    instrument = Column(String, nullable=False)  # e.g. "BTC_USD", "EUR_USD"
    granularity = Column(String, nullable=False, default="M5")  # OANDA granularity code
    short_window = Column(Integer, nullable=False)
    long_window = Column(Integer, nullable=False)
    trade_units = Column(Float, nullable=False)
    take_profit_multiplier = Column(Float, nullable=False)  # 0.01 = 1% from entry
    stop_loss_multiplier = Column(Float, nullable=False)
    neutral_threshold = Column(Float, nullable=False, default=0.0)

    # Lifecycle
    status = Column(String, nullable=False, default="stopped", index=True)  # stopped, running, error
    error_message = Column(Text, nullable=True)

    # Analytics from the last evaluation
    last_signal = Column(String, nullable=False, default="neutral")  # long, short, neutral
    last_short_ma = Column(Float, nullable=True)
    last_long_ma = Column(Float, nullable=True)
    last_price = Column(Float, nullable=True)
    last_evaluation_time = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class TraderPosition(Base):
    __tablename__ = "trader_positions"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("trader_sessions.id"), nullable=False, index=True)

    direction = Column(String, nullable=False)  # "long" or "short"
    units = Column(Float, nullable=False)  # Signed: negative for shorts
    entry_price = Column(Float, nullable=False)
    take_profit_price = Column(Float, nullable=True)
    stop_loss_price = Column(Float, nullable=True)

    status = Column(String, nullable=False, default="open")  # open, closed
    broker_trade_id = Column(String, nullable=True)  # None = paper position

    # Closing metrics
    exit_price = Column(Float, nullable=True)
    realized_pnl = Column(Float, nullable=True)  # Only known when the broker reports it
    close_reason = Column(String, nullable=True)

    opened_at = Column(DateTime, default=datetime.utcnow)
    closed_at = Column(DateTime, nullable=True)

    __table_args__ = (Index("ix_trader_positions_session_status", "session_id", "status"),)

    # Relationships
    session = relationship("TraderSession")

    @property
    def is_paper(self) -> bool:
        return not self.broker_trade_id


class TraderLog(Base):
    """Append-only audit trail of session decisions (info, warn, error, trade, analysis)."""
    __tablename__ = "trader_logs"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("trader_sessions.id"), nullable=False, index=True)
    level = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    session = relationship("TraderSession")
