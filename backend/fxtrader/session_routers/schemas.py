"""
Session Router Pydantic Schemas

Shared request/response models for all session router modules.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from fxtrader.constants import DEFAULT_SESSION_CONFIG


class SessionConfig(BaseModel):
    name: str = DEFAULT_SESSION_CONFIG["name"]
    instrument: str = DEFAULT_SESSION_CONFIG["instrument"]  # OANDA instrument, e.g. "EUR_USD"
    granularity: str = DEFAULT_SESSION_CONFIG["granularity"]  # OANDA granularity, e.g. "M5"
    short_window: int = DEFAULT_SESSION_CONFIG["short_window"]
    long_window: int = DEFAULT_SESSION_CONFIG["long_window"]
    trade_units: float = DEFAULT_SESSION_CONFIG["trade_units"]
    take_profit_multiplier: float = Field(DEFAULT_SESSION_CONFIG["take_profit_multiplier"], description="0.01 = 1% from entry")
    stop_loss_multiplier: float = Field(DEFAULT_SESSION_CONFIG["stop_loss_multiplier"], description="0.005 = 0.5% from entry")
    neutral_threshold: float = DEFAULT_SESSION_CONFIG["neutral_threshold"]


class SessionCreate(SessionConfig):
    pass


class SessionUpdate(SessionConfig):
    """Full replacement of a session's configuration"""
    pass


class SessionResponse(BaseModel):
    id: int
    name: str
    instrument: str
    granularity: str
    short_window: int
    long_window: int
    trade_units: float
    take_profit_multiplier: float
    stop_loss_multiplier: float
    neutral_threshold: float
    status: str
    error_message: Optional[str] = None
    last_signal: str
    last_short_ma: Optional[float] = None
    last_long_ma: Optional[float] = None
    last_price: Optional[float] = None
    last_evaluation_time: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PositionResponse(BaseModel):
    id: int
    session_id: int
    direction: str
    units: float
    entry_price: float
    take_profit_price: Optional[float] = None
    stop_loss_price: Optional[float] = None
    status: str
    broker_trade_id: Optional[str] = None
    exit_price: Optional[float] = None
    realized_pnl: Optional[float] = None
    close_reason: Optional[str] = None
    opened_at: datetime
    closed_at: Optional[datetime] = None
    is_paper: bool

    class Config:
        from_attributes = True


class LogResponse(BaseModel):
    id: int
    session_id: int
    level: str
    message: str
    details: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SessionActionResponse(BaseModel):
    message: str
    session: SessionResponse
