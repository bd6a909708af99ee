from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings

from fxtrader.exchange_clients.base import BrokerConfig, DEFAULT_OANDA_API_URL


class Settings(BaseSettings):
    # OANDA v20 REST credentials
    # Without an API key no candles can be fetched; without an account id the
    # engine trades on local records only (paper mode)
    oanda_api_key: str = ""
    oanda_account_id: str = ""
    oanda_api_url: str = DEFAULT_OANDA_API_URL
    oanda_timeout_seconds: float = 10.0

    # Force paper mode even when full credentials are present
    paper_trading: bool = False

    @field_validator("oanda_api_key", "oanda_account_id")
    @classmethod
    def strip_credentials(cls, v: str) -> str:
        return (v or "").strip()

    # Database
    database_url: str = "sqlite+aiosqlite:///./trader.db"
    database_echo: bool = False

    # Security
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Session monitor (periodic sweep of running sessions)
    monitor_enabled: bool = True
    monitor_interval_seconds: int = 60

    # Seconds to wait for in-flight ticks on shutdown
    shutdown_timeout_seconds: float = 30.0

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False

    def get_cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins if origin.strip()]

    def broker_config(self) -> BrokerConfig:
        """Build the broker configuration injected into the trading engine"""
        return BrokerConfig(
            api_key=self.oanda_api_key,
            account_id=self.oanda_account_id,
            base_url=self.oanda_api_url,
            timeout=self.oanda_timeout_seconds,
            paper_trading=self.paper_trading,
        )


settings = Settings()
