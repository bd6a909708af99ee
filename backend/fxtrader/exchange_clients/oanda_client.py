"""
OANDA v20 REST Client

BrokerClient implementation for OANDA practice/live accounts.

- Uses httpx.AsyncClient for HTTP
- Bearer token authentication
- Candle count clamped to the API limit (1..5000)
- Take-profit / stop-loss attached on fill, priced to 5 decimals
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from fxtrader.constants import MAX_CANDLE_COUNT
from fxtrader.exceptions import (
    BrokerConfigurationError,
    BrokerRequestError,
    BrokerUnavailableError,
)
from fxtrader.exchange_clients.base import BrokerClient, BrokerConfig

logger = logging.getLogger(__name__)


def format_price(price: float) -> str:
    """OANDA accepts price strings; 5 decimals covers FX and crypto instruments."""
    return f"{price:.5f}"


class OandaClient(BrokerClient):
    """
    BrokerClient for the OANDA v20 REST API.

    Endpoints used:
      GET  /instruments/{instrument}/candles         - Recent candles
      POST /accounts/{account}/orders                - Market order
      PUT  /accounts/{account}/trades/{id}/close     - Close trade
      GET  /accounts/{account}/openTrades            - Open trades
    """

    def __init__(self, config: BrokerConfig):
        self._config = config
        self._base_url = config.normalized_base_url()
        self._client = httpx.AsyncClient(timeout=config.timeout)
        logger.info(f"OandaClient initialized (base_url={self._base_url}, mode={config.mode})")

    async def close(self):
        """Close the underlying httpx client to release connections."""
        if self._client:
            await self._client.aclose()

    def _require_api_key(self) -> str:
        if not self._config.api_key:
            raise BrokerConfigurationError(
                "Missing OANDA_API_KEY environment variable. "
                "Set it to your OANDA REST API token to enable live trading."
            )
        return self._config.api_key

    def _require_account_id(self) -> str:
        if not self._config.account_id:
            raise BrokerConfigurationError(
                "Missing OANDA_ACCOUNT_ID environment variable. "
                "Set it to the practice or live account you wish to trade."
            )
        return self._config.account_id

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Optional[Any]:
        """Make an authenticated request.

        Returns:
            Decoded JSON body, or None for 204 No Content.

        Raises:
            BrokerConfigurationError: API key missing.
            BrokerRequestError: OANDA returned a non-2xx status.
            BrokerUnavailableError: OANDA unreachable or timed out.
        """
        api_key = self._require_api_key()
        headers = {"Authorization": f"Bearer {api_key}"}
        if json is not None:
            headers["Content-Type"] = "application/json"

        url = f"{self._base_url}{path}"
        try:
            resp = await self._client.request(method, url, params=params, json=json, headers=headers)
            resp.raise_for_status()
        except httpx.TimeoutException:
            logger.error(f"OANDA timeout: {method} {path}")
            raise BrokerUnavailableError("OANDA request timed out")
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            reason = e.response.reason_phrase
            body = e.response.text
            logger.error(f"OANDA HTTP {status}: {method} {path} - {body[:200]}")
            raise BrokerRequestError(f"OANDA request failed ({status} {reason}): {body}", http_status=status)
        except httpx.HTTPError as e:
            logger.error(f"OANDA connection failed: {method} {path}: {e}")
            raise BrokerUnavailableError(f"OANDA unavailable: {e}")

        if resp.status_code == 204:
            return None
        return resp.json()

    # ==========================================================
    # MARKET DATA
    # ==========================================================

    async def get_candles(
        self,
        instrument: str,
        granularity: str,
        count: int,
        price: str = "M",
    ) -> List[Dict[str, Any]]:
        params = {
            "price": price,
            "granularity": granularity,
            "count": str(min(MAX_CANDLE_COUNT, max(1, int(count)))),
        }
        result = await self._request("GET", f"/instruments/{instrument}/candles", params=params)
        return (result or {}).get("candles") or []

    # ==========================================================
    # ORDER EXECUTION
    # ==========================================================

    async def place_market_order(
        self,
        instrument: str,
        units: float,
        take_profit_price: Optional[float] = None,
        stop_loss_price: Optional[float] = None,
    ) -> Dict[str, Any]:
        account_id = self._require_account_id()
        order: Dict[str, Any] = {
            "instrument": instrument,
            "units": _format_units(units),
            "timeInForce": "FOK",
            "type": "MARKET",
            "positionFill": "DEFAULT",
        }
        if take_profit_price:
            order["takeProfitOnFill"] = {"price": format_price(take_profit_price)}
        if stop_loss_price:
            order["stopLossOnFill"] = {"price": format_price(stop_loss_price)}

        logger.info(f"OANDA market order: {instrument} units={order['units']}")
        result = await self._request("POST", f"/accounts/{account_id}/orders", json={"order": order})
        return result or {}

    async def close_trade(self, trade_id: str) -> Dict[str, Any]:
        account_id = self._require_account_id()
        logger.info(f"OANDA close trade: {trade_id}")
        result = await self._request(
            "PUT",
            f"/accounts/{account_id}/trades/{trade_id}/close",
            json={"units": "ALL"},
        )
        return result or {}

    async def get_open_trades(self) -> List[Dict[str, Any]]:
        account_id = self._require_account_id()
        result = await self._request("GET", f"/accounts/{account_id}/openTrades")
        return (result or {}).get("trades") or []


def _format_units(units: float) -> str:
    """Whole units render without a trailing '.0' (OANDA rejects '1.0' for some instruments)."""
    if float(units).is_integer():
        return str(int(units))
    return str(units)
