"""
Data Ingestion - Market Collector.

Price, 24h/7d change, 24h volume and market cap from CoinGecko.
The only mandatory domain: a snapshot cannot be built without it.
"""

from typing import Any, Dict, Optional

from core.exceptions import CollectorError
from data_ingestion.collectors.base import BaseSignalCollector, to_float
from data_ingestion.types import MarketSignals, SignalDomain


class MarketCollector(BaseSignalCollector[MarketSignals]):
    """
    Collector for CoinGecko market data.

    Endpoints:
    - /coins/{id}: full market data
    - /simple/price: current price only (backfill)
    """

    domain = SignalDomain.MARKET

    def _headers(self) -> Dict[str, str]:
        headers = {}
        if self._config.coingecko_api_key:
            headers["x-cg-demo-api-key"] = self._config.coingecko_api_key
        return headers

    async def fetch_signals(self, asset_id: str) -> MarketSignals:
        data = await self._get_json(
            f"{self._config.coingecko_base_url}/coins/{asset_id}",
            asset_id=asset_id,
            params={
                "localization": "false",
                "tickers": "false",
                "community_data": "false",
                "developer_data": "false",
            },
            headers=self._headers(),
        )

        market_data = data.get("market_data") or {}
        price = _usd(market_data.get("current_price"))
        if price is None:
            raise CollectorError(
                "No current price in response",
                domain=self.domain_name,
                asset_id=asset_id,
            )

        return MarketSignals(
            price=price,
            price_change_24h=to_float(market_data.get("price_change_percentage_24h")),
            price_change_7d=to_float(market_data.get("price_change_percentage_7d")),
            volume_24h=_usd(market_data.get("total_volume")),
            market_cap=_usd(market_data.get("market_cap")),
        )

    async def fetch_current_price(self, asset_id: str) -> float:
        """
        Current USD price, used by the backfill job.

        Raises:
            CollectorError: price unavailable
        """
        try:
            data = await self._get_json(
                f"{self._config.coingecko_base_url}/simple/price",
                asset_id=asset_id,
                params={"ids": asset_id, "vs_currencies": "usd"},
                headers=self._headers(),
            )
            price = to_float((data.get(asset_id) or {}).get("usd"))
        except CollectorError:
            raise
        except Exception as e:
            raise CollectorError(
                f"Price unavailable: {e}",
                domain=self.domain_name,
                asset_id=asset_id,
                cause=e,
            ) from e

        if price is None:
            raise CollectorError(
                "Price missing from response",
                domain=self.domain_name,
                asset_id=asset_id,
            )
        return price


def _usd(value: Optional[Dict[str, Any]]) -> Optional[float]:
    if not isinstance(value, dict):
        return None
    return to_float(value.get("usd"))


__all__ = ["MarketCollector"]
