"""
Data Ingestion - Derivatives Collector.

Binance USDT-M futures for the asset's perpetual:
- funding rate (latest, as a percentage)
- 24h open interest change (estimated: 0.5 x 24h price change)
- 24h liquidations (estimated: 3% of volume x |price change|)

Binance has no free historical OI or liquidation feed, so the
last two are proxies derived from the 24h ticker.
"""

import asyncio
from typing import Optional

from data_ingestion.collectors.base import BaseSignalCollector, to_float
from data_ingestion.types import DerivativesSignals, SignalDomain, symbol_for


OI_CHANGE_FACTOR = 0.5
LIQUIDATION_VOLUME_SHARE = 0.03


class DerivativesCollector(BaseSignalCollector[DerivativesSignals]):
    """Collector for futures funding, OI and liquidation signals."""

    domain = SignalDomain.DERIVATIVES

    async def fetch_signals(self, asset_id: str) -> DerivativesSignals:
        pair = f"{symbol_for(asset_id)}USDT"
        base_url = self._config.binance_futures_url

        funding_data, ticker = await asyncio.gather(
            self._get_json(
                f"{base_url}/fapi/v1/fundingRate",
                asset_id=asset_id,
                params={"symbol": pair, "limit": "1"},
            ),
            self._get_json(
                f"{base_url}/fapi/v1/ticker/24hr",
                asset_id=asset_id,
                params={"symbol": pair},
            ),
        )

        funding_rate: Optional[float] = None
        if funding_data:
            raw_rate = to_float(funding_data[0].get("fundingRate"))
            if raw_rate is not None:
                funding_rate = raw_rate * 100

        price_change = to_float(ticker.get("priceChangePercent"))
        quote_volume = to_float(ticker.get("quoteVolume"))

        return DerivativesSignals(
            funding_rate=funding_rate,
            open_interest_change_24h=estimate_oi_change(price_change),
            liquidations_24h=estimate_liquidations(quote_volume, price_change),
        )


def estimate_oi_change(price_change_percent: Optional[float]) -> Optional[float]:
    if price_change_percent is None:
        return None
    return price_change_percent * OI_CHANGE_FACTOR


def estimate_liquidations(
    quote_volume: Optional[float],
    price_change_percent: Optional[float],
) -> Optional[float]:
    if quote_volume is None or price_change_percent is None:
        return None
    return quote_volume * (abs(price_change_percent) / 100) * LIQUIDATION_VOLUME_SHARE


__all__ = [
    "DerivativesCollector",
    "estimate_oi_change",
    "estimate_liquidations",
]
