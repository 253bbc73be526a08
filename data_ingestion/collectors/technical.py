"""
Data Ingestion - Technical Collector.

Derives RSI14, MACD cross, MA50/MA200 position and Bollinger
position from CoinGecko OHLC closes.
"""

from typing import List, Optional, Sequence

from data_ingestion.collectors.base import BaseSignalCollector, to_float
from data_ingestion.types import SignalDomain, TechnicalSignals
from data_processing import indicators


RSI_PERIOD = 14
MA_SHORT = 50
MA_LONG = 200


class TechnicalCollector(BaseSignalCollector[TechnicalSignals]):
    """Collector for OHLC-derived technical signals."""

    domain = SignalDomain.TECHNICAL

    async def fetch_signals(self, asset_id: str) -> TechnicalSignals:
        headers = {}
        if self._config.coingecko_api_key:
            headers["x-cg-demo-api-key"] = self._config.coingecko_api_key

        candles = await self._get_json(
            f"{self._config.coingecko_base_url}/coins/{asset_id}/ohlc",
            asset_id=asset_id,
            params={"vs_currency": "usd", "days": str(self._config.ohlc_days)},
            headers=headers,
        )

        closes = extract_closes(candles or [])
        return compute_technical_signals(closes)


def extract_closes(candles: Sequence[Sequence[float]]) -> List[float]:
    """Close prices from [timestamp, open, high, low, close] rows."""
    closes = []
    for candle in candles:
        close = to_float(candle[4]) if len(candle) > 4 else None
        if close is not None:
            closes.append(close)
    return closes


def compute_technical_signals(closes: Sequence[float]) -> TechnicalSignals:
    """Technical bundle from a close series (oldest first)."""
    if not closes:
        return TechnicalSignals(ma50_position="unknown", ma200_position="unknown")

    current_price = closes[-1]

    rsi_value = indicators.latest(indicators.rsi(closes, RSI_PERIOD))
    macd_cross = indicators.macd(closes).latest_cross()

    bands = indicators.bollinger_bands(closes)
    bollinger_position = bands.position(current_price) if bands else None

    return TechnicalSignals(
        rsi_14=round(rsi_value, 2) if rsi_value is not None else None,
        macd_signal=macd_cross,
        ma50_position=_ma_position(current_price, indicators.sma(closes, MA_SHORT)),
        ma200_position=_ma_position(current_price, indicators.sma(closes, MA_LONG)),
        bollinger_position=bollinger_position,
    )


def _ma_position(price: float, moving_average: Optional[float]) -> str:
    if moving_average is None:
        return "unknown"
    return "above" if price > moving_average else "below"


__all__ = [
    "TechnicalCollector",
    "extract_closes",
    "compute_technical_signals",
]
