"""
Data Ingestion - Macro Collector.

============================================================
SOURCES
============================================================
FRED (latest observation):
- DFF       fed funds rate
- DGS10     10y treasury yield
- DTWEXBGS  broad dollar index (DXY proxy)

Yahoo Finance chart API:
- ^VIX      regularMarketPrice
- ^GSPC     daily % change (last two closes)
- ^IXIC     daily % change (last two closes)

Each series is fetched independently; a failed series is
None. The collector fails only when every series failed.

============================================================
RISK ENVIRONMENT
============================================================
VIX < 15: +1, VIX > 25: -1
S&P 500 / Nasdaq change > 0.5%: +1 each, < -0.5%: -1 each
score >= 2 risk_on, <= -2 risk_off, otherwise neutral

============================================================
"""

import asyncio
from typing import Any, Dict, List, Optional

from core.exceptions import CollectorError
from data_ingestion.collectors.base import BaseSignalCollector, to_float
from data_ingestion.types import MacroSignals, SignalDomain


FRED_SERIES = {
    "fed_funds_rate": "DFF",
    "treasury_10y": "DGS10",
    "dxy": "DTWEXBGS",
}

YAHOO_HEADERS = {"User-Agent": "Mozilla/5.0"}


class MacroCollector(BaseSignalCollector[MacroSignals]):
    """Collector for macro environment signals. Asset-independent."""

    domain = SignalDomain.MACRO

    async def fetch_signals(self, asset_id: str) -> MacroSignals:
        names = list(FRED_SERIES.keys()) + ["vix", "sp500_change", "nasdaq_change"]
        results = await asyncio.gather(
            *(self._fetch_fred(series) for series in FRED_SERIES.values()),
            self._fetch_vix(),
            self._fetch_index_change("^GSPC"),
            self._fetch_index_change("^IXIC"),
            return_exceptions=True,
        )

        values: Dict[str, Optional[float]] = {}
        failures: List[str] = []
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                self._logger.warning(f"Macro series {name} unavailable: {result}")
                failures.append(name)
                values[name] = None
            else:
                values[name] = result

        if len(failures) == len(names):
            raise CollectorError(
                "All macro series unavailable",
                domain=self.domain_name,
                asset_id=asset_id,
            )

        return MacroSignals(
            vix=values["vix"],
            dxy=values["dxy"],
            fed_funds_rate=values["fed_funds_rate"],
            treasury_10y=values["treasury_10y"],
            risk_environment=determine_risk_environment(
                values["vix"],
                values["sp500_change"],
                values["nasdaq_change"],
            ),
        )

    async def _fetch_fred(self, series_id: str) -> Optional[float]:
        data = await self._get_json(
            self._config.fred_base_url,
            params={
                "series_id": series_id,
                "sort_order": "desc",
                "limit": "1",
                "file_type": "json",
                "api_key": self._config.fred_api_key,
            },
        )
        observations = data.get("observations") or []
        if not observations:
            return None
        # FRED marks missing observations with "."
        return to_float(observations[0].get("value"))

    async def _fetch_chart(self, symbol: str, range_: str) -> Dict[str, Any]:
        data = await self._get_json(
            f"{self._config.yahoo_chart_url}/{symbol}",
            params={"interval": "1d", "range": range_},
            headers=YAHOO_HEADERS,
        )
        results = (data.get("chart") or {}).get("result") or []
        return results[0] if results else {}

    async def _fetch_vix(self) -> Optional[float]:
        result = await self._fetch_chart("^VIX", "1d")
        return to_float((result.get("meta") or {}).get("regularMarketPrice"))

    async def _fetch_index_change(self, symbol: str) -> Optional[float]:
        result = await self._fetch_chart(symbol, "2d")
        quotes = (result.get("indicators") or {}).get("quote") or [{}]
        closes = [c for c in quotes[0].get("close") or [] if c is not None]
        if len(closes) < 2 or closes[-2] == 0:
            return None
        return (closes[-1] - closes[-2]) / closes[-2] * 100


def determine_risk_environment(
    vix: Optional[float],
    sp500_change: Optional[float],
    nasdaq_change: Optional[float],
) -> Optional[str]:
    """risk_on / risk_off / neutral; None when no input is known."""
    if vix is None and sp500_change is None and nasdaq_change is None:
        return None

    score = 0
    if vix is not None:
        if vix < 15:
            score += 1
        elif vix > 25:
            score -= 1

    for change in (sp500_change, nasdaq_change):
        if change is None:
            continue
        if change > 0.5:
            score += 1
        elif change < -0.5:
            score -= 1

    if score >= 2:
        return "risk_on"
    if score <= -2:
        return "risk_off"
    return "neutral"


__all__ = [
    "MacroCollector",
    "determine_risk_environment",
]
