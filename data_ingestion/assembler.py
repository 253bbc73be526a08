"""
Data Ingestion - Snapshot Assembler.

============================================================
PURPOSE
============================================================
Builds one Snapshot per asset from all signal collectors.

- All collectors run concurrently; every branch is awaited
- A failed collector leaves its fields None and is listed
  in snapshot.collector_errors
- Market data is mandatory: without it the asset is aborted
  with MandatorySignalMissingError

============================================================
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from core.clock import ClockProtocol, SystemClock
from core.exceptions import MandatorySignalMissingError
from data_ingestion.collectors.base import BaseSignalCollector
from data_ingestion.types import MarketSignals, Snapshot


class SnapshotAssembler:
    """
    Fans out to all collectors for one asset and fuses the bundles.

    ============================================================
    USAGE
    ============================================================
    ```python
    assembler = SnapshotAssembler(market, [technical, sentiment, macro])
    snapshot = await assembler.assemble("bitcoin")
    ```

    ============================================================
    """

    def __init__(
        self,
        market_collector: BaseSignalCollector[MarketSignals],
        collectors: Sequence[BaseSignalCollector],
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._market = market_collector
        self._collectors: List[BaseSignalCollector] = list(collectors)
        self._clock = clock or SystemClock()
        self._logger = logging.getLogger("snapshot_assembler")

    @property
    def domains(self) -> List[str]:
        return [self._market.domain_name] + [c.domain_name for c in self._collectors]

    async def assemble(self, asset_id: str) -> Snapshot:
        """
        Collect every domain for the asset and build a snapshot.

        Raises:
            MandatorySignalMissingError: market data unavailable
        """
        collectors = [self._market] + self._collectors
        results = await asyncio.gather(
            *(c.collect(asset_id) for c in collectors),
            return_exceptions=True,
        )

        market_result = results[0]
        if isinstance(market_result, BaseException):
            if not isinstance(market_result, Exception):
                raise market_result
            raise MandatorySignalMissingError(
                asset_id,
                reason=str(market_result),
                cause=market_result,
            )

        values: Dict[str, Any] = {}
        collector_errors: Dict[str, str] = {}

        for collector, result in zip(collectors, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                collector_errors[collector.domain_name] = str(result)
                continue
            if result is None:
                continue
            values.update(result.snapshot_fields())

        if collector_errors:
            self._logger.warning(
                f"Assembled {asset_id} with {len(collector_errors)} failed collector(s): "
                f"{', '.join(sorted(collector_errors))}"
            )

        return Snapshot(
            timestamp=self._clock.now(),
            asset_id=asset_id,
            collector_errors=collector_errors,
            **values,
        )


__all__ = [
    "SnapshotAssembler",
]
