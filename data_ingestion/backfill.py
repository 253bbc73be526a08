"""
Data Ingestion - Realized Outcome Backfill.

============================================================
PURPOSE
============================================================
Attaches realized price deltas to snapshots once their
horizon has passed.

For each horizon (24h, 7d):
1. Load snapshots older than the horizon that lack its price
2. Fetch the asset's current price
3. actual_impact = (after - before) / before * 100
4. accuracy: 100 if the move matches the prediction, else 0
   - BULLISH correct when impact > 0
   - BEARISH correct when impact < 0
   - NEUTRAL correct when |impact| <= neutral band
5. Attach via store.attach_realized_outcome

Prediction fields are never touched.

============================================================
"""

import logging
from typing import Dict, Optional, Protocol

from core.clock import ClockProtocol, SystemClock
from core.exceptions import SignalPipelineError
from data_ingestion.types import (
    BackfillConfig,
    BackfillResult,
    Direction,
    OutcomeHorizon,
    RealizedOutcome,
    Snapshot,
)
from database.store import SnapshotStore


class CurrentPriceSource(Protocol):
    async def fetch_current_price(self, asset_id: str) -> float:
        ...


def compute_actual_impact(price_before: float, price_after: float) -> float:
    """Percentage move from the snapshot price."""
    return (price_after - price_before) / price_before * 100


def compute_accuracy(
    prediction: Optional[Direction],
    actual_impact: float,
    neutral_band_percent: float,
) -> Optional[int]:
    """100 when the realized move agrees with the prediction, 0 otherwise."""
    if prediction is None:
        return None
    if prediction == Direction.BULLISH:
        correct = actual_impact > 0
    elif prediction == Direction.BEARISH:
        correct = actual_impact < 0
    else:
        correct = abs(actual_impact) <= neutral_band_percent
    return 100 if correct else 0


def build_outcome(
    snapshot: Snapshot,
    horizon: OutcomeHorizon,
    price_after: float,
    neutral_band_percent: float,
) -> RealizedOutcome:
    if not snapshot.price:
        raise ValueError(f"Snapshot {snapshot.id} has no usable price")
    impact = compute_actual_impact(snapshot.price, price_after)
    return RealizedOutcome(
        horizon=horizon,
        price_after=price_after,
        actual_impact=impact,
        accuracy=compute_accuracy(snapshot.prediction, impact, neutral_band_percent),
    )


class BackfillJob:
    """
    One pass of realized-outcome backfill.

    Prices are fetched once per asset per pass.
    """

    def __init__(
        self,
        store: SnapshotStore,
        price_source: CurrentPriceSource,
        config: Optional[BackfillConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        self._store = store
        self._price_source = price_source
        self._config = config or BackfillConfig()
        self._clock = clock or SystemClock()
        self._logger = logging.getLogger("backfill")

    async def run(self) -> BackfillResult:
        """Backfill every configured horizon. Never raises for per-snapshot errors."""
        result = BackfillResult()
        prices: Dict[str, float] = {}

        for horizon in self._config.horizons:
            older_than = self._clock.now() - horizon.delta
            try:
                pending = self._store.find_pending_outcomes(
                    horizon,
                    older_than,
                    limit=self._config.batch_limit,
                )
            except SignalPipelineError as e:
                result.add_error(f"{horizon.value}: {e}")
                continue

            self._logger.info(f"Backfill {horizon.value}: {len(pending)} pending snapshot(s)")

            for snapshot in pending:
                try:
                    price_after = prices.get(snapshot.asset_id)
                    if price_after is None:
                        price_after = await self._price_source.fetch_current_price(
                            snapshot.asset_id
                        )
                        prices[snapshot.asset_id] = price_after

                    outcome = build_outcome(
                        snapshot,
                        horizon,
                        price_after,
                        self._config.neutral_band_percent,
                    )
                    self._store.attach_realized_outcome(snapshot.id, outcome)
                    result.updated_count += 1

                except (SignalPipelineError, ValueError) as e:
                    self._logger.warning(
                        f"Backfill {horizon.value} failed for snapshot {snapshot.id}: {e}"
                    )
                    result.add_error(f"{snapshot.asset_id} ({snapshot.id}): {e}")

        self._logger.info(
            f"Backfill complete: updated={result.updated_count}, errors={result.error_count}"
        )
        return result


__all__ = [
    "BackfillJob",
    "CurrentPriceSource",
    "build_outcome",
    "compute_accuracy",
    "compute_actual_impact",
]
