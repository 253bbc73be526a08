"""
Data Ingestion - Ingestion Orchestrator.

============================================================
RESPONSIBILITY
============================================================
Runs one ingestion cycle end to end.

- Auxiliary aggregation (sentiment, news/policy scan, adoption)
- Per asset: assemble -> score -> persist
- Training records for each asset's latest snapshot
- Realized-outcome backfill
- Read side: policy risk per region, prediction accuracy
  and prediction statistics

============================================================
DESIGN PRINCIPLES
============================================================
- Assets are processed sequentially with a small delay;
  concurrency lives in the per-asset fan-out and the limiter
- Failure isolation: an auxiliary step or an asset failing
  never aborts the run
- run_full_ingestion never raises; errors are returned

============================================================
STATE MACHINE
============================================================
IDLE -> COLLECTING_AUXILIARY -> PER_ASSET_LOOP -> PERSISTING
     -> DONE | PARTIAL_FAILURE

market_only skips COLLECTING_AUXILIARY.
sentiment_only skips PER_ASSET_LOOP and PERSISTING.

============================================================
"""

import asyncio
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from core.clock import ClockProtocol, SystemClock
from core.exceptions import SignalPipelineError
from data_ingestion.assembler import SnapshotAssembler
from data_ingestion.backfill import BackfillJob
from data_ingestion.collectors.news import NewsPolicyScanner
from data_ingestion.collectors.sentiment import SentimentSource
from data_ingestion.types import (
    AccuracyReport,
    BackfillResult,
    IngestionConfig,
    IngestionOptions,
    IngestionRunResult,
    OutcomeHorizon,
    PolicyRiskScore,
    PredictionStats,
    RunState,
    RunType,
    Snapshot,
    TrainingRecord,
)
from data_processing.labeling.news_classifier import Region
from data_processing.policy_risk import (
    POLICY_WINDOW_DAYS,
    calculate_policy_risk,
    neutral_policy_risk,
)
from database.store import SnapshotStore
from scoring_engine.composite_score import Prediction, ScoringEngine
from scoring_engine.performance import historical_accuracy, prediction_stats


AdoptionRecorder = Callable[[], Awaitable[Any]]

# Upper bound on events read for one policy-risk aggregate
POLICY_EVENT_LIMIT = 500
# Upper bound on snapshots read for one accuracy report
ACCURACY_SNAPSHOT_LIMIT = 10000
PREDICTION_STATS_DAYS = 30


class IngestionOrchestrator:
    """
    Coordinates collectors, scoring and persistence for one run.

    ============================================================
    USAGE
    ============================================================
    ```python
    orchestrator = IngestionOrchestrator(assembler, store)
    result = await orchestrator.run_full_ingestion(
        IngestionOptions(type=RunType.FULL, coins=("bitcoin",))
    )
    ```

    ============================================================
    """

    def __init__(
        self,
        assembler: SnapshotAssembler,
        store: SnapshotStore,
        scoring_engine: Optional[ScoringEngine] = None,
        sentiment_source: Optional[SentimentSource] = None,
        news_scanner: Optional[NewsPolicyScanner] = None,
        adoption_recorder: Optional[AdoptionRecorder] = None,
        backfill_job: Optional[BackfillJob] = None,
        config: Optional[IngestionConfig] = None,
        clock: Optional[ClockProtocol] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._assembler = assembler
        self._store = store
        self._scoring = scoring_engine or ScoringEngine()
        self._sentiment_source = sentiment_source
        self._news_scanner = news_scanner
        self._adoption_recorder = adoption_recorder
        self._backfill_job = backfill_job
        self._config = config or IngestionConfig()
        self._clock = clock or SystemClock()
        self._sleep = sleep
        self._logger = logging.getLogger("ingestion_orchestrator")

        self._state = RunState.IDLE

    @property
    def state(self) -> RunState:
        return self._state

    # =========================================================
    # RUNS
    # =========================================================

    async def run_full_ingestion(
        self,
        options: Optional[IngestionOptions] = None,
    ) -> IngestionRunResult:
        """
        Run one ingestion cycle.

        Returns:
            IngestionRunResult; success only when no error was recorded
        """
        options = options or IngestionOptions()
        coins = tuple(options.coins or self._config.coins)
        result = IngestionRunResult(
            run_type=options.type,
            started_at=self._clock.now(),
        )

        self._logger.info(
            f"Starting {options.type.value} ingestion for {len(coins)} coin(s)"
        )

        try:
            if options.type.runs_auxiliary:
                self._set_state(result, RunState.COLLECTING_AUXILIARY)
                await self._run_auxiliary(result)

            if options.type.runs_assets:
                self._set_state(result, RunState.PER_ASSET_LOOP)
                await self._run_assets(coins, options, result)

                self._set_state(result, RunState.PERSISTING)
                if options.store_training_data:
                    self._store_training_records(coins, result)

        except Exception as e:
            self._logger.exception("Ingestion run aborted")
            result.add_error("run", str(e))

        result.mark_complete(self._clock.now())
        self._state = result.state

        self._logger.info(
            f"Ingestion complete in {result.duration_ms}ms. "
            f"Snapshots: {result.snapshots_created}, Errors: {len(result.errors)}"
        )
        return result

    async def run_scheduled_ingestion(self) -> IngestionRunResult:
        """Scheduled cycle: full run that also stores training records."""
        return await self.run_full_ingestion(
            IngestionOptions(type=RunType.FULL, store_training_data=True)
        )

    async def create_snapshot(self, asset_id: str, skip_prediction: bool = False) -> Snapshot:
        """
        Assemble, score and persist one snapshot.

        Raises:
            MandatorySignalMissingError: market data unavailable
            PersistenceError: store write failed
        """
        snapshot = await self._assembler.assemble(asset_id)

        if not skip_prediction:
            prediction = self._scoring.score(snapshot)
            snapshot = _with_prediction(snapshot, prediction)

        snapshot_id = self._store.save_snapshot(snapshot)
        return snapshot.with_id(snapshot_id)

    # =========================================================
    # AUXILIARY STEPS
    # =========================================================

    def _auxiliary_steps(self) -> List[Tuple[str, Callable[[], Awaitable[Any]]]]:
        steps: List[Tuple[str, Callable[[], Awaitable[Any]]]] = []
        if self._sentiment_source is not None:
            steps.append(("sentiment_aggregation", self._sentiment_source.aggregate))
        if self._news_scanner is not None:
            steps.append(("news_scan", self._news_scanner.scan))
        if self._adoption_recorder is not None:
            steps.append(("adoption", self._adoption_recorder))
        return steps

    async def _run_auxiliary(self, result: IngestionRunResult) -> None:
        for name, step in self._auxiliary_steps():
            try:
                outcome = await step()
                result.details[name] = True
                self._logger.info(f"Auxiliary step {name} complete: {outcome}")
            except Exception as e:
                result.details[name] = False
                self._logger.warning(f"Auxiliary step {name} failed: {e}")
                result.add_error(name, str(e))

    # =========================================================
    # PER-ASSET LOOP
    # =========================================================

    async def _run_assets(
        self,
        coins: Sequence[str],
        options: IngestionOptions,
        result: IngestionRunResult,
    ) -> None:
        for domain in self._assembler.domains:
            result.details.setdefault(domain, False)

        for index, asset_id in enumerate(coins):
            if index > 0 and self._config.inter_asset_delay_seconds > 0:
                await self._sleep(self._config.inter_asset_delay_seconds)

            try:
                snapshot = await self.create_snapshot(asset_id, options.skip_prediction)

            except SignalPipelineError as e:
                self._logger.log(e.log_level, f"Snapshot failed for {asset_id}: {e}", extra={"context": e.context})
                result.add_error(asset_id, str(e))
                continue

            except Exception as e:
                self._logger.exception(f"Unexpected error for {asset_id}")
                result.add_error(asset_id, f"Unexpected error: {e}")
                continue

            result.snapshots_created += 1
            for domain in self._assembler.domains:
                if domain not in snapshot.collector_errors:
                    result.details[domain] = True

            self._logger.info(
                f"Snapshot {snapshot.id} for {asset_id}: "
                f"{snapshot.prediction.value if snapshot.prediction else 'unscored'}"
            )

    def _store_training_records(
        self,
        coins: Sequence[str],
        result: IngestionRunResult,
    ) -> None:
        stored = 0
        for asset_id in coins:
            try:
                latest = self._store.get_snapshot(asset_id)
                if latest is None:
                    continue
                self._store.save_training_record(TrainingRecord.from_snapshot(latest))
                stored += 1
            except (SignalPipelineError, ValueError) as e:
                self._logger.warning(f"Training record failed for {asset_id}: {e}")
                result.add_error(asset_id, f"Training data storage: {e}")

        result.details["training_data"] = stored > 0
        self._logger.info(f"Training records stored: {stored}")

    # =========================================================
    # BACKFILL & POLICY RISK
    # =========================================================

    async def backfill_realized_outcomes(self) -> BackfillResult:
        """Attach realized outcomes to snapshots whose horizon has passed."""
        if self._backfill_job is None:
            result = BackfillResult()
            result.add_error("No backfill job configured")
            return result
        return await self._backfill_job.run()

    def policy_risk(self, region: Region) -> PolicyRiskScore:
        """Policy risk aggregate over the region's trailing 30 days of events."""
        since = self._clock.ago(days=POLICY_WINDOW_DAYS)
        events = self._store.get_recent_news_events(
            since=since,
            region=region,
            limit=POLICY_EVENT_LIMIT,
        )
        return calculate_policy_risk(region, events)

    def all_policy_risks(self) -> Dict[Region, PolicyRiskScore]:
        """
        Policy risk for every region.

        A region whose events cannot be read gets the neutral score
        instead of failing the whole read.
        """
        scores: Dict[Region, PolicyRiskScore] = {}
        for region in Region:
            try:
                scores[region] = self.policy_risk(region)
            except SignalPipelineError as e:
                self._logger.warning(f"Policy risk failed for {region.value}: {e}")
                scores[region] = neutral_policy_risk(region)
        return scores

    # =========================================================
    # PREDICTION PERFORMANCE
    # =========================================================

    def historical_accuracy(
        self,
        asset_id: Optional[str] = None,
        days: Optional[int] = None,
        horizon: OutcomeHorizon = OutcomeHorizon.H24,
    ) -> AccuracyReport:
        """Hit rate of evaluated predictions, optionally per asset and window."""
        since = self._clock.ago(days=days) if days else None
        snapshots = self._store.list_snapshots(
            asset_id=asset_id,
            since=since,
            limit=ACCURACY_SNAPSHOT_LIMIT,
        )
        report = historical_accuracy(snapshots, horizon, asset_id)
        self._logger.info(
            f"Accuracy {horizon.value} for {asset_id or 'all assets'}: "
            f"{report.correct_predictions}/{report.total_predictions}"
        )
        return report

    def prediction_stats(
        self,
        asset_id: str,
        days: int = PREDICTION_STATS_DAYS,
    ) -> PredictionStats:
        """Direction mix and recent trend of one asset's predictions."""
        snapshots = self._store.list_snapshots(
            asset_id=asset_id,
            since=self._clock.ago(days=days),
            limit=ACCURACY_SNAPSHOT_LIMIT,
        )
        return prediction_stats(asset_id, snapshots)

    def _set_state(self, result: IngestionRunResult, state: RunState) -> None:
        self._state = state
        result.state = state
        self._logger.debug(f"Run state -> {state.value}")


def _with_prediction(snapshot: Snapshot, prediction: Prediction) -> Snapshot:
    return replace(
        snapshot,
        prediction=prediction.direction,
        confidence=prediction.confidence,
        risk_level=prediction.risk_level,
        reasons=prediction.reasons,
    )


__all__ = [
    "IngestionOrchestrator",
    "AdoptionRecorder",
]
