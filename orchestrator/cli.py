"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line trigger surface for the ingestion pipeline.

- run:             one ingestion run
- backfill:        attach realized outcomes to old snapshots
- policy-risk:     print the policy-risk aggregate for a region (or all)
- accuracy:        print prediction accuracy (and stats for one coin)
- import-wallets:  store tracked-wallet transactions from a JSON file

Configuration comes from CLI flags and environment
(.env is loaded by python-dotenv).

============================================================
USAGE
============================================================
python -m orchestrator.cli run --type full --coins bitcoin,ethereum
python -m orchestrator.cli run --type market_only --skip-prediction
python -m orchestrator.cli backfill
python -m orchestrator.cli policy-risk --region europe
python -m orchestrator.cli policy-risk --all
python -m orchestrator.cli accuracy --coin bitcoin --days 30 --horizon 7d
python -m orchestrator.cli import-wallets wallets.json

============================================================
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from core.exceptions import SignalPipelineError
from data_ingestion.assembler import SnapshotAssembler
from data_ingestion.backfill import BackfillJob
from data_ingestion.collectors import (
    CryptoPanicSentimentSource,
    DerivativesCollector,
    MacroCollector,
    MarketCollector,
    NewsCollector,
    NewsPolicyScanner,
    OnChainCollector,
    SentimentCollector,
    StoredWalletFlowSource,
    TechnicalCollector,
)
from data_ingestion.ingestion_service import PREDICTION_STATS_DAYS, IngestionOrchestrator
from data_ingestion.types import (
    BackfillConfig,
    CollectorConfig,
    IngestionConfig,
    IngestionOptions,
    OutcomeHorizon,
    RunType,
    WalletTransaction,
)
from data_processing.labeling.news_classifier import Region
from data_processing.sentiment import LexiconSentimentAnalyzer
from data_sources.rate_limiter import HostRateLimiter
from data_sources.transport import AiohttpTransport
from database.engine import create_all_tables, create_database_engine, create_session_factory
from database.persistence import SqlAlchemySnapshotStore
from database.store import InMemorySnapshotStore, SnapshotStore


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Parser for the run, backfill, policy-risk, accuracy and import-wallets subcommands."""
    parser = argparse.ArgumentParser(
        prog="signal-ingestion",
        description="Multi-source crypto signal ingestion and scoring",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Run Types:
  full            - Auxiliary aggregation + all assets
  incremental     - Same steps as full
  market_only     - Assets only, no auxiliary aggregation
  sentiment_only  - Auxiliary aggregation only

Examples:
  %(prog)s run --type full --coins bitcoin,ethereum
  %(prog)s run --store-training-data
  %(prog)s backfill
  %(prog)s policy-risk --region europe
  %(prog)s policy-risk --all
  %(prog)s accuracy --coin bitcoin --days 30
  %(prog)s import-wallets wallets.json
        """
    )

    # --------------------------------------------------------
    # Global Options
    # --------------------------------------------------------
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )

    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        metavar="URL",
        help="SQLAlchemy database URL (default: DATABASE_URL)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Use an in-memory store; nothing is persisted",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # --------------------------------------------------------
    # run
    # --------------------------------------------------------
    run_parser = subparsers.add_parser("run", help="Run one ingestion cycle")
    run_parser.add_argument(
        "--type", "-t",
        type=str,
        choices=[t.value for t in RunType],
        default=RunType.FULL.value,
        help="Run type (default: full)",
    )
    run_parser.add_argument(
        "--coins",
        type=str,
        default=None,
        metavar="ID[,ID...]",
        help="Comma-separated CoinGecko ids (default: INGESTION_COINS or built-in list)",
    )
    run_parser.add_argument(
        "--skip-prediction",
        action="store_true",
        help="Store snapshots without scoring them",
    )
    run_parser.add_argument(
        "--store-training-data",
        action="store_true",
        help="Store a training record for each asset's latest snapshot",
    )

    # --------------------------------------------------------
    # backfill
    # --------------------------------------------------------
    backfill_parser = subparsers.add_parser(
        "backfill",
        help="Attach realized outcomes to snapshots whose horizon has passed",
    )
    backfill_parser.add_argument(
        "--neutral-band",
        type=float,
        default=BackfillConfig.neutral_band_percent,
        metavar="PERCENT",
        help="Max |move| counted as a correct NEUTRAL call (default: 2.0)",
    )

    # --------------------------------------------------------
    # policy-risk
    # --------------------------------------------------------
    policy_parser = subparsers.add_parser(
        "policy-risk",
        help="Print the policy-risk aggregate for a region",
    )
    policy_parser.add_argument(
        "--region", "-r",
        type=str,
        choices=[r.value for r in Region],
        default=Region.GLOBAL.value,
        help="Region (default: global)",
    )
    policy_parser.add_argument(
        "--all",
        action="store_true",
        dest="all_regions",
        help="Print every region; --region is ignored",
    )

    # --------------------------------------------------------
    # accuracy
    # --------------------------------------------------------
    accuracy_parser = subparsers.add_parser(
        "accuracy",
        help="Print the accuracy of evaluated predictions",
    )
    accuracy_parser.add_argument(
        "--coin",
        type=str,
        default=None,
        metavar="ID",
        help="Restrict to one CoinGecko id; also prints its prediction stats",
    )
    accuracy_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Only snapshots of the last N days (default: all; stats use 30)",
    )
    accuracy_parser.add_argument(
        "--horizon",
        type=str,
        choices=[h.value for h in OutcomeHorizon],
        default=OutcomeHorizon.H24.value,
        help="Outcome horizon (default: 24h)",
    )

    # --------------------------------------------------------
    # import-wallets
    # --------------------------------------------------------
    wallets_parser = subparsers.add_parser(
        "import-wallets",
        help="Store tracked-wallet transactions from a JSON file",
    )
    wallets_parser.add_argument(
        "path",
        type=Path,
        metavar="PATH",
        help="JSON list of transactions (timestamp, wallet_address, symbol, "
             "direction, amount_usd, tx_hash, impact_score)",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def parse_coins(value: Optional[str]) -> Optional[tuple]:
    if not value:
        return None
    coins = tuple(c.strip() for c in value.split(",") if c.strip())
    return coins or None


def validate_args(args: argparse.Namespace) -> List[str]:
    """Checks argparse cannot express; an empty list means the args are usable."""
    errors = []

    if args.command == "run" and args.coins is not None and not parse_coins(args.coins):
        errors.append("--coins must name at least one coin")

    if args.command == "backfill" and args.neutral_band < 0:
        errors.append("--neutral-band must not be negative")

    if args.command == "accuracy" and args.days is not None and args.days < 1:
        errors.append("--days must be at least 1")

    return errors


# ============================================================
# PIPELINE WIRING
# ============================================================

@dataclass
class Pipeline:
    """Everything one CLI invocation needs."""
    transport: AiohttpTransport
    limiter: HostRateLimiter
    store: SnapshotStore
    assembler: SnapshotAssembler
    orchestrator: IngestionOrchestrator


def build_store(args: argparse.Namespace) -> SnapshotStore:
    if args.dry_run:
        logging.getLogger(__name__).info("Dry run: using in-memory store")
        return InMemorySnapshotStore()

    engine = create_database_engine(args.database_url)
    create_all_tables(engine)
    return SqlAlchemySnapshotStore(create_session_factory(engine))


def build_pipeline(
    args: argparse.Namespace,
    collector_config: CollectorConfig,
    ingestion_config: IngestionConfig,
    backfill_config: BackfillConfig,
) -> Pipeline:
    """Wire transport, limiter, collectors, store and orchestrator."""
    transport = AiohttpTransport(timeout=collector_config.http_timeout_seconds)
    limiter = HostRateLimiter(transport)
    store = build_store(args)

    analyzer = LexiconSentimentAnalyzer()
    sentiment_source = CryptoPanicSentimentSource(limiter, collector_config, analyzer)

    market = MarketCollector(collector_config, limiter)
    assembler = SnapshotAssembler(
        market,
        [
            TechnicalCollector(collector_config, limiter),
            SentimentCollector(collector_config, limiter, sentiment_source),
            NewsCollector(collector_config, store),
            OnChainCollector(
                collector_config,
                StoredWalletFlowSource(
                    store,
                    min_impact_score=collector_config.whale_min_impact_score,
                ),
            ),
            MacroCollector(collector_config, limiter),
            DerivativesCollector(collector_config, limiter),
        ],
    )

    orchestrator = IngestionOrchestrator(
        assembler,
        store,
        sentiment_source=sentiment_source,
        news_scanner=NewsPolicyScanner(limiter, collector_config, store, analyzer),
        backfill_job=BackfillJob(store, market, backfill_config),
        config=ingestion_config,
    )

    return Pipeline(
        transport=transport,
        limiter=limiter,
        store=store,
        assembler=assembler,
        orchestrator=orchestrator,
    )


# ============================================================
# ENTRY POINTS
# ============================================================

async def async_main(args: argparse.Namespace) -> int:
    """Execute the chosen subcommand against a freshly wired pipeline; returns the exit code."""
    collector_config = CollectorConfig.from_env()
    ingestion_config = IngestionConfig.from_env()
    backfill_config = BackfillConfig(
        neutral_band_percent=getattr(args, "neutral_band", BackfillConfig.neutral_band_percent),
    )

    errors = collector_config.validate() + ingestion_config.validate() + backfill_config.validate()
    if errors:
        for error in errors:
            print(f"Configuration error: {error}", file=sys.stderr)
        return 1

    try:
        pipeline = build_pipeline(args, collector_config, ingestion_config, backfill_config)
    except SignalPipelineError as e:
        logging.error(f"Startup failed: {e}")
        return 1

    try:
        async with pipeline.transport:
            try:
                return await run_command(args, pipeline)
            finally:
                # Let queued requests settle before the session closes
                await pipeline.limiter.wait_idle()

    except KeyboardInterrupt:
        logging.info("Ingestion interrupted")
        return 130
    except Exception as e:
        logging.error(f"{args.command} failed: {e}", exc_info=True)
        return 1


async def run_command(args: argparse.Namespace, pipeline: Pipeline) -> int:
    """Dispatch one subcommand; returns the exit code."""
    if args.command == "run":
        result = await pipeline.orchestrator.run_full_ingestion(
            IngestionOptions(
                type=RunType(args.type),
                coins=parse_coins(args.coins),
                skip_prediction=args.skip_prediction,
                store_training_data=args.store_training_data,
            )
        )
        _print_json(result.to_dict())
        logging.info(f"Rate limiter: {pipeline.limiter.stats()}")
        return 0 if result.success else 1

    if args.command == "backfill":
        backfill = await pipeline.orchestrator.backfill_realized_outcomes()
        _print_json(backfill.to_dict())
        return 0 if backfill.error_count == 0 else 1

    if args.command == "policy-risk":
        if args.all_regions:
            scores = pipeline.orchestrator.all_policy_risks()
            _print_json({region.value: score.to_dict() for region, score in scores.items()})
        else:
            score = pipeline.orchestrator.policy_risk(Region(args.region))
            _print_json(score.to_dict())
        return 0

    if args.command == "accuracy":
        report = pipeline.orchestrator.historical_accuracy(
            asset_id=args.coin,
            days=args.days,
            horizon=OutcomeHorizon(args.horizon),
        )
        output: Dict[str, Any] = {"accuracy": report.to_dict()}
        if args.coin:
            stats = pipeline.orchestrator.prediction_stats(args.coin, days=args.days or PREDICTION_STATS_DAYS)
            output["stats"] = stats.to_dict()
        _print_json(output)
        return 0

    if args.command == "import-wallets":
        summary = import_wallet_transactions(pipeline.store, args.path)
        _print_json(summary)
        return 0 if summary["invalid"] == 0 else 1

    return 1


def import_wallet_transactions(store: SnapshotStore, path: Path) -> Dict[str, int]:
    """
    Store the transactions of a JSON file.

    Malformed entries are logged and counted; known tx hashes
    are skipped.

    Raises:
        OSError / ValueError: file unreadable or not a JSON list
    """
    logger = logging.getLogger(__name__)
    entries = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(entries, list):
        raise ValueError(f"{path} must hold a JSON list of transactions")

    summary = {"read": len(entries), "stored": 0, "duplicates": 0, "invalid": 0}
    for index, entry in enumerate(entries):
        try:
            transaction = WalletTransaction.from_dict(entry)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping wallet transaction #{index}: {e}")
            summary["invalid"] += 1
            continue

        if store.save_wallet_transaction(transaction) is None:
            summary["duplicates"] += 1
        else:
            summary["stored"] += 1

    logger.info(
        f"Imported wallet transactions from {path}: "
        f"stored={summary['stored']}, duplicates={summary['duplicates']}, "
        f"invalid={summary['invalid']}"
    )
    return summary


def _print_json(data: dict) -> None:
    print(json.dumps(data, indent=2, default=str))


def configure_logging(level: Optional[str]) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or os.getenv("LOG_LEVEL", "INFO")).upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Console script entry.

    Exit codes: 0 on success, 1 on bad arguments, configuration
    or a failed run, 130 when interrupted.
    """
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Invalid arguments: {error}", file=sys.stderr)
        return 1

    configure_logging(args.log_level)

    return asyncio.run(async_main(args))


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
