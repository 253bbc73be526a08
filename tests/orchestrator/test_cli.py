"""
Tests for the command-line entry point.

No test here touches the network: only commands backed by the
store alone are executed end to end.
"""

import json
from argparse import Namespace
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from data_ingestion.ingestion_service import IngestionOrchestrator
from data_ingestion.types import BackfillConfig, CollectorConfig, IngestionConfig
from data_processing.labeling.news_classifier import Region
from database.persistence import SqlAlchemySnapshotStore
from database.store import InMemorySnapshotStore
from orchestrator import cli
from orchestrator.cli import (
    build_pipeline,
    build_store,
    create_parser,
    import_wallet_transactions,
    main,
    parse_coins,
    validate_args,
)


class TestParser:
    """Tests for argument parsing and validation."""

    def test_run_arguments(self):
        args = create_parser().parse_args([
            "--dry-run",
            "run",
            "--type", "market_only",
            "--coins", "bitcoin,ethereum",
            "--store-training-data",
        ])

        assert args.command == "run"
        assert args.dry_run is True
        assert args.type == "market_only"
        assert args.skip_prediction is False
        assert args.store_training_data is True
        assert parse_coins(args.coins) == ("bitcoin", "ethereum")

    def test_defaults(self):
        args = create_parser().parse_args(["run"])

        assert args.type == "full"
        assert args.coins is None
        assert args.log_level is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args([])

    def test_unknown_region_rejected(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["policy-risk", "--region", "antarctica"])

    @pytest.mark.parametrize("value,expected", [
        (None, None),
        ("", None),
        (" , ", None),
        (" bitcoin, ,solana ", ("bitcoin", "solana")),
    ])
    def test_parse_coins(self, value, expected):
        assert parse_coins(value) == expected

    def test_validate_args(self):
        parser = create_parser()

        assert validate_args(parser.parse_args(["run"])) == []
        assert validate_args(parser.parse_args(["run", "--coins", ","]))
        assert validate_args(parser.parse_args(["backfill", "--neutral-band", "-1"]))
        assert validate_args(parser.parse_args(["accuracy", "--days", "0"]))
        assert validate_args(parser.parse_args(["accuracy", "--days", "7"])) == []

    def test_accuracy_arguments(self):
        args = create_parser().parse_args(["accuracy", "--coin", "bitcoin", "--horizon", "7d"])

        assert args.coin == "bitcoin"
        assert args.horizon == "7d"
        assert args.days is None

    def test_policy_risk_all_flag(self):
        parser = create_parser()

        assert parser.parse_args(["policy-risk", "--all"]).all_regions is True
        assert parser.parse_args(["policy-risk"]).all_regions is False

    def test_import_wallets_requires_path(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["import-wallets"])


class TestWiring:
    """Tests for store selection and pipeline construction."""

    def test_dry_run_uses_memory_store(self):
        assert isinstance(build_store(Namespace(dry_run=True, database_url=None)), InMemorySnapshotStore)

    def test_database_store(self):
        store = build_store(Namespace(dry_run=False, database_url="sqlite://"))

        assert isinstance(store, SqlAlchemySnapshotStore)

    def test_build_pipeline(self):
        args = Namespace(dry_run=True, database_url=None)

        pipeline = build_pipeline(args, CollectorConfig(), IngestionConfig(), BackfillConfig())

        assert isinstance(pipeline.orchestrator, IngestionOrchestrator)
        assert isinstance(pipeline.store, InMemorySnapshotStore)
        assert "onchain" in pipeline.assembler.domains
        assert pipeline.assembler.domains[0] == "market"


class TestMain:
    """End-to-end CLI runs that need no network."""

    def test_policy_risk(self, capsys):
        exit_code = main(["--dry-run", "policy-risk", "--region", "europe"])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert output["region"] == "europe"
        assert output["overall_risk"] == 0
        assert output["trend"] == "stable"

    def test_backfill_on_empty_store(self, capsys):
        exit_code = main(["--dry-run", "backfill"])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert output["updated_count"] == 0

    def test_invalid_args_exit_code(self, capsys):
        assert main(["run", "--coins", ","]) == 1
        assert "--coins" in capsys.readouterr().err

    def test_policy_risk_all_regions(self, capsys):
        exit_code = main(["--dry-run", "policy-risk", "--all"])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert set(output) == {r.value for r in Region}
        assert output["asia"]["trend"] == "stable"

    def test_accuracy_on_empty_store(self, capsys):
        exit_code = main(["--dry-run", "accuracy", "--coin", "bitcoin", "--days", "30"])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert output["accuracy"]["total_predictions"] == 0
        assert output["accuracy"]["accuracy"] is None
        assert output["stats"]["asset_id"] == "bitcoin"

    def test_accuracy_without_coin_has_no_stats(self, capsys):
        main(["--dry-run", "accuracy"])

        output = json.loads(capsys.readouterr().out)
        assert "stats" not in output
        assert output["accuracy"]["horizon"] == "24h"

    def test_import_wallets_into_database(self, tmp_path, capsys):
        path = tmp_path / "wallets.json"
        path.write_text(json.dumps(WALLET_ENTRIES))
        url = f"sqlite:///{tmp_path / 'signals.db'}"

        exit_code = main(["--database-url", url, "import-wallets", str(path)])

        output = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert output == {"read": 2, "stored": 2, "duplicates": 0, "invalid": 0}

        store = build_store(Namespace(dry_run=False, database_url=url))
        stored = store.get_wallet_transactions("BTC", since=datetime(2024, 1, 1, tzinfo=timezone.utc))
        assert [t.tx_hash for t in stored] == ["0x1", "0x2"]

    def test_limiter_drained_before_exit(self, monkeypatch, capsys):
        built = []
        real_build = cli.build_pipeline

        def build(*args):
            pipeline = real_build(*args)
            pipeline.limiter.wait_idle = AsyncMock()
            built.append(pipeline)
            return pipeline

        monkeypatch.setattr(cli, "build_pipeline", build)

        assert main(["--dry-run", "policy-risk"]) == 0
        built[0].limiter.wait_idle.assert_awaited_once()


WALLET_ENTRIES = [
    {
        "timestamp": "2024-06-01T10:00:00Z",
        "wallet_address": "0xa",
        "symbol": "btc",
        "direction": "buy",
        "amount_usd": 1000.0,
        "tx_hash": "0x1",
        "impact_score": 80,
    },
    {
        "timestamp": "2024-06-01T11:00:00Z",
        "wallet_address": "0xb",
        "symbol": "BTC",
        "direction": "sell",
        "amount_usd": 500.0,
        "tx_hash": "0x2",
        "impact_score": 60,
    },
]


class TestImportWallets:
    """Tests for import_wallet_transactions."""

    def test_duplicates_and_invalid_entries_counted(self, tmp_path):
        store = InMemorySnapshotStore()
        path = tmp_path / "wallets.json"
        path.write_text(json.dumps(WALLET_ENTRIES + [WALLET_ENTRIES[0], {"symbol": "BTC"}]))

        summary = import_wallet_transactions(store, path)

        assert summary == {"read": 4, "stored": 2, "duplicates": 1, "invalid": 1}
        assert len(store.wallet_transactions) == 2

    def test_not_a_list(self, tmp_path):
        path = tmp_path / "wallets.json"
        path.write_text(json.dumps({"tx_hash": "0x1"}))

        with pytest.raises(ValueError):
            import_wallet_transactions(InMemorySnapshotStore(), path)

    def test_invalid_entries_fail_the_command(self, tmp_path, capsys):
        path = tmp_path / "wallets.json"
        path.write_text(json.dumps([{"symbol": "BTC"}]))

        assert main(["--dry-run", "import-wallets", str(path)]) == 1
        assert json.loads(capsys.readouterr().out)["invalid"] == 1
