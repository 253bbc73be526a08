"""
Orchestrator Package - Command-Line Entry Point.

============================================================
PACKAGE OVERVIEW
============================================================
Wires the ingestion pipeline together and exposes it on the
command line:

    python -m orchestrator.cli run --type full
    python -m orchestrator.cli backfill
    python -m orchestrator.cli policy-risk --region europe

The orchestration logic itself lives in
data_ingestion.ingestion_service.

============================================================
"""
