"""
Database Package Initialization.

============================================================
SNAPSHOT PERSISTENCE LAYER
============================================================

- SnapshotStore protocol and the in-memory store (store)
- SQLAlchemy engine and transaction scope (engine)
- ORM models (models)
- SQLAlchemy-backed store (persistence)

============================================================
"""

from .engine import (
    Base,
    REQUIRED_TABLES,
    create_all_tables,
    create_database_engine,
    create_session_factory,
    get_database_url,
    get_engine,
    transaction_scope,
    verify_database_connection,
)
from .models import (
    NewsPolicyEvent,
    PredictionSnapshot,
    PredictionTrainingData,
    WalletTransactionRecord,
)
from .persistence import SqlAlchemySnapshotStore
from .store import InMemorySnapshotStore, SnapshotStore


__all__ = [
    # Engine & Session
    "Base",
    "REQUIRED_TABLES",
    "create_all_tables",
    "create_database_engine",
    "create_session_factory",
    "get_database_url",
    "get_engine",
    "transaction_scope",
    "verify_database_connection",
    # Models
    "PredictionSnapshot",
    "PredictionTrainingData",
    "NewsPolicyEvent",
    "WalletTransactionRecord",
    # Stores
    "SnapshotStore",
    "InMemorySnapshotStore",
    "SqlAlchemySnapshotStore",
]
