"""
Snapshot Store - SQLAlchemy Engine.

============================================================
ENGINE, SESSIONS AND SCHEMA
============================================================

Owns the connection to the snapshot database:

- Engine construction for PostgreSQL (production) or SQLite
  (local runs, tests)
- Session factory shared by SqlAlchemySnapshotStore
- One transaction per store call, rolled back when it raises
- Schema bootstrap for the snapshot, training, news and wallet tables

Environment:
- DATABASE_URL_SYNC, falling back to DATABASE_URL

============================================================
"""

import os
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from dotenv import load_dotenv

from core.exceptions import ConfigurationError, PersistenceError

load_dotenv()

logger = logging.getLogger(__name__)

# =============================================================
# DECLARATIVE BASE
# =============================================================

Base = declarative_base()

# =============================================================
# ENGINE
# =============================================================

DEFAULT_DATABASE_URL = "sqlite:///signal_ingestion.db"

# Tables the pipeline cannot run without
REQUIRED_TABLES = [
    "prediction_snapshots",
    "prediction_training_data",
    "news_policy_events",
    "wallet_transactions",
]

_engine: Optional[Engine] = None


def get_database_url() -> str:
    """Resolve the snapshot database URL from the environment."""
    url = os.getenv("DATABASE_URL_SYNC") or os.getenv("DATABASE_URL")
    if url and url.startswith("postgresql+asyncpg"):
        # The store is synchronous; drop the async driver
        url = "postgresql" + url[len("postgresql+asyncpg"):]

    if not url:
        logger.warning(f"No database URL configured, snapshots go to {DEFAULT_DATABASE_URL}")
        url = DEFAULT_DATABASE_URL

    return url


def _redact(url: str) -> str:
    # Keep host/db only, never credentials
    return url.rsplit("@", 1)[-1]


def create_database_engine(
    database_url: Optional[str] = None,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> Engine:
    """
    Build the engine backing the snapshot store.

    Pooling arguments are ignored for SQLite.

    Args:
        database_url: URL to connect to; get_database_url() when omitted
        pool_size: Idle connections held open
        max_overflow: Extra connections allowed under burst load
        pool_timeout: Seconds a checkout may block
        pool_recycle: Age in seconds after which a connection is replaced
        echo: Emit SQL to the log

    Raises:
        ConfigurationError: the URL is malformed or names an unknown dialect
    """
    url = database_url or get_database_url()
    logger.info(f"Opening snapshot database at {_redact(url)}")

    options = {"echo": echo, "future": True}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
        )

    try:
        engine = create_engine(url, **options)
    except (SQLAlchemyError, ValueError) as e:
        raise ConfigurationError(
            f"Unusable database URL: {e}",
            config_key="DATABASE_URL",
            cause=e,
        ) from e

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        logger.debug(f"New connection to {_redact(url)}")

    return engine


def get_engine() -> Engine:
    """Lazily built module-level engine."""
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def create_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    # expire_on_commit=False: rows are converted to dataclasses after commit
    return sessionmaker(
        bind=engine or get_engine(),
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


# =============================================================
# TRANSACTIONS
# =============================================================


@contextmanager
def transaction_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Run one store operation inside a single transaction.

        with transaction_scope(factory) as session:
            session.add(row)

    The session commits when the block exits cleanly. Any error
    rolls it back; SQLAlchemy errors are re-raised as
    PersistenceError, everything else unchanged.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Snapshot store write rolled back: {e}")
        raise PersistenceError(f"Store transaction failed: {e}", cause=e) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================
# BOOTSTRAP
# =============================================================


def verify_database_connection(engine: Optional[Engine] = None) -> bool:
    """Round-trip a trivial query; PersistenceError when unreachable."""
    engine = engine or get_engine()

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
    except OperationalError as e:
        logger.error(f"Snapshot database unreachable: {e}")
        raise PersistenceError(f"Cannot reach snapshot database: {e}", cause=e) from e

    logger.info("Snapshot database reachable")
    return True


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """
    Create any missing snapshot store tables.

    Existing tables are left untouched.
    """
    from . import models  # noqa: F401  registers the mapped classes

    engine = engine or get_engine()

    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as e:
        logger.error(f"Schema bootstrap failed: {e}")
        raise PersistenceError(f"Could not create snapshot tables: {e}", cause=e) from e

    logger.info(f"Snapshot tables ready: {', '.join(REQUIRED_TABLES)}")


__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "REQUIRED_TABLES",
    "get_database_url",
    "create_database_engine",
    "get_engine",
    "create_session_factory",
    "transaction_scope",
    "verify_database_connection",
    "create_all_tables",
]
