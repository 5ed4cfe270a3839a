"""
Module: portfolio_kernel.db.engine
Responsibility: One process-wide SQLAlchemy engine and session factory for
    the ledger tables (properties, label mappings, ledger entries).
Architecture position: Kernel > DB.  Imports models only inside
    create_tables/drop_tables so that metadata is complete.

Invariants enforced:
    - PostgreSQL runs READ COMMITTED with a bounded pool; owner-level
      serialization comes from the advisory lock in SqlLedgerStore.atomic.
    - SQLite (tests, local runs) shares one connection through StaticPool and
      turns foreign keys on, so parent deletes cascade to children there too.
    - session_scope() commits on success and rolls back on any exception.

Failure modes:
    - RuntimeError from get_engine/get_session before init_engine_from_url().
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from portfolio_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None


def _sqlite_foreign_keys_on(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 5,
    pool_timeout: int = 30,
) -> Engine:
    """
    Create the engine and session factory; a second call replaces the first.

    Args:
        database_url: ``postgresql://...`` in production, ``sqlite://`` in tests.
        echo: Log every SQL statement.
        pool_size, max_overflow, pool_timeout: PostgreSQL pool bounds.
    """
    global _engine, _sessions

    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        event.listen(engine, "connect", _sqlite_foreign_keys_on)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_pre_ping=True,
            isolation_level="READ COMMITTED",
        )

    _engine = engine
    _sessions = sessionmaker(bind=engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": engine.dialect.name})
    return engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """A new session; each thread needs its own."""
    if _sessions is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _sessions()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Unit of work for code that does not go through a LedgerStore.

    Usage:
        with session_scope() as session:
            session.add(PropertyModel(...))
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    from portfolio_kernel.db.base import Base
    import portfolio_kernel.models  # noqa: F401  -- registers tables on Base.metadata

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    from portfolio_kernel.db.base import Base
    import portfolio_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory.  Tests only."""
    global _engine, _sessions
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _sessions = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
