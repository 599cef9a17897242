"""
Module: church_kernel.db.engine
Responsibility: engine construction, the process-wide session factory and
    the transactional scope every registry call runs in.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from services/, domain/, or outer layers (create_tables imports
    models lazily so their tables are registered on Base.metadata).

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED.  Correctness comes from explicit
      row locks on sequence counters and the compare-and-swap
      ``UPDATE churches ... WHERE version = :expected``, not from the
      isolation level.
    - SQLite opens every transaction with ``BEGIN IMMEDIATE`` so
      concurrent writers queue on the database lock instead of failing on
      a read-to-write lock upgrade.
    - session_scope() commits on success and rolls back on any exception.

Failure modes:
    - RuntimeError if the module-level engine is used before
      init_engine_from_url().
    - PersistenceError (retryable) when the driver reports an operational
      failure (timeout, lock wait exceeded, dropped connection).
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from church_kernel.exceptions import PersistenceError
from church_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_IN_MEMORY_SQLITE = ("sqlite://", "sqlite:///:memory:")

_engine: Engine | None = None
_factory: sessionmaker[Session] | None = None


def _sqlite_engine(database_url: str, echo: bool, busy_timeout: float) -> Engine:
    engine = create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": busy_timeout},
        # In-memory databases live inside one connection; share it.
        poolclass=StaticPool if database_url in _IN_MEMORY_SQLITE else QueuePool,
    )

    @event.listens_for(engine, "connect")
    def _autocommit_driver(dbapi_connection, connection_record):
        # Stop pysqlite from issuing its own deferred BEGIN.
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_busy_timeout: float = 30.0,
) -> Engine:
    """Build an engine for ``database_url`` without registering it."""
    if database_url.startswith("sqlite"):
        return _sqlite_engine(database_url, echo, sqlite_busy_timeout)

    return create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(database_url: str, echo: bool = False, **pool_options) -> Engine:
    """
    Build the process-wide engine and session factory.

    A second call disposes the previous engine and replaces it.
    ``pool_options`` are passed to build_engine().
    """
    global _engine, _factory

    if _engine is not None:
        _engine.dispose()

    _engine = build_engine(database_url, echo=echo, **pool_options)
    _factory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo, **pool_options},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """The process-wide factory; open one session per thread or request."""
    if _factory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _factory


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    One transaction: commit on normal exit, roll back on any exception.

    Operational driver errors are re-raised as PersistenceError; every
    other exception propagates unchanged after the rollback.

    Usage:
        with session_scope(factory) as session:
            SqlChurchRepository(session).get("baclayon")
    """
    session = (factory or get_session_factory())()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except OperationalError as exc:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise PersistenceError("transaction", str(exc.orig)) from exc
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """Create every registry table and register the immutability listeners."""
    from church_kernel.db.base import Base
    from church_kernel.db.immutability import register_immutability_listeners
    import church_kernel.models  # noqa: F401

    Base.metadata.create_all(engine or get_engine())
    register_immutability_listeners()


def drop_tables(engine: Engine | None = None) -> None:
    """Drop every registry table (init_db --reset and the test suite)."""
    from church_kernel.db.base import Base
    import church_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine or get_engine())


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
