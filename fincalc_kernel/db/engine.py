"""
Module: fincalc_kernel.db.engine
Responsibility: Own the process-wide SQLAlchemy engine and session factory
    that the services run on, and the commit/rollback boundary around them.
Architecture position: Kernel > DB.  Imports db/base.py and, lazily, the
    models package so that every table is registered before DDL runs.

Invariants enforced:
    - Services only flush.  session_scope() is the one place that commits,
      and it rolls back on any exception.
    - An in-memory SQLite URL is served by one shared connection, so every
      session opened on it sees the same tables and rows.
    - Server databases (PostgreSQL) are pooled with pre-ping and READ
      COMMITTED; the driver is the deployer's choice.

Failure modes:
    - RuntimeError from any accessor called before init_engine_from_url().
"""

from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fincalc_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Database engine not initialized; call init_engine_from_url() first."


def _engine_options(url: URL, pool_size: int, max_overflow: int) -> dict[str, Any]:
    if url.get_backend_name() != "sqlite":
        return {
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_pre_ping": True,
            "isolation_level": "READ COMMITTED",
        }
    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    return options


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
) -> Engine:
    """
    Create the engine and session factory for ``database_url``.

    Calling it again replaces the previous engine (the old one is not
    disposed; use reset_engine() for that).

    Args:
        database_url: e.g. ``sqlite://`` (in-memory), ``sqlite:///fincalc.db``
            or ``postgresql+psycopg://user@host/fincalc``.
        echo: Log every SQL statement through SQLAlchemy.
        pool_size: Pooled connections for server databases.
        max_overflow: Connections allowed beyond ``pool_size``.
    """
    global _engine, _session_factory

    url = make_url(database_url)
    _engine = create_engine(url, echo=echo, **_engine_options(url, pool_size, max_overflow))
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info("engine_initialized", extra={
        "dialect": url.get_backend_name(),
        "database": url.database or ":memory:",
    })
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Session factory, for callers that open one session per thread."""
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _session_factory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Unit of work: commit on normal exit, roll back and re-raise otherwise.

    Usage:
        with session_scope() as session:
            DepreciationService(session).run("2025-01")
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("unit_of_work_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from fincalc_kernel.db.base import Base
    import fincalc_kernel.models  # noqa: F401  (registers the tables)

    return Base.metadata


def create_tables() -> None:
    """Create every table the models declare (existing tables are kept)."""
    _metadata().create_all(get_engine())


def drop_tables() -> None:
    """Drop every table the models declare. Tests and local resets only."""
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
