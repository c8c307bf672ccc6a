"""
Process-wide engine and session handling.

``init_engine_from_url`` is called once by the CLI and seed script;
services receive the resulting sessions and never open their own.
``session_scope`` is the commit boundary: everything done inside it is
committed together or rolled back together.

SQLite is used for tests and a single treasurer's laptop, PostgreSQL for a
shared deployment.  SQLite connections get foreign keys switched on and an
explicit BEGIN so that SAVEPOINTs (every ledger write, every batch run)
nest properly.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from chama_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None


def install_sqlite_pragmas(engine: Engine) -> Engine:
    """Foreign keys on; pysqlite's deferred BEGIN replaced with our own."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def init_engine_from_url(database_url: str, echo: bool = False, pool_size: int = 5) -> Engine:
    """
    Create the process engine, replacing any earlier one.

    Args:
        database_url: e.g. ``sqlite:///chama.db`` or
            ``postgresql://treasurer@localhost/chama``.
        echo: Log every SQL statement.
        pool_size: Pooled connections, server databases only.
    """
    global _engine, _sessions

    if _engine is not None:
        _engine.dispose()

    if database_url.startswith("sqlite"):
        _engine = install_sqlite_pragmas(create_engine(database_url, echo=echo))
    else:
        _engine = create_engine(
            database_url,
            echo=echo,
            isolation_level="READ COMMITTED",
            pool_size=pool_size,
            pool_pre_ping=True,
        )
    _sessions = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("No database engine; call init_engine_from_url() first")
    return _engine


def get_session() -> Session:
    if _sessions is None:
        raise RuntimeError("No database engine; call init_engine_from_url() first")
    return _sessions()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on normal exit, roll back and re-raise on any exception.

        with session_scope() as session:
            LedgerService(session).record_contribution(...)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every kernel and batch table; importing the models registers the storage listeners."""
    from chama_kernel.db.base import Base
    import chama_kernel.models  # noqa: F401
    import chama_batch.models  # noqa: F401

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables() -> None:
    from chama_kernel.db.base import Base
    import chama_kernel.models  # noqa: F401
    import chama_batch.models  # noqa: F401

    Base.metadata.drop_all(get_engine())
    logger.info("tables_dropped")


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
