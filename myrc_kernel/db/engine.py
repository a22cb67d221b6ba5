"""
Module: myrc_kernel.db.engine
Responsibility: The process-wide SQLAlchemy engine and session factory, and
    the commit-or-rollback transaction scope used outside the HTTP layer.
Architecture position: Kernel > DB.  ``create_tables`` is the one place the
    kernel reaches outward: it imports the module ORM registry so that every
    module table is registered on ``Base.metadata`` before DDL runs.

Backends:
    - PostgreSQL: QueuePool, READ COMMITTED, pre-ping.
    - SQLite (tests, local runs): foreign keys switched on per connection so
      fiscal-year cascades behave as on PostgreSQL; the in-memory database
      lives on one shared connection (StaticPool).

Failure modes:
    - RuntimeError from any accessor called before ``init_engine_from_url``.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from myrc_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _sqlite_options(database_url: str) -> dict[str, Any]:
    # The API serves requests from a thread pool.
    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if database_url in _IN_MEMORY_URLS:
        options["poolclass"] = StaticPool
    return options


def _postgres_options(pool_size: int, max_overflow: int) -> dict[str, Any]:
    return {
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 1800,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
) -> Engine:
    """
    Create the engine and session factory, replacing any previous ones.

    Sessions are created with ``expire_on_commit=False`` so DTOs built from
    ORM rows stay readable after the request transaction commits.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        _engine = create_engine(database_url, echo=echo, **_sqlite_options(database_url))
        event.listen(_engine, "connect", _enable_sqlite_foreign_keys)
    else:
        _engine = create_engine(
            database_url, echo=echo, **_postgres_options(pool_size, max_overflow)
        )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": url.get_backend_name(),
            "database_url": url.render_as_string(hide_password=True),
        },
    )
    return _engine


def _factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """The factory the API and the audit trail open their sessions from."""
    return _factory()


def get_session() -> Session:
    return _factory()()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    One transaction for scripts and maintenance tasks.

    Commits on normal exit; on any exception rolls back, logs
    ``transaction_rolled_back`` and re-raises.

    Usage:
        with session_scope() as session:
            UserService(session).unlock(user_id)
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
    """Create every kernel and module table that does not exist yet."""
    from myrc_kernel.db.base import Base
    from myrc_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def reset_engine() -> None:
    """Dispose the engine and forget the session factory (test teardown)."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
