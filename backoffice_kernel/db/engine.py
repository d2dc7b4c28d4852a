"""
Engine and session plumbing.

Two backends are supported.  On PostgreSQL sessions run at READ COMMITTED
and the stock projector takes a row lock on the item it moves.  SQLite has
no row locks, so every transaction there opens with BEGIN IMMEDIATE and
concurrent writers queue on the database lock for up to the busy timeout.

Application code either builds its own engine (``build_engine``) or sets
up the process-wide one once with ``init_engine_from_url`` and then asks
for sessions.  Threads share the session factory, never a session.

Because SQLite transactions open with BEGIN IMMEDIATE even when they only
read, a session that has run a selector holds the write lock until it is
committed, rolled back or closed.  Close read-only sessions promptly.

``init_engine_from_url`` also switches on the append-only guards from
``db/immutability.py``; an engine from ``build_engine`` leaves that to the
caller.  Only ``create_tables``/``drop_tables`` reach into the model
registry.
"""

import atexit
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from backoffice_kernel.db.immutability import register_immutability_listeners
from backoffice_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")


@dataclass
class _Database:
    engine: Engine
    sessions: sessionmaker[Session]


_current: _Database | None = None


def _require() -> _Database:
    if _current is None:
        raise RuntimeError("database not initialized; call init_engine_from_url() first")
    return _current


def _sqlite_engine(url, echo: bool, busy_timeout: float) -> Engine:
    engine = create_engine(
        url,
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": busy_timeout},
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Hand transaction control to SQLAlchemy so BEGIN IMMEDIATE below is
        # the only BEGIN the driver sees.
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_busy_timeout: float = 30.0,
) -> Engine:
    """
    Create an engine for ``database_url`` without registering it globally.

    Pool settings apply to server databases only; ``sqlite_busy_timeout``
    is how long a SQLite writer waits for the lock before failing with
    "database is locked".
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return _sqlite_engine(url, echo, sqlite_busy_timeout)

    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(database_url: str, echo: bool = False, **kwargs) -> Engine:
    """Build the process-wide engine, replacing any earlier one."""
    global _current

    reset_engine()
    engine = build_engine(database_url, echo=echo, **kwargs)
    _current = _Database(engine, sessionmaker(bind=engine, expire_on_commit=False))
    register_immutability_listeners()

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": engine.dialect.name, "echo": echo})
    return engine


def get_engine() -> Engine:
    return _require().engine


def get_session_factory() -> sessionmaker[Session]:
    return _require().sessions


def get_session() -> Session:
    return _require().sessions()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    One unit of work: commit when the block exits cleanly, roll back and
    re-raise otherwise.  The session is always closed.

        with session_scope() as session:
            InventoryService(session).record_transaction(...)
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


def _metadata():
    from backoffice_kernel.db.base import Base
    from backoffice_kernel.models import import_all_models

    import_all_models()
    return Base.metadata


def create_tables(engine: Engine | None = None) -> None:
    engine = engine or get_engine()
    _metadata().create_all(engine)
    logger.info("tables_created", extra={"dialect": engine.dialect.name})


def drop_tables(engine: Engine | None = None) -> None:
    """Drop every back-office table.  Test and tooling use only."""
    _metadata().drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose the process-wide engine, if any."""
    global _current

    if _current is not None:
        _current.engine.dispose()
        _current = None


atexit.register(reset_engine)
