from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel, Session, create_engine

from .config import settings


def _configure_sqlite(engine: Engine, timeout: float) -> None:
    busy_timeout_ms = int(timeout * 1000)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself instead of pysqlite's deferred one
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms};")
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        # Units of work take the write lock up front: a deferred transaction
        # that reads and then writes can fail with SQLITE_BUSY_SNAPSHOT.
        # Plain reads stay deferred so WAL readers never block writers.
        if conn.get_execution_options().get("immediate"):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_engine(
    database_url: str,
    *,
    echo: bool = False,
    timeout: Optional[float] = None,
) -> Engine:
    timeout = settings.db_timeout_seconds if timeout is None else timeout
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": timeout},
            poolclass=NullPool,  # avoid multiple pooled connections holding write locks
        )
        _configure_sqlite(engine, timeout)
        return engine

    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_timeout=timeout,
    )


engine = build_engine(settings.database_url, echo=settings.sql_echo)


def get_session():
    # Instances stay readable after commit without reopening a (write-locking) transaction
    with Session(engine, expire_on_commit=False) as session:
        yield session


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    """Commit everything done inside the block, or nothing at all.

    Any exception (including cancellation) rolls the database transaction
    back before it propagates, so no partial effect is ever persisted.
    On SQLite the block runs in a BEGIN IMMEDIATE transaction; a read
    transaction still open on the session is ended first, since it could
    not be upgraded to a writer safely.
    """
    if session.in_transaction():
        session.commit()
    try:
        session.connection(execution_options={"immediate": True})
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise


def init_db(bind: Optional[Engine] = None):
    from .models import account, budget, transaction, user  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
