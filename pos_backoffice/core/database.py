"""
Database configuration, session management and transaction scoping
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine
import structlog

from pos_backoffice.core.config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine; SQLite engines serialize writers with BEGIN IMMEDIATE"""
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", settings.SQLITE_BUSY_TIMEOUT)
        engine = create_engine(url, connect_args=connect_args, **kwargs)
        enable_sqlite_write_locks(engine)
        return engine
    return create_engine(url, pool_pre_ping=True, **kwargs)


def enable_sqlite_write_locks(engine: Engine) -> None:
    """
    SQLite has no row locks and ignores FOR UPDATE.

    Taking the database write lock when each transaction begins gives the
    same read-increment-write exclusion the row locks give on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)


def init_db(bind: Engine = engine) -> None:
    """Initialize database tables (development only, production uses Alembic)"""
    import pos_backoffice.models  # noqa: F401  registers table metadata

    SQLModel.metadata.create_all(bind)
    logger.info("Database tables created")


def get_session() -> Iterator[Session]:
    """Dependency to get database session"""
    with Session(engine) as session:
        yield session


@contextmanager
def atomic(session: Session) -> Iterator[Session]:
    """
    Run a block as one transaction.

    Only the outermost block commits; nested blocks join it, so a service
    operation composed of other operations still commits or rolls back as
    a unit. Any exception rolls the whole transaction back.
    """
    depth = session.info.get("atomic_depth", 0)
    session.info["atomic_depth"] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
    except Exception:
        if depth == 0:
            session.rollback()
        raise
    finally:
        session.info["atomic_depth"] = depth
