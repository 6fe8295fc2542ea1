"""
Database engine construction and connection health.
Uses SQLAlchemy; SQLite for development, PostgreSQL for production.
"""

from typing import Callable

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from leadcaller.config import config
from leadcaller.logging_config import get_logger

logger = get_logger(__name__)

# Base class for all models
Base = declarative_base()


def create_db_engine(url: str) -> Engine:
    """Create an engine for `url` with settings suited to its dialect."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}  # SQLite specific
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database.
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)

    # PostgreSQL
    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,  # Connection pool size
        max_overflow=20,  # Max connections above pool_size
        pool_timeout=10,
        echo=config.DEBUG,  # Log SQL queries in debug mode
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def ping(engine: Engine) -> bool:
    """Return True if the database answers a trivial query."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.warning("database_ping_failed", error=str(e))
        return False


def init_db(engine: Engine) -> None:
    """
    Initialize database - create all tables.
    Called once the engine is known to be reachable.
    """
    from leadcaller import db_models  # noqa: F401  registers the tables on Base

    Base.metadata.create_all(bind=engine)


def on_disconnect(engine: Engine, callback: Callable[[], None]) -> None:
    """Invoke `callback` whenever the driver reports a lost connection.

    Failures of the pool's pre-ping are skipped: the pool recycles that
    connection and retries on its own, so the request still succeeds.
    """

    @event.listens_for(engine, "handle_error")
    def _handle_error(context):
        if context.is_disconnect and not getattr(context, "is_pre_ping", False):
            logger.error("database_disconnected", error=str(context.original_exception))
            callback()
