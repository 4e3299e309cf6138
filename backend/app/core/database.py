"""
Database connection and session management.
"""

import logging
from typing import Any, Dict

from fastapi import Depends
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session
from app.core.config import settings

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Build an engine for the given URL.

    PostgreSQL gets a sized connection pool. SQLite is switched to explicit
    BEGIN IMMEDIATE transactions so concurrent writers queue on the database
    lock instead of failing on a lock upgrade, and foreign keys are enforced
    so account and user deletes cascade.
    """
    is_sqlite = database_url.startswith("sqlite")

    kwargs: Dict[str, Any] = {
        "echo": echo,
        "pool_pre_ping": True,  # Verify connections before using
    }
    if is_sqlite:
        kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": settings.SQLITE_BUSY_TIMEOUT,
        }
    else:
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )

    db_engine = create_engine(database_url, **kwargs)

    if is_sqlite:
        @event.listens_for(db_engine, "connect")
        def _sqlite_connect(dbapi_connection, connection_record):
            # Take BEGIN away from pysqlite, it is emitted in _sqlite_begin
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(db_engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return db_engine


def create_session_factory(db_engine: Engine) -> sessionmaker:
    """Session factory bound to an engine. Loaded rows stay readable after commit."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=db_engine,
    )


# Create database engine
engine = create_db_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# Session factory
SessionLocal = create_session_factory(engine)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def get_session_factory() -> sessionmaker:
    """
    Dependency that provides the session factory.
    Ledger writes open their own unit of work from it; tests override it.
    """
    return SessionLocal


def get_db(session_factory: sessionmaker = Depends(get_session_factory)):
    """
    Dependency that provides a database session.
    Usage in FastAPI routes:
        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            ...
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def check_database(db: Session) -> bool:
    """Return True when the database answers a trivial query."""
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False
