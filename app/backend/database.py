"""
Database configuration and session management.

This module sets up the SQLAlchemy engine and session factory. SQLite is the
default store; any SQLAlchemy URL (e.g. PostgreSQL) can be set via DATABASE_URL.
"""

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine, event, make_url
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import get_settings

settings = get_settings()

DATABASE_URL = settings.database_url


def build_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine with options suited to the backend.

    - SQLite: allow use across request threads and use WAL journaling for file
      databases. Transactions begin DEFERRED so reads take no write lock;
      writers opt into BEGIN IMMEDIATE through `begin_write`
    - Others: pool_pre_ping plus a small connection pool
    """
    kwargs: dict[str, Any] = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=10)
    engine = create_engine(url, **kwargs)

    if url.startswith("sqlite"):
        file_backed = make_url(url).database not in (None, "", ":memory:")

        @event.listens_for(engine, "connect")
        def _configure_connection(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            if file_backed:
                dbapi_connection.execute("PRAGMA journal_mode=WAL")

        @event.listens_for(engine, "begin")
        def _begin(conn):
            mode = conn.get_execution_options().get("sqlite_begin", "DEFERRED")
            conn.exec_driver_sql(f"BEGIN {mode}")

    return engine


def begin_write(db: Session) -> None:
    """
    Start a write transaction on the session.

    Any open read transaction is ended first. On SQLite the new transaction
    takes the database write lock up front, so concurrent writers queue on
    the busy timeout instead of failing to upgrade a read snapshot. Other
    backends ignore the option.
    """
    if db.in_transaction():
        db.commit()
    db.connection(execution_options={"sqlite_begin": "IMMEDIATE"})


engine = build_engine(DATABASE_URL, echo=settings.sql_debug)

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Base class for declarative models
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session.

    Usage in FastAPI:
        @app.get("/items")
        def get_items(db: Session = Depends(get_db)):
            ...

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """
    Initialize the database by creating all tables.

    Note: In production, use Alembic migrations instead.
    """
    # Import models to ensure they are registered with Base
    from . import models_db  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
