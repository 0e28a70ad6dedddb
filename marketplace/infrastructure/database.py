"""Database configuration and session management.

Provides async SQLAlchemy engine and session factory.
"""

from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from marketplace.infrastructure.config import settings

# Base class for models
Base = declarative_base()


def build_engine(database_url: str, **kwargs: Any) -> AsyncEngine:
    """Create an async engine configured for serializable units of work.

    SQLite gets foreign keys switched on and every transaction opened with
    BEGIN IMMEDIATE, so writers queue on the database lock instead of
    failing on a read-to-write upgrade.

    Args:
        database_url: SQLAlchemy database URL.
        **kwargs: Extra keyword arguments for create_async_engine.

    Returns:
        Configured AsyncEngine.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        kwargs.setdefault("connect_args", {"timeout": settings.sqlite_busy_timeout_s})
        engine = create_async_engine(url, echo=settings.debug, **kwargs)

        @event.listens_for(engine.sync_engine, "connect")
        def _on_connect(dbapi_connection, connection_record) -> None:
            # Hand transaction control to the "begin" hook below.
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _on_begin(conn) -> None:
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    return create_async_engine(
        url,
        echo=settings.debug,
        pool_pre_ping=True,
        isolation_level=settings.transaction_isolation,
        **kwargs,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Create async engine
engine = build_engine(settings.database_url)

# Session factory
async_session_factory = build_session_factory(engine)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the application session factory.

    Returns:
        Session factory used by application services.
    """
    return async_session_factory


async def init_models(target: AsyncEngine | None = None) -> None:
    """Create all tables registered on the declarative base.

    Args:
        target: Engine to create tables on, defaults to the application engine.
    """
    # Make sure every model is registered on Base.metadata
    from marketplace.infrastructure import models  # noqa: F401

    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
