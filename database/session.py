"""
Async database session management — PostgreSQL, SQLite.

The processor reads the same connection string as the web application's
Prisma client, so Prisma-style URLs are translated for the async drivers:

  postgresql://u:p@host/db?pgbouncer=true&sslmode=require
      → postgresql+asyncpg://u:p@host/db
        connect_args: ssl="require", statement_cache_size=0
  sqlite:///./dev.db   → sqlite+aiosqlite:///./dev.db
  file:./dev.db        → sqlite+aiosqlite:///./dev.db

Usage:
    await init_db()                    # Create tables (migrations / tests)
    await ensure_claim_column()        # Upgrade the web application's queue table
    async with get_session() as db:    # Transactional scope
        result = await db.execute(...)
    await close_db()                   # Call before the process exits
"""
from __future__ import annotations

import structlog
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import inspect, text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker,
)

from config.settings import get_settings, require_database_url
from database.models import Base, NotificationQueueRow

logger = structlog.get_logger()

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None

_ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}

# Prisma connection-string options asyncpg rejects as unknown server settings
_PRISMA_PARAMS = (
    "pgbouncer", "connection_limit", "pool_timeout", "connect_timeout",
    "socket_timeout", "schema", "sslmode",
)


def _parse(db_url: str) -> URL:
    if db_url.startswith("file:"):
        db_url = "sqlite:///" + db_url[len("file:"):]
    return make_url(db_url)


def _query_value(url: URL, key: str) -> str | None:
    value = url.query.get(key)
    if isinstance(value, tuple):
        value = value[-1] if value else None
    return value


def _to_async_url(db_url: str) -> str:
    """Convert a sync (or Prisma) database URL to its async driver equivalent."""
    url = _parse(db_url)
    url = url.set(drivername=_ASYNC_DRIVERS.get(url.drivername, url.drivername))
    if url.get_backend_name() == "postgresql":
        url = url.difference_update_query(_PRISMA_PARAMS)
    return url.render_as_string(hide_password=False)


def _engine_kwargs(db_url: str) -> dict[str, Any]:
    """Engine configuration derived from the untranslated connection string."""
    url = _parse(db_url)
    kwargs: dict[str, Any] = {"echo": get_settings().debug}

    if url.get_backend_name() == "sqlite":
        return kwargs

    connect_args: dict[str, Any] = {}
    if _query_value(url, "pgbouncer") == "true":
        # transaction-mode poolers cannot keep prepared statements
        connect_args["statement_cache_size"] = 0
    sslmode = _query_value(url, "sslmode")
    if sslmode and sslmode != "disable":
        connect_args["ssl"] = sslmode

    # A daily batch job needs a couple of connections, not a pool
    return {
        **kwargs,
        "connect_args": connect_args,
        "pool_size": 2,
        "max_overflow": 2,
        "pool_timeout": 30,
        "pool_pre_ping": True,
    }


def get_engine() -> AsyncEngine:
    """Return the global engine, creating it from the resolved database URL."""
    global _engine
    if _engine is None:
        db_url = require_database_url(get_settings())
        _engine = create_async_engine(_to_async_url(db_url), **_engine_kwargs(db_url))
        logger.info("database_engine_created",
                    dialect=_engine.dialect.name,
                    url=_engine.url.render_as_string(hide_password=True))
    return _engine


def _get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """One short transaction: committed on exit, rolled back on error."""
    async with _get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create the notification tables. Used by scripts/migrate_db.py and the test suite."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_initialized", tables=sorted(Base.metadata.tables))


def _column_names(sync_conn, table_name: str) -> set[str] | None:
    inspector = inspect(sync_conn)
    if not inspector.has_table(table_name):
        return None
    return {column["name"] for column in inspector.get_columns(table_name)}


async def ensure_claim_column() -> bool:
    """
    Add "claimedAt" to a notification_queue table that predates it.

    create_all never alters an existing table, and the queue table is
    created by the web application's migrations. Returns True when the
    column was added.
    """
    table = NotificationQueueRow.__table__
    column = table.c.claimedAt
    async with get_engine().begin() as conn:
        existing = await conn.run_sync(_column_names, table.name)
        if existing is None or column.name in existing:
            return False

        preparer = conn.dialect.identifier_preparer
        add = "ADD COLUMN IF NOT EXISTS" if conn.dialect.name == "postgresql" else "ADD COLUMN"
        await conn.execute(text(
            f"ALTER TABLE {preparer.format_table(table)} "
            f"{add} {preparer.format_column(column)} {column.type.compile(dialect=conn.dialect)}"
        ))
    logger.info("database_column_added", table=table.name, column=column.name)
    return True


async def close_db() -> None:
    """Dispose the engine so the process can exit cleanly."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("database_closed")
