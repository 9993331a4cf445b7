"""
Database configuration and session management.
Uses async SQLAlchemy for non-blocking database operations.

Logging:
- SQL echo disabled
- slow queries (1s+) logged as warnings
- session errors logged and counted
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict

from fastapi import HTTPException
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from wedding_photos.config import Settings, get_settings
from wedding_photos.utils.prometheus_metrics import db_errors_total

_logger = logging.getLogger("wedding_photos.db")

settings = get_settings()

SLOW_QUERY_THRESHOLD = 1.0


def _engine_options(url: str, config: Settings) -> Dict[str, Any]:
    """SQLite gets no pool (one file, short-lived connections); servers get a sized pool."""
    if url.startswith("sqlite"):
        return {"poolclass": NullPool}
    return {
        "pool_size": config.db_pool_size,
        "max_overflow": config.db_max_overflow,
        "pool_timeout": config.db_pool_timeout,
        "pool_recycle": config.db_pool_recycle,
        "pool_pre_ping": True,
    }


_database_url = settings.database_url.strip()
is_sqlite = _database_url.startswith("sqlite")

engine = create_async_engine(_database_url, echo=False, **_engine_options(_database_url, settings))


if is_sqlite:
    # pysqlite/aiosqlite defer BEGIN in a way that breaks SAVEPOINT;
    # emit BEGIN ourselves so Session.begin_nested() works.
    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN")


@event.listens_for(engine.sync_engine, "before_cursor_execute")
def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    conn.info.setdefault("query_start_time", []).append(time.perf_counter())


@event.listens_for(engine.sync_engine, "after_cursor_execute")
def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    start_times = conn.info.get("query_start_time")
    if not start_times:
        return
    elapsed = time.perf_counter() - start_times.pop()
    if elapsed >= SLOW_QUERY_THRESHOLD:
        _logger.warning(
            "Slow query",
            extra={"event": "db", "ms": round(elapsed * 1000), "query": statement[:100]},
        )


async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def utcnow() -> datetime:
    """Naive UTC timestamp used for all stored datetimes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def init_db() -> None:
    """Create all tables."""
    # Models must be registered on Base.metadata before create_all
    import wedding_photos.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()


@asynccontextmanager
async def _session_scope(label: str) -> AsyncGenerator[AsyncSession, None]:
    """One session: commit when the caller finishes, roll back and re-raise on error."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except HTTPException:
            # 4xx raised by a route: undo its work without counting a DB error
            await session.rollback()
            raise
        except Exception as e:
            db_errors_total.inc()
            _logger.error(
                label,
                extra={
                    "event": "db",
                    "error_type": type(e).__name__,
                    "error": str(e)[:200],
                },
            )
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session dependency.

    Routers still commit explicitly before returning or scheduling background
    work, so the connection is released before the response goes out.

    Usage:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with _session_scope("DB error") as session:
        yield session


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Session outside of a request, used by background mirror sync.

    Usage:
        async with get_db_context() as session:
            result = await session.execute(query)
    """
    async with _session_scope("DB context error") as session:
        yield session
