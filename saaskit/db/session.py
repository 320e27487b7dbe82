"""
db/session.py
-------------
Async SQLAlchemy engine and session factory.

Design decisions:
  - The engine is a process-wide resource opened by init_engine() (app
    lifespan, scripts, tests) and closed by dispose_engine(). Nothing
    connects at import time.
  - asyncpg pool sized for typical SaaS workloads:
      pool_size=10, max_overflow=20 → max 30 concurrent DB connections.
    SQLite (tests) keeps the driver's default pool.
  - pool_pre_ping=True: validates connections before checkout to handle
    stale connections after DB restarts or idle timeouts.
  - expire_on_commit=False: avoids lazy-load errors after commit in async
    context.
  - One session per request: get_db commits when the handler returns and
    rolls back if it raises, so multi-write operations are atomic.
"""

from typing import AsyncGenerator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from saaskit.core.config import settings

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ── Engine ────────────────────────────────────────────────────────────────────

def init_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create the engine and session factory (idempotent per URL)."""
    global _engine, _session_factory

    url = database_url or settings.DATABASE_URL
    if _engine is not None and _engine.url.render_as_string(hide_password=False) == url:
        return _engine

    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=settings.DEBUG)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = create_async_engine(
            url,
            echo=settings.DEBUG,          # Log SQL in development
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=3600,             # Recycle connections every hour
        )

    _engine = engine
    _session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return engine


def get_engine() -> AsyncEngine:
    if _engine is None:
        return init_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        init_engine()
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


# ── Request-scoped session ───────────────────────────────────────────────────

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields a database session.
    Committed when the request finishes, rolled back on exceptions.

    Usage:
        @router.get("/example")
        async def handler(db: Annotated[AsyncSession, Depends(get_db)]):
            ...
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
