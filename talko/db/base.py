"""Declarative base, engine lifecycle and session helpers.

The engine is created once by the app lifespan (``init_db``). Request
handlers get sessions through ``get_db_session``; work that runs after the
response (activity logging) opens its own transaction with ``session_scope``.
"""

from contextlib import asynccontextmanager

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from talko.core.config import get_settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; pool tuning only applies to server databases."""
    options: dict = {"echo": echo}
    if make_url(url).get_backend_name() != "sqlite":
        options.update(pool_pre_ping=True, pool_size=5, max_overflow=10)
    return create_async_engine(url, **options)


async def init_db(url: str | None = None) -> None:
    """Create the engine and session factory, then create missing tables."""
    global _engine, _session_factory

    if _engine is not None:
        return

    settings = get_settings()
    db_url = url or settings.database_url

    _engine = build_engine(db_url, echo=settings.debug)
    _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)

    # Models register themselves on Base.metadata when imported
    import talko.db.models  # noqa: F401

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("db_tables_ready", backend=_engine.url.get_backend_name(), tables=len(Base.metadata.tables))


async def close_db() -> None:
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the configured session factory.

    Raises RuntimeError if init_db() has not been called.
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory


async def get_db_session():
    """FastAPI dependency yielding a session from the shared factory."""
    async with get_session_factory()() as session:
        yield session


@asynccontextmanager
async def session_scope():
    """One transaction outside the request cycle: commit on exit, roll back on error."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping_database(engine: AsyncEngine | None = None) -> None:
    """Run ``SELECT 1`` on ``engine`` (the shared one by default); raises on failure."""
    engine = engine or _engine
    if engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
