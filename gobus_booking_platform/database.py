"""
Engine and session lifecycle for the booking database.

Request handlers get one session per request through ``get_db``. The
reservation orchestrator instead takes the session factory and opens a
fresh session for every attempt.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .cache import close_cache, init_cache
from .config import get_settings
from .models.base import Base

logger = logging.getLogger(__name__)

engine: Optional[AsyncEngine] = None
async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _engine_options(url: str) -> Dict[str, Any]:
    settings = get_settings()
    options: Dict[str, Any] = {"echo": settings.debug}

    # Pool sizing and server settings only apply to the PostgreSQL driver
    if url.startswith("postgresql+asyncpg"):
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={"server_settings": {"application_name": "gobus_booking_platform"}},
        )
    return options


def create_database_engine(database_url: Optional[str] = None) -> AsyncEngine:
    url = database_url or get_settings().database_url
    return create_async_engine(url, **_engine_options(url))


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Bookings are returned to callers after commit, so keep loaded attributes
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async def init_database(create_tables: bool = True) -> None:
    """
    Open the engine and the token store.

    Args:
        create_tables: Create missing tables, for deployments without migrations
    """
    global engine, async_session_factory

    engine = create_database_engine()
    async_session_factory = create_session_factory(engine)

    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    await init_cache()
    logger.info(f"Database ready ({engine.url.get_backend_name()})")


async def close_database() -> None:
    global engine, async_session_factory

    if engine is not None:
        await engine.dispose()
        engine = None
        async_session_factory = None
        logger.info("Database connections closed")

    await close_cache()


async def ping_database() -> bool:
    """True when a trivial query succeeds, for health reporting."""
    if engine is None:
        return False
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning(f"Database ping failed: {e}")
        return False
    return True


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Dependency returning the session factory.

    Raises:
        RuntimeError: If ``init_database`` has not run
    """
    if async_session_factory is None:
        raise RuntimeError("Database not initialized, call init_database() first")
    return async_session_factory


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Session committed on success and rolled back on any error."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with get_db_session() as session:
        yield session
