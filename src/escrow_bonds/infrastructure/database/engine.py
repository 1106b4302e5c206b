"""Async database engine and session factory construction.

Provides:
    - create_engine_from_settings: builds the SQLAlchemy async engine.
    - create_session_factory: an async_sessionmaker bound to that engine.
    - init_db / close_db: lifecycle hooks called by BondingContext.

Nothing here is a module-level singleton: the engine and factory are owned by
the BondingContext that created them, so tests and the app never share state.

Usage:
    engine = create_engine_from_settings(settings)
    sessions = create_session_factory(engine)
    async with sessions.begin() as session:
        ...  # committed on exit, rolled back on exception
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from escrow_bonds.logging_config import get_logger

if TYPE_CHECKING:
    from escrow_bonds.config import Settings

logger = get_logger(__name__)


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create the async engine. SQLite URLs skip the connection-pool options."""
    if settings.is_sqlite:
        engine = create_async_engine(settings.database_url, echo=settings.db_echo_sql)
    else:
        engine = create_async_engine(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_pre_ping=True,
            echo=settings.db_echo_sql,
        )
    logger.info("database.engine_created", dialect=engine.dialect.name)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine, create_tables: bool) -> None:
    """Create tables if asked to. Deployed databases are provisioned ahead of time."""
    from escrow_bonds.infrastructure.database.orm_models import Base

    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database.tables_created")
    else:
        logger.info("database.skipping_create_all", reason="not in development mode")


async def close_db(engine: AsyncEngine) -> None:
    await engine.dispose()
    logger.info("database.engine_disposed")
