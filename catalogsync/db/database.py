"""
Engine and session wiring for the reference admin API.

SQLite is the default store. Every SQLite connection has foreign keys
switched on so a stray child row can never outlive its hero or movie.
"""

import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from catalogsync.config import settings
from catalogsync.models.db import Base

logger = logging.getLogger(__name__)


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def create_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Build an async engine; SQLite connections get `PRAGMA foreign_keys=ON`."""
    catalog_engine = create_async_engine(url, echo=echo, pool_pre_ping=not is_sqlite(url))
    if is_sqlite(url):

        @event.listens_for(catalog_engine.sync_engine, "connect")
        def enable_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return catalog_engine


engine = create_engine(settings.database_url, echo=settings.debug)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session dependency.

    Commits when the route returns normally. A KnownError raised by the route
    leaves the transaction uncommitted, and closing the session discards it.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError:
            logger.exception("Database error, rolling back")
            await session.rollback()
            raise


async def init_db() -> None:
    """Create the catalog tables if they do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Catalog tables ready at %s", engine.url.render_as_string(hide_password=True))
