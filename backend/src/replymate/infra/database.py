"""Async SQLite engine, session factory and table bootstrap."""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from replymate.app.config import get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for seller, usage and reply-log tables."""
    pass


_database_url = get_settings().database_url

# aiosqlite waits this long for the write lock held by the usage recorder
engine = create_async_engine(
    _database_url,
    connect_args={"timeout": 30} if _database_url.startswith("sqlite") else {},
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    """FastAPI dependency: yield an async database session."""
    async with async_session() as session:
        yield session


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create missing tables and switch file databases to WAL."""
    import replymate.domain.models  # noqa: F401

    bind = bind or engine
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if bind.dialect.name == "sqlite" and bind.url.database not in (None, "", ":memory:"):
        async with bind.begin() as conn:
            await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.execute(text("PRAGMA busy_timeout=30000"))
    logger.info("Database ready: %s", bind.url.render_as_string(hide_password=True))
