"""
Database engine and session management with SQLAlchemy async.

PostgreSQL (asyncpg) in deployment; SQLite (aiosqlite) is accepted for local
runs and tests. Both dialects support the ON CONFLICT upsert used by the loader.
"""

from typing import Any, AsyncIterator, Dict, Optional
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def mask_url(url: str) -> str:
    """Hide the password in a database URL before it is logged."""
    if "@" not in url:
        return url
    credentials, host = url.split("@", 1)
    scheme, _, user_info = credentials.partition("://")
    if ":" in user_info:
        user = user_info.split(":", 1)[0]
        return f"{scheme}://{user}:****@{host}"
    return url


def engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "echo": settings.LOG_LEVEL.upper() == "DEBUG",
        "poolclass": NullPool,
    }
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    return options


def make_engine(url: Optional[str] = None) -> AsyncEngine:
    """Create an async engine for ``url`` (defaults to settings.DATABASE_URL)."""
    url = url or settings.DATABASE_URL
    logger.debug(f"Creating database engine for {mask_url(url)}")
    return create_async_engine(url, **engine_options(url))


def make_session_maker(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


engine = make_engine()
async_session_maker = make_session_maker(engine)


async def get_session() -> AsyncIterator[AsyncSession]:
    """Get database session"""
    async with async_session_maker() as session:
        yield session


async def ping(session: AsyncSession) -> bool:
    """True when ``SELECT 1`` succeeds on ``session``."""
    try:
        await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
