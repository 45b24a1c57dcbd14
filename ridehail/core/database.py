"""
Database configuration and session management.
"""

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from datetime import datetime, timezone
from typing import AsyncIterator, Optional
from ridehail.core.config import settings


def build_engine(url: str, echo: bool = False):
    """Create an async engine for PostgreSQL (asyncpg) or SQLite (aiosqlite)."""
    url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if is_memory_sqlite(url):
        # One shared connection so in-memory databases survive across sessions.
        # Sessions on this engine also share one transaction.
        return create_async_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        # File databases get a connection per session so transactions stay isolated
        return create_async_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


def is_memory_sqlite(url: str) -> bool:
    """True for `sqlite+aiosqlite://` and `...:memory:` URLs."""
    if not url.startswith("sqlite"):
        return False
    database = url.split("://", 1)[1].lstrip("/").split("?", 1)[0]
    return database in ("", ":memory:") or "mode=memory" in url


# Create async engine
engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

# Create base class for models
Base = declarative_base()

# Dependency to get database session
async def get_db() -> AsyncIterator[AsyncSession]:
    """Get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


def utcnow() -> datetime:
    """Timezone-aware current time used for column defaults."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
