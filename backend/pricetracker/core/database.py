"""Async engine, session factory and table creation"""
import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from pricetracker.core.config import settings

logger = logging.getLogger(__name__)

SQLITE_FALLBACK_URL = "sqlite+aiosqlite:///./pricetracker.db"


def resolve_database_url(url: str) -> str:
    """
    Map a configured DATABASE_URL onto an async driver.

    postgres(ql):// URLs (as handed out by hosting providers) use asyncpg,
    sqlite:// uses aiosqlite. Anything else falls back to a local SQLite file.
    """
    if url.startswith("postgres://"):
        return "postgresql+asyncpg://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    if url.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + url[len("sqlite://"):]
    if url.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://")):
        return url
    return SQLITE_FALLBACK_URL


database_url = resolve_database_url(settings.DATABASE_URL)

engine = create_async_engine(
    database_url,
    echo=settings.ENVIRONMENT == "development",
    pool_pre_ping=database_url.startswith("postgresql"),
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


async def init_db():
    """Create stores, products, price_history and point ledger tables"""
    import pricetracker.models  # noqa: F401  registers tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database ready (%s)", engine.url.get_backend_name())
