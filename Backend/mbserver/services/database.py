from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from mbserver.core.config import settings


def make_engine(database_url: str = settings.DATABASE_URL) -> AsyncEngine:
    """Async engine for the MusicBrainz database; the export job builds its own for --database."""
    return create_async_engine(database_url, echo=False, pool_pre_ping=True)


engine = make_engine()
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Request-scoped session. Commits when the endpoint returns normally and
    rolls back on any error, so a rejected edit never leaves partial rows.
    """
    async with SessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
