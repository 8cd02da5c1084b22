"""Database connection and session management."""

from typing import AsyncIterator

from servicedesk.config import settings
from servicedesk.models.base import Base
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

engine = None
async_session_maker = None


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with the pool settings used by server and worker."""
    return create_async_engine(
        database_url,
        echo=echo,
        future=True,
        pool_pre_ping=True,
    )


def create_session_maker(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async def create_tables(bind: AsyncEngine):
    """Create tables if they don't exist."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db():
    """Initialize database engine and create tables."""
    global engine, async_session_maker

    engine = create_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    async_session_maker = create_session_maker(engine)

    await create_tables(engine)


async def close_db():
    """Close database engine."""
    global engine
    if engine:
        await engine.dispose()


async def get_db() -> AsyncIterator[AsyncSession]:
    """Get database session."""
    async with async_session_maker() as session:
        yield session
