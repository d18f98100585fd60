"""
Async SQLAlchemy session factory.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from config.settings import config


def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an engine; pool sizing only applies to server databases."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=10,
        max_overflow=20,
        pool_recycle=3600,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = build_engine(config.database_url, echo=config.database_echo)

async_session_factory = build_session_factory(engine)


async def init_models(bind: AsyncEngine = engine) -> None:
    """Create any missing tables."""
    from database.models import Base

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

