"""
Async database wiring.

The repository commits each write itself, so sessions handed out here never
commit on exit; they only roll back whatever a failing request left open.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from weekflow.config import get_settings

# Registers every table on SQLModel.metadata
import weekflow.models  # noqa: F401


def create_db_engine(database_url: str, debug: bool = False) -> AsyncEngine:
    return create_async_engine(
        database_url,
        echo=debug,
        future=True,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1800,  # seconds
        pool_pre_ping=True,
    )


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows outlive their commit: the engine keeps them in memory between writes.
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


settings = get_settings()
engine = create_db_engine(settings.database_url, settings.debug)
async_session_maker = make_session_factory(engine)


async def init_db(bind: Optional[AsyncEngine] = None) -> None:
    """Create the weekflow tables that do not exist yet."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def drop_db(bind: AsyncEngine) -> None:
    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)


@asynccontextmanager
async def _open_session(maker: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    async with _open_session(async_session_maker) as session:
        yield session


def get_session_context():
    """Session for worker jobs, outside the request cycle."""
    return _open_session(async_session_maker)
