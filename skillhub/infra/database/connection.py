import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from skillhub.configs import configs

logger = logging.getLogger(__name__)


def _engine_options() -> dict[str, Any]:
    if configs.Database.Engine == "postgres":
        return {
            "pool_size": configs.Database.Postgres.PoolSize,
            "max_overflow": configs.Database.Postgres.MaxOverflow,
            "pool_pre_ping": True,
        }
    return {"connect_args": {"check_same_thread": False}}


async_engine = create_async_engine(configs.Database.url, echo=False, future=True, **_engine_options())

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_db_and_tables() -> None:
    """Create all tables registered on SQLModel.metadata."""
    import skillhub.models  # noqa: F401  # registers tables

    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info(f"Database ready ({configs.Database.Engine})")


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session; handlers commit explicitly."""
    async with AsyncSessionLocal() as session:
        yield session
