from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from fxtrader.config import settings


class Base(DeclarativeBase):
    pass


def _engine_options(database_url: str) -> Dict[str, Any]:
    """SQLite is shared between the API and background jobs; other backends get a recycled pool."""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_recycle": 3600}


engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    **_engine_options(settings.database_url),
)

# Jobs read back what they committed without a refresh
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


async def get_db():
    async with async_session_maker() as session:
        yield session


async def init_db():
    """Create the session, position and log tables if missing."""
    import fxtrader.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db():
    await engine.dispose()
