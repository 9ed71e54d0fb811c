"""Database engine, session factory and Redis connection."""

from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Iterator, Optional

import redis.asyncio as aioredis
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from slotbook.config import get_settings
from slotbook.exceptions import ConflictError, TransientStoreError

settings = get_settings()

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()

_redis: Optional[aioredis.Redis] = None


@contextmanager
def store_errors() -> Iterator[None]:
    """Translate driver errors raised by reads and writes into the scheduling taxonomy."""
    try:
        yield
    except IntegrityError as exc:
        raise ConflictError("Write conflicts with an existing record") from exc
    except OperationalError as exc:
        raise TransientStoreError("Store temporarily unavailable, retry") from exc


@asynccontextmanager
async def open_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Open a session whose driver errors surface as scheduling errors."""
    with store_errors():
        async with session_factory() as db:
            yield db


async def get_redis() -> aioredis.Redis:
    """Get the shared Redis client, creating it on first use."""
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis


async def init_db() -> None:
    """Create tables that do not exist yet."""
    # Import models so they register on Base.metadata
    import slotbook.models  # noqa: F401
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of database and Redis connections."""
    global _redis
    await engine.dispose()
    if _redis is not None:
        await _redis.close()
        _redis = None
