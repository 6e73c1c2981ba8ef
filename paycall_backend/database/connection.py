"""
Database Connection Management
PostgreSQL with SQLAlchemy and asyncpg
"""

import logging
from typing import AsyncGenerator, Optional
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
import redis.asyncio as redis
from redis.exceptions import RedisError

from paycall_backend.core.config import settings

logger = logging.getLogger(__name__)

class Base(DeclarativeBase):
    """SQLAlchemy declarative base"""
    pass

def _engine_options() -> dict:
    options = {"echo": settings.DEBUG}
    if not settings.is_sqlite:
        options["pool_size"] = settings.DATABASE_POOL_SIZE
        options["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
        options["pool_pre_ping"] = True
    return options

# Database engine
engine = create_async_engine(settings.DATABASE_URL, **_engine_options())

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

# Redis connection
redis_client: Optional[redis.Redis] = None

async def init_database():
    """Initialize database connections"""
    global redis_client

    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        logger.info("Database connection established")

    redis_client = redis.from_url(
        settings.REDIS_URL,
        max_connections=settings.REDIS_POOL_SIZE,
        decode_responses=True
    )
    try:
        await redis_client.ping()
        logger.info("Redis connection established")
    except RedisError as e:
        # rate limiting fails open, so the API can still serve without redis
        logger.warning(f"Redis not reachable at startup: {e}")

async def close_database():
    """Close database connections"""
    global redis_client

    if redis_client:
        await redis_client.aclose()
        redis_client = None
        logger.info("Redis connection closed")

    await engine.dispose()
    logger.info("Database connection closed")

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Database session dependency"""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

async def get_redis() -> Optional[redis.Redis]:
    """Redis client dependency"""
    return redis_client
