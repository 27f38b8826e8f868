"""
Database session management for the artifact agent platform
Async SQLAlchemy setup with PostgreSQL/SQLite support
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import text
from typing import AsyncGenerator, Optional
import asyncio
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


def create_engine_for_url(database_url: str) -> AsyncEngine:
    """Create an async engine tuned for the database behind the URL"""
    if "postgresql" in database_url.lower():
        return create_async_engine(
            database_url,
            echo=False,
            pool_size=10,
            max_overflow=5,
            pool_timeout=3,
            pool_recycle=3600,
            pool_pre_ping=True,
            connect_args={
                "command_timeout": 30,
                "server_settings": {"application_name": "artifact_agents"}
            }
        )

    return create_async_engine(
        database_url,
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 10}
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


engine: AsyncEngine = create_engine_for_url(settings.DATABASE_URL)
AsyncSessionLocal = create_session_factory(engine)

logger.info(f"Database engine created for {engine.dialect.name}")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields a database session and rolls back on failure"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.warning(f"Database session error: {e}")
            await session.rollback()
            raise


async def init_db(bind: Optional[AsyncEngine] = None) -> bool:
    """Initialize database tables"""
    target = bind or engine
    try:
        async with target.begin() as conn:
            # Import all models to ensure they're registered
            from app.models.models import ArtifactVersion, AgentConfigEntry  # noqa: F401

            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database initialized successfully")
        return True
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        return False


async def get_db_health_info() -> dict:
    """Get database health information"""
    try:
        async with asyncio.timeout(5):
            async with AsyncSessionLocal() as session:
                await session.execute(text("SELECT 1"))
        return {"status": "healthy", "database_type": engine.dialect.name}
    except asyncio.TimeoutError:
        return {"status": "unhealthy", "error": "Health check timed out"}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}


async def close_db() -> None:
    await engine.dispose()
    logger.info("Database engine disposed")
