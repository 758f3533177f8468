"""Database connection and session management."""
import logging
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.engine.url import make_url
from backend.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

parsed_url = make_url(settings.database_url)
is_sqlite = "sqlite" in parsed_url.drivername

# Determine if we need SSL (for hosted Postgres)
connect_args = {}
needs_ssl = not is_sqlite and (
    "supabase" in settings.database_url or
    "amazonaws" in settings.database_url or
    settings.environment == "production"
)

if needs_ssl:
    connect_args["ssl"] = "require"
    logger.debug("SSL connection enabled (ssl=require)")

if is_sqlite:
    # Concurrent voters contend for SQLite's single writer lock
    connect_args["timeout"] = 30

# Configure pool sizing to avoid exhausting limited database connections
pool_size = max(1, settings.db_pool_size)
max_overflow = max(0, settings.db_max_overflow)

if settings.environment == "production":
    pool_size = min(pool_size, 5)
    max_overflow = min(max_overflow, 5)

try:
    engine = create_async_engine(
        settings.database_url,
        echo=False,
        future=True,
        connect_args=connect_args,
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=3600,   # Recycle connections every hour
        pool_size=pool_size,
        max_overflow=max_overflow,
    )
    logger.debug("Database engine created successfully")
except Exception as e:
    logger.error(f"Failed to create database engine: {e}")
    raise

# Session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Base class for models
Base = declarative_base()


# Dependency for FastAPI
async def get_db():
    """FastAPI dependency to get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
