"""Database connection and session management"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool, NullPool
from app.config import settings
from app.db.models import Base
from app.structured_logging import db_log

# Create async engine
if settings.database_url.startswith("sqlite"):
    # SQLite configuration for development and tests
    # - :memory: needs StaticPool so every session sees the same database
    # - file databases get one connection per session (NullPool) so
    #   concurrent sessions run in independent transactions
    engine = create_async_engine(
        settings.database_url,
        connect_args={"check_same_thread": False, "timeout": 15},
        poolclass=StaticPool if ":memory:" in settings.database_url else NullPool,
        echo=settings.debug,
    )
else:
    # PostgreSQL
    engine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
    )

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncSession:
    """Dependency for getting database sessions"""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db():
    """Initialize database tables"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    db_log.info("Database tables ready", {"dialect": engine.dialect.name})


async def drop_db():
    """Drop all database tables (for testing)"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
