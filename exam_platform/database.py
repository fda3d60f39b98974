"""
exam_platform/database.py
Database configuration: async engine, session factory, schema creation
"""
import logging
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine

from exam_platform.config import settings
from exam_platform.orm.base import Base
import exam_platform.orm  # force load all models

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL

if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is not set")


def build_engine(database_url: str) -> AsyncEngine:
    """
    Create an async engine tuned for the backend in use.

    SQLite gets a busy timeout so concurrent writers wait for the lock
    instead of failing, and foreign keys switched on per connection.
    """
    if "sqlite" in database_url.lower():
        new_engine = create_async_engine(
            database_url,
            echo=False,
            future=True,
            connect_args={
                "timeout": 30.0,   # SQLite busy timeout in seconds
            }
        )

        @event.listens_for(new_engine.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return new_engine

    # PostgreSQL/MySQL: Use standard pool with larger size
    return create_async_engine(
        database_url,
        echo=False,
        future=True,
        pool_pre_ping=True,
        pool_size=20,           # Base pool size
        max_overflow=30,        # Additional connections under load
        pool_timeout=30,        # Wait up to 30s for connection
        pool_recycle=3600,      # Recycle connections after 1 hour
    )


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(DATABASE_URL)

AsyncSessionLocal = build_sessionmaker(engine)


async def get_db():
    """Dependency for getting async database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(bind: AsyncEngine = None):
    """Create all tables that do not exist yet."""
    bind = bind or engine
    logger.info("Initializing database...")

    try:
        logger.info(f"Database dialect: {bind.url.get_backend_name()}")
        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialization complete")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")
        raise


async def close_db():
    """Close database connection"""
    await engine.dispose()
    logger.info("Database connection closed")
