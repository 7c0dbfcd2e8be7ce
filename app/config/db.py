from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.models import Base
from app.settings import Settings
from app.utils.logging_config import logger


def build_engine(s: Settings) -> AsyncEngine:
    options = {"echo": s.DEBUG}
    if not s.DATABASE_URL.startswith("sqlite"):
        options.update(
            pool_pre_ping=True,
            pool_recycle=3600,
            pool_size=20,
            max_overflow=20,
        )
    return create_async_engine(s.DATABASE_URL, **options)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """
    Creates any missing tables. Existing tables are left untouched.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables are ready")


async def check_db_connection(session_factory: async_sessionmaker[AsyncSession]):
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
            logger.info("Database connection successful")
    except Exception as e:
        logger.error(f"Database connection error: {e}")
        raise
