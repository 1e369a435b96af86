import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from chatter_2fa.config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str, environment: str = "development", debug: bool = False) -> AsyncEngine:
    """Create the async engine with pool sizing for the environment."""
    if database_url.startswith("sqlite"):
        # SQLite pools take no sizing arguments
        return create_async_engine(database_url, echo=debug)

    if environment == "production":
        return create_async_engine(
            database_url,
            pool_size=20,
            max_overflow=40,
            pool_timeout=10,
            pool_recycle=1800,
            pool_pre_ping=True,
        )

    return create_async_engine(
        database_url,
        echo=debug,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
    )


engine = build_engine(settings.database_url, settings.environment, settings.debug)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db():
    """Yield a session per request. Closing it rolls back anything left uncommitted."""
    async with AsyncSessionLocal() as db:
        logger.debug("Opened database session")
        yield db
