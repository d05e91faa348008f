from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine, AsyncEngine, AsyncSession
from sqlalchemy.pool import NullPool
from typing import AsyncGenerator

from taskboard.core import get_settings

# Get application settings
settings = get_settings()

# Create async engine
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    future=True,
    poolclass=NullPool,
)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory shared by the Remote Store and request handlers"""
    return async_sessionmaker(
        bind,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


async_session_factory = make_session_factory(engine)


# Dependency for FastAPI
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# Initialize database
async def init_db(bind: AsyncEngine = engine):
    async with bind.begin() as conn:
        # Import here to avoid circular imports
        from taskboard.db.models import Base
        await conn.run_sync(Base.metadata.create_all)
