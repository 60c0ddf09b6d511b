from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings

Base = declarative_base()


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine for `database_url`.

    SQLite (tests, local runs) serializes writers with a file lock, so concurrent
    ledger/assignment transactions wait on the busy timeout instead of failing.
    Server databases get pool_pre_ping / pool_recycle to survive idle disconnects.
    """
    if database_url.startswith("sqlite"):
        return create_async_engine(
            database_url,
            echo=False,
            connect_args={"timeout": 30},
        )
    return create_async_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        pool_recycle=300,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_url)
AsyncSessionLocal = build_session_factory(engine)


async def create_all(bind: AsyncEngine) -> None:
    # Register every mapped class on Base.metadata before creating tables.
    import app.core.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
