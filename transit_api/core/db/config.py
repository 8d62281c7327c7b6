from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    async_sessionmaker,
    AsyncAttrs,
)
from sqlalchemy.orm import DeclarativeBase

from transit_api.core.config import settings


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine for ``database_url``.

    Pool sizing and the checkout timeout only apply to server databases;
    SQLite uses SQLAlchemy's default pool for the file or memory database.
    """
    if make_url(database_url).get_backend_name() == "sqlite":
        return create_async_engine(database_url, echo=echo)

    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=10,
        max_overflow=20,
        pool_timeout=settings.DATABASE_POOL_TIMEOUT,  # bounded wait for a connection
        pool_pre_ping=True,  # Validate connections before use
        pool_recycle=3600,
    )


async_engine: AsyncEngine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    autoflush=False,
    expire_on_commit=False,
)


# Base class for declarative models
class Base(AsyncAttrs, DeclarativeBase):
    pass


async def init_db(engine: AsyncEngine | None = None) -> None:
    """
    Create every table registered on ``Base.metadata``.

    Used by ``manage.py initdb`` and by the test suite; deployed databases
    are managed with Alembic.
    """
    # Register models on the metadata before create_all
    import transit_api.core.db.models  # noqa: F401

    async with (engine or async_engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db() -> None:
    """Dispose the engine's connection pool."""
    await async_engine.dispose()
