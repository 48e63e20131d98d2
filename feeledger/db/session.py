from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from feeledger.core.config import settings

# pool_pre_ping: check connection is alive before use (avoids "connection is closed" errors
# when DB or network closed idle connections).
# pool_recycle: discard connections after this many seconds to avoid stale connections.
engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
    pool_pre_ping=True,
    pool_recycle=300,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


async def create_all() -> None:
    """Create tables for local bootstrap. Production schemas are managed outside this service."""
    import feeledger.core.models  # noqa: F401  (register mappers)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
