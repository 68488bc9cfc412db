from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from uploader.config import config
from uploader.db.base import Base

DATABASE_URL = config.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")

engine = create_async_engine(DATABASE_URL, future=True)
SessionLocal = async_sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    class_=AsyncSession
)


async def init_db() -> None:
    # Registers the mapped tables on Base.metadata
    import uploader.db  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
