from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from ecomarket_orders.config import settings
from ecomarket_orders.infrastructure.db_schema import metadata

engine = create_async_engine(settings.DATABASE_URL)
AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(bind=engine):
    async with bind.begin() as conn:
        await conn.run_sync(metadata.create_all)
