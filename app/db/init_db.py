import logging

from app.db.session import engine
from app.models.base import Base

# Import all models so Base knows about them
from app.models import bulk_orders, catalog, ledger, orders, users  # noqa: F401

logger = logging.getLogger("InitDB")


async def init_db(drop: bool = False):
    async with engine.begin() as conn:
        if drop:
            logger.warning("⏳ Dropping existing tables (strictly for dev)...")
            await conn.run_sync(Base.metadata.drop_all)

        logger.info("⏳ Creating tables...")
        await conn.run_sync(Base.metadata.create_all)

    logger.info(f"✅ Database initialized: {', '.join(sorted(Base.metadata.tables))}")
