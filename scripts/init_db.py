# scripts/init_db.py
import argparse
import asyncio
import logging
import os
import sys

# Add project root to path so we can import 'app'
sys.path.append(os.getcwd())

from sqlalchemy.exc import SQLAlchemyError

from app.core.logger import setup_logging
from app.db.init_db import init_db
from app.db.session import engine

setup_logging()
logger = logging.getLogger("InitDB")


async def main(drop: bool):
    try:
        await init_db(drop=drop)
    except SQLAlchemyError as e:
        logger.error(f"❌ Error initializing DB: {e}")
        raise SystemExit(1)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the order/ledger tables")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables first (dev only)")
    args = parser.parse_args()

    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(main(args.drop))
