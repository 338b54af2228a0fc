# scripts/reconcile_ledger.py
"""
Finds bulk orders (not rejected) that never reached the distributor ledger,
e.g. the process died between committing the order and posting it.

Dry run by default. Operator tool: nothing runs this automatically.

    python scripts/reconcile_ledger.py            # list
    python scripts/reconcile_ledger.py --apply    # re-post them
"""
import argparse
import asyncio
import logging
import os
import sys

# Add project root to path so we can import 'app'
sys.path.append(os.getcwd())

from app.core.logger import setup_logging
from app.db.session import AsyncSessionLocal, engine
from app.services.ledger.reconcile import find_unposted, repost

setup_logging()
logger = logging.getLogger("LedgerReconciler")


async def main(apply: bool):
    try:
        async with AsyncSessionLocal() as session:
            orders = await find_unposted(session)
            if not orders:
                logger.info("✅ Ledger is consistent: every live bulk order is posted.")
                return

            logger.warning(f"⚠️ {len(orders)} bulk order(s) without a ledger entry:")
            for order in orders:
                logger.warning(
                    f"   BO-{order.id} user={order.distributor_user_id} "
                    f"total={order.total_amount} status={order.status} created={order.created_at}"
                )

            if not apply:
                logger.info("ℹ️ Dry run. Re-run with --apply to post them.")
                return

            posted = await repost(session, orders)
            logger.info(f"✅ Reposted {posted}/{len(orders)} bulk order(s).")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Re-post bulk orders missing from the distributor ledger")
    parser.add_argument("--apply", action="store_true", help="Post missing entries (default: list only)")
    args = parser.parse_args()

    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(main(args.apply))
