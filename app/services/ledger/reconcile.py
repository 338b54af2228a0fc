import logging
from typing import List

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.bulk_orders import BulkOrder, BulkOrderItem
from app.models.ledger import LedgerEntry
from app.schemas.common import BulkOrderStatus, LedgerOrderType
from app.services.ledger.service import ledger_service

logger = logging.getLogger("LedgerReconciler")


async def find_unposted(session: AsyncSession) -> List[BulkOrder]:
    """Live bulk orders with no ledger posting (phase 2 of placement never landed)."""
    posted = (
        select(LedgerEntry.id)
        .where(
            and_(
                LedgerEntry.order_id == BulkOrder.id,
                LedgerEntry.order_type == LedgerOrderType.BULK.value,
            )
        )
        .exists()
    )
    result = await session.execute(
        select(BulkOrder)
        .where(BulkOrder.status != BulkOrderStatus.REJECTED.value, ~posted)
        .order_by(BulkOrder.id)
    )
    return list(result.scalars().all())


async def repost(session: AsyncSession, orders: List[BulkOrder]) -> int:
    """
    Posts each order in its own transaction. Returns how many now carry a posting
    (an order posted meanwhile by someone else is returned as is, never doubled).
    """
    pending = [(o.id, o.distributor_user_id, o.total_amount) for o in orders]
    posted = 0
    for order_id, distributor_user_id, total_amount in pending:
        item_count = await session.scalar(
            select(func.count(BulkOrderItem.id)).where(BulkOrderItem.bulk_order_id == order_id)
        )
        entry = await ledger_service.post_bulk_order(
            session, distributor_user_id, order_id, total_amount, item_count or 0
        )
        if entry is None:
            continue
        posted += 1
        logger.info(f"✅ BO-{order_id} posted as ledger #{entry.id}")
    return posted
