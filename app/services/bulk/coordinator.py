import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    AuthorizationError,
    InsufficientStockError,
    NotApprovedError,
    NotBulkEligibleError,
    NotFoundError,
    OrderTypeNotAllowedError,
    ValidationError,
)
from app.core.security import CurrentUser
from app.db.session import transaction
from app.models.bulk_orders import BulkOrder, BulkOrderItem
from app.models.catalog import Product
from app.notifications.manager import notification_manager
from app.schemas.common import BulkOrderStatus, BulkOrderType, LedgerOrderType
from app.services.bulk.catalog import bulk_catalog
from app.services.ledger.service import ledger_service
from app.services.pricing.tax_calculator import ZERO, tax_calculator, to_money

logger = logging.getLogger("BulkOrderCoordinator")


@dataclass(frozen=True)
class BulkLine:
    product_id: int
    order_type: BulkOrderType
    quantity: int  # As ordered
    actual_quantity: int  # In pieces
    unit_price: Decimal
    total_price: Decimal


@dataclass
class PlacedBulkOrder:
    order: BulkOrder
    items: List[BulkOrderItem]
    ledger_posted: bool


class BulkOrderCoordinator:
    """
    Distributor purchases, priced from the bulk price list.

    Placement is a two-phase saga:
        phase 1  bulk order + items, one transaction
        phase 2  ledger posting, its own session and transaction
    A phase 2 failure is logged and alerted, never undone by reversing the order.
    Orders left unposted are picked up by scripts/reconcile_ledger.py.
    """

    async def price_line(self, session: AsyncSession, product_id: int, order_type: Any, quantity: int) -> BulkLine:
        order_type = BulkOrderType(order_type)
        if quantity is None or quantity <= 0:
            raise ValidationError(f"Quantity must be positive for product {product_id}", {"product_id": product_id})

        bulk_item = await bulk_catalog.get_for_product(session, product_id)
        if bulk_item is None:
            raise NotBulkEligibleError(
                f"Product {product_id} is not available for bulk ordering", {"product_id": product_id}
            )

        allowed = bulk_item.allow_pieces if order_type == BulkOrderType.PIECES else bulk_item.allow_sets
        if not allowed:
            raise OrderTypeNotAllowedError(
                f"Ordering in {order_type.value} is not allowed for product {product_id}",
                {"product_id": product_id, "order_type": order_type.value},
            )

        product = await session.get(Product, product_id)
        if product is None or product.deleted:
            raise NotFoundError(f"Product not found: {product_id}", {"product_id": product_id})
        if not product.approved:
            raise NotApprovedError(f"Product not approved: {product.name}", {"product_id": product_id})

        actual_quantity = quantity if order_type == BulkOrderType.PIECES else quantity * bulk_item.pieces_per_set
        if actual_quantity > product.stock:
            raise InsufficientStockError(product.id, product.name, product.stock, actual_quantity)

        unit_price = bulk_item.selling_price if bulk_item.selling_price is not None else product.price
        return BulkLine(
            product_id=product_id,
            order_type=order_type,
            quantity=quantity,
            actual_quantity=actual_quantity,
            unit_price=to_money(unit_price),
            total_price=tax_calculator.line_total(actual_quantity, unit_price),
        )

    async def place_bulk_order(
        self,
        session: AsyncSession,
        distributor_user_id: int,
        items: Sequence[Any],
        notes: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> PlacedBulkOrder:
        if not items:
            raise ValidationError("At least one item is required")

        # --- Phase 1: order exists ---
        async with transaction(session):
            lines = []
            for item in items:
                if isinstance(item, dict):
                    product_id, order_type, quantity = item["product_id"], item["order_type"], item["quantity"]
                else:
                    product_id, order_type, quantity = item.product_id, item.order_type, item.quantity
                lines.append(await self.price_line(session, product_id, order_type, quantity))

            total_amount = to_money(sum((line.total_price for line in lines), ZERO))
            order = BulkOrder(
                distributor_user_id=distributor_user_id,
                total_amount=total_amount,
                status=BulkOrderStatus.PENDING.value,
                notes=notes,
            )
            session.add(order)
            await session.flush()

            order_items = [
                BulkOrderItem(
                    bulk_order_id=order.id,
                    product_id=line.product_id,
                    order_type=line.order_type.value,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total_price=line.total_price,
                )
                for line in lines
            ]
            session.add_all(order_items)
            await session.flush()

        logger.info(
            f"📦 Bulk order BO-{order.id} placed: distributor_user={distributor_user_id} "
            f"lines={len(order_items)} total={total_amount}"
        )

        # --- Phase 2: financial posting recorded ---
        ledger_posted = await self._post_to_ledger(session, order, len(order_items), created_by or distributor_user_id)
        await notification_manager.bulk_order_placed(order.id, distributor_user_id, total_amount, ledger_posted)

        return PlacedBulkOrder(order=order, items=order_items, ledger_posted=ledger_posted)

    async def _post_to_ledger(self, session: AsyncSession, order: BulkOrder, item_count: int, created_by: int) -> bool:
        try:
            # Separate session so a failed posting cannot expire the committed order objects
            async with AsyncSession(session.bind, expire_on_commit=False) as ledger_session:
                entry = await ledger_service.post_bulk_order(
                    ledger_session,
                    order.distributor_user_id,
                    order.id,
                    order.total_amount,
                    item_count,
                    created_by=created_by,
                )
            return entry is not None
        except Exception as e:
            # The order is committed; reversing it here could corrupt stock state.
            logger.exception(f"🚨 Ledger posting failed for BO-{order.id}: {e}")
            await notification_manager.consistency_alert(order.id, str(e))
            return False

    # --- Reads ---

    async def list_bulk_orders(
        self,
        session: AsyncSession,
        distributor_user_id: Optional[int] = None,
        status: Optional[BulkOrderStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[BulkOrder], int]:
        filters = []
        if distributor_user_id is not None:
            filters.append(BulkOrder.distributor_user_id == distributor_user_id)
        if status is not None:
            filters.append(BulkOrder.status == BulkOrderStatus(status).value)

        total = await session.scalar(select(func.count(BulkOrder.id)).where(*filters))
        orders = (
            await session.execute(
                select(BulkOrder)
                .where(*filters)
                .order_by(BulkOrder.created_at.desc(), BulkOrder.id.desc())
                .limit(limit)
                .offset((page - 1) * limit)
            )
        ).scalars().all()
        return list(orders), total or 0

    async def get_bulk_order(
        self, session: AsyncSession, order_id: int, caller: Optional[CurrentUser] = None
    ) -> Tuple[BulkOrder, List[BulkOrderItem]]:
        """Admins see everything; a distributor only sees their own orders."""
        order = await session.get(BulkOrder, order_id)
        if order is None:
            raise NotFoundError(f"Bulk order not found: {order_id}", {"order_id": order_id})
        if caller is not None and not caller.is_admin and order.distributor_user_id != caller.id:
            raise AuthorizationError("You can only view your own bulk orders", {"order_id": order_id})

        items = (
            await session.execute(
                select(BulkOrderItem).where(BulkOrderItem.bulk_order_id == order_id).order_by(BulkOrderItem.id)
            )
        ).scalars().all()
        return order, list(items)

    async def stats(self, session: AsyncSession) -> Dict[str, Any]:
        rows = (
            await session.execute(
                select(BulkOrder.status, func.count(BulkOrder.id), func.sum(BulkOrder.total_amount))
                .group_by(BulkOrder.status)
                .order_by(BulkOrder.status)
            )
        ).all()
        by_status = [
            {"status": status, "count": count, "total_amount": to_money(amount)} for status, count, amount in rows
        ]
        return {"by_status": by_status, "total": sum(row["count"] for row in by_status)}

    # --- Admin writes ---

    async def update_status(
        self, session: AsyncSession, order_id: int, status: BulkOrderStatus, notes: Optional[str] = None
    ) -> BulkOrder:
        """Approval workflow only. The ledger is not touched."""
        status = BulkOrderStatus(status)
        async with transaction(session):
            order = await session.get(BulkOrder, order_id)
            if order is None:
                raise NotFoundError(f"Bulk order not found: {order_id}", {"order_id": order_id})
            order.status = status.value
            if notes is not None:
                order.notes = notes
            await session.flush()

        logger.info(f"📝 BO-{order_id} -> {status.value}")
        return order

    async def delete_bulk_order(self, session: AsyncSession, order_id: int) -> None:
        await ledger_service.delete_for_order(session, order_id, LedgerOrderType.BULK)


bulk_order_coordinator = BulkOrderCoordinator()
