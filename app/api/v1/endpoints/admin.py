import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import PageParams, require_roles
from app.api.v1.endpoints.bulk_orders import order_detail
from app.core.security import ROLE_ADMIN, CurrentUser
from app.db.session import get_session
from app.schemas.common import BulkOrderStatus, Page
from app.schemas.requests import (
    AdminOrderForBuyerRequest,
    BulkItemConfig,
    BulkItemPatch,
    BulkOrderStatusUpdate,
    InvoicePreviewRequest,
)
from app.schemas.responses import (
    BulkItemOut,
    BulkOrderDetailOut,
    BulkOrderOut,
    BulkOrderStatsOut,
    InvoicePreviewOut,
    PlacedOrderOut,
)
from app.services.bulk.catalog import bulk_catalog
from app.services.bulk.coordinator import bulk_order_coordinator
from app.services.orders.coordinator import order_coordinator

logger = logging.getLogger("API_Admin")
router = APIRouter(dependencies=[Depends(require_roles(ROLE_ADMIN))])

admin_only = require_roles(ROLE_ADMIN)


# --- Orders on behalf of a buyer ---


@router.post("/orders-for-buyer", response_model=PlacedOrderOut, status_code=status.HTTP_201_CREATED)
async def place_order_for_buyer(
    data: AdminOrderForBuyerRequest,
    admin: CurrentUser = Depends(admin_only),
    session: AsyncSession = Depends(get_session),
):
    """Same transaction as checkout; recorded as prepaid and stamped with the admin's id."""
    logger.info(f"📥 Admin {admin.id} ordering for buyer {data.buyer_id}: {len(data.items)} lines")
    placed = await order_coordinator.place_order(
        session, data.buyer_id, data.address_id, data.items, data.payment_method, placed_by=admin.id
    )
    return {
        "message": "Order created successfully for buyer",
        "order": placed.order,
        "items": placed.items,
        "seller_orders": placed.seller_orders,
    }


@router.post("/orders-for-buyer/preview-invoice", response_model=InvoicePreviewOut)
async def preview_invoice(data: InvoicePreviewRequest, session: AsyncSession = Depends(get_session)):
    return await order_coordinator.preview_invoice(session, data.buyer_id, data.address_id, data.items)


# --- Bulk orders ---


@router.get("/bulk-orders", response_model=Page[BulkOrderOut])
async def list_bulk_orders(
    status_filter: Optional[BulkOrderStatus] = Query(None, alias="status"),
    params: PageParams = Depends(),
    session: AsyncSession = Depends(get_session),
):
    orders, total = await bulk_order_coordinator.list_bulk_orders(
        session, status=status_filter, page=params.page, limit=params.limit
    )
    return {"items": orders, "pagination": params.pagination(total)}


@router.get("/bulk-orders/stats", response_model=BulkOrderStatsOut)
async def bulk_order_stats(session: AsyncSession = Depends(get_session)):
    return await bulk_order_coordinator.stats(session)


@router.get("/bulk-orders/{order_id}", response_model=BulkOrderDetailOut)
async def get_bulk_order(order_id: int, session: AsyncSession = Depends(get_session)):
    order, items = await bulk_order_coordinator.get_bulk_order(session, order_id)
    return order_detail(order, items)


@router.patch("/bulk-orders/{order_id}", response_model=BulkOrderOut)
async def update_bulk_order_status(
    order_id: int, data: BulkOrderStatusUpdate, session: AsyncSession = Depends(get_session)
):
    """Approval state only; the ledger is untouched."""
    return await bulk_order_coordinator.update_status(session, order_id, data.status, data.notes)


@router.delete("/bulk-orders/{order_id}")
async def delete_bulk_order(
    order_id: int,
    admin: CurrentUser = Depends(admin_only),
    session: AsyncSession = Depends(get_session),
):
    """
    🗑️ Reverses the order's ledger posting (rebalancing every later entry)
    and deletes the order, atomically.
    """
    logger.warning(f"🗑️ Admin {admin.id} deleting BO-{order_id}")
    await bulk_order_coordinator.delete_bulk_order(session, order_id)
    return {"message": "Bulk order deleted successfully", "order_id": order_id}


# --- Bulk price list ---


@router.get("/bulk-items", response_model=Page[BulkItemOut])
async def list_bulk_items(params: PageParams = Depends(), session: AsyncSession = Depends(get_session)):
    items, total = await bulk_catalog.list_items(session, page=params.page, limit=params.limit)
    return {"items": items, "pagination": params.pagination(total)}


@router.post("/bulk-items", response_model=BulkItemOut, status_code=status.HTTP_201_CREATED)
async def upsert_bulk_item(data: BulkItemConfig, response: Response, session: AsyncSession = Depends(get_session)):
    """Creates the entry for a product, or replaces it when one exists (200)."""
    item, created = await bulk_catalog.upsert(session, data.model_dump())
    if not created:
        response.status_code = status.HTTP_200_OK
    return item


@router.put("/bulk-items/{item_id}", response_model=BulkItemOut)
async def update_bulk_item(item_id: int, data: BulkItemPatch, session: AsyncSession = Depends(get_session)):
    return await bulk_catalog.update(session, item_id, data.model_dump(exclude_unset=True))


@router.delete("/bulk-items/{item_id}")
async def delete_bulk_item(item_id: int, session: AsyncSession = Depends(get_session)):
    await bulk_catalog.delete(session, item_id)
    return {"message": "Bulk item deleted successfully", "id": item_id}
