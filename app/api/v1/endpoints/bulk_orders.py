import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import PageParams, require_roles
from app.core.security import ROLE_ADMIN, ROLE_DISTRIBUTOR, CurrentUser
from app.db.session import get_session
from app.schemas.common import Page
from app.schemas.requests import PlaceBulkOrderRequest
from app.schemas.responses import AvailableBulkItemOut, BulkOrderDetailOut, BulkOrderOut, PlacedBulkOrderOut
from app.services.bulk.catalog import bulk_catalog
from app.services.bulk.coordinator import bulk_order_coordinator

logger = logging.getLogger("API_BulkOrders")
router = APIRouter()


def order_detail(order, items) -> dict:
    return {**BulkOrderOut.model_validate(order).model_dump(), "items": items}


@router.get("/bulk-items", response_model=list[AvailableBulkItemOut])
async def available_bulk_items(
    user: CurrentUser = Depends(require_roles(ROLE_DISTRIBUTOR, ROLE_ADMIN)),
    session: AsyncSession = Depends(get_session),
):
    """Price list a distributor can order from."""
    return await bulk_catalog.list_available(session)


@router.post("/bulk-orders", response_model=PlacedBulkOrderOut, status_code=status.HTTP_201_CREATED)
async def place_bulk_order(
    data: PlaceBulkOrderRequest,
    user: CurrentUser = Depends(require_roles(ROLE_DISTRIBUTOR)),
    session: AsyncSession = Depends(get_session),
):
    """
    📦 Distributor purchase.
    Returns 201 once the order is committed, even if the ledger posting
    failed afterwards (`ledger_posted` tells which).
    """
    logger.info(f"📥 Bulk order request: distributor_user={user.id} lines={len(data.items)}")
    placed = await bulk_order_coordinator.place_bulk_order(session, user.id, data.items, notes=data.notes)
    return {"order": placed.order, "items": placed.items, "ledger_posted": placed.ledger_posted}


@router.get("/bulk-orders", response_model=Page[BulkOrderOut])
async def list_bulk_orders(
    params: PageParams = Depends(),
    user: CurrentUser = Depends(require_roles(ROLE_DISTRIBUTOR, ROLE_ADMIN)),
    session: AsyncSession = Depends(get_session),
):
    scope = None if user.is_admin else user.id
    orders, total = await bulk_order_coordinator.list_bulk_orders(
        session, distributor_user_id=scope, page=params.page, limit=params.limit
    )
    return {"items": orders, "pagination": params.pagination(total)}


@router.get("/bulk-orders/{order_id}", response_model=BulkOrderDetailOut)
async def get_bulk_order(
    order_id: int,
    user: CurrentUser = Depends(require_roles(ROLE_DISTRIBUTOR, ROLE_ADMIN)),
    session: AsyncSession = Depends(get_session),
):
    order, items = await bulk_order_coordinator.get_bulk_order(session, order_id, caller=user)
    return order_detail(order, items)
