import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_roles
from app.core.security import ROLE_BUYER, CurrentUser
from app.db.session import get_session
from app.schemas.requests import PlaceOrderRequest
from app.schemas.responses import PlacedOrderOut
from app.services.orders.coordinator import order_coordinator

logger = logging.getLogger("API_Orders")
router = APIRouter()


@router.post("", response_model=PlacedOrderOut, status_code=status.HTTP_201_CREATED)
async def place_order(
    data: PlaceOrderRequest,
    user: CurrentUser = Depends(require_roles(ROLE_BUYER)),
    session: AsyncSession = Depends(get_session),
):
    """
    🛒 Checkout.
    All-or-nothing: a single bad line (missing, unapproved, short on stock)
    fails the whole order and nothing is written.
    """
    logger.info(f"📥 Order request: buyer={user.id} lines={len(data.items)}")
    placed = await order_coordinator.place_order(
        session, user.id, data.address_id, data.items, data.payment_method
    )
    return {"order": placed.order, "items": placed.items, "seller_orders": placed.seller_orders}
