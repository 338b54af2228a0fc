import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import BusinessRuleViolation, NotFoundError, ValidationError
from app.core.security import ROLE_DISTRIBUTOR
from app.core.settings import settings
from app.db.session import transaction
from app.models.orders import Order, OrderItem, SellerOrder
from app.models.users import Address, User
from app.notifications.manager import notification_manager
from app.schemas.common import OrderStatus
from app.services.orders.grouping import delivery_total, group_by_seller, order_total
from app.services.pricing.tax_calculator import ZERO, to_money
from app.services.pricing.validator import ValidatedLine, stock_validator

logger = logging.getLogger("OrderCoordinator")


@dataclass
class LineRequest:
    product_id: int
    quantity: int
    variant_id: Optional[int] = None


@dataclass
class PlacedOrder:
    order: Order
    items: List[OrderItem]
    seller_orders: List[SellerOrder]


class OrderCoordinator:
    """
    Turns a cart into a persisted multi-seller order.

    Everything between the first product lock and the commit is one
    transaction: any failure (bad product, short stock, lost decrement race)
    leaves no order, no items, no seller orders and untouched stock.
    """

    async def place_order(
        self,
        session: AsyncSession,
        buyer_id: int,
        address_id: int,
        items: Sequence[Any],
        payment_method: Optional[str] = None,
        placed_by: Optional[int] = None,
    ) -> PlacedOrder:
        requests = self._normalize(items)
        if placed_by is not None:
            payment_method = settings.ADMIN_PAYMENT_METHOD
        payment_method = payment_method or settings.DEFAULT_PAYMENT_METHOD

        async with transaction(session):
            buyer, address = await self._load_buyer_and_address(session, buyer_id, address_id)

            # 1. Validate (locks product rows)
            lines = await self._validate_all(session, requests, lock=True)

            # 2-3. Group + total
            groups = group_by_seller(lines)
            total = order_total(lines, groups)

            # 4. Header
            order = Order(
                user_id=buyer.id,
                address_id=address.id,
                status=OrderStatus.PENDING.value,
                total=total,
                payment_method=payment_method,
                shipping_details=self._shipping_snapshot(buyer, address),
                placed_by=placed_by,
            )
            session.add(order)
            await session.flush()

            # 5. Items
            order_items = [
                OrderItem(
                    order_id=order.id,
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    seller_id=line.seller_id,
                    quantity=line.quantity,
                    price=line.unit_price,
                )
                for line in lines
            ]
            session.add_all(order_items)

            # 6. Seller orders
            seller_orders = [
                SellerOrder(
                    order_id=order.id,
                    seller_id=group.seller_id,
                    subtotal=group.subtotal,
                    delivery_charge=group.delivery_charge,
                    status=OrderStatus.PENDING.value,
                )
                for group in groups.values()
            ]
            session.add_all(seller_orders)

            # 7. Stock (conditional decrement, re-checked at write time)
            for line in lines:
                await stock_validator.decrement_stock(session, line)

            await session.flush()
        # 8. Committed

        logger.info(
            f"🛒 Order #{order.id} placed: buyer={buyer_id} lines={len(order_items)} "
            f"sellers={len(seller_orders)} total={total}"
        )
        await notification_manager.order_placed(order.id, buyer_id, total, placed_by=placed_by)

        return PlacedOrder(order=order, items=order_items, seller_orders=seller_orders)

    async def preview_invoice(
        self,
        session: AsyncSession,
        buyer_id: int,
        address_id: int,
        items: Sequence[Any],
    ) -> Dict[str, Any]:
        """
        Read-only invoice for an admin about to order on a buyer's behalf.
        Same checks as place_order, but nothing is locked or written.
        """
        requests = self._normalize(items)
        buyer, address = await self._load_buyer_and_address(session, buyer_id, address_id)
        lines = await self._validate_all(session, requests, lock=False)
        groups = group_by_seller(lines)

        invoice_lines = [
            {
                "product_id": line.product_id,
                "product_name": line.product_name,
                "seller_id": line.seller_id,
                "quantity": line.quantity,
                "price": line.unit_price,
                "gst_rate": line.tax.gst_rate,
                "taxable_value": line.tax.taxable_value,
                "gst_amount": line.tax.gst_amount,
                "total": line.line_total,
            }
            for line in lines
        ]
        subtotal = to_money(sum((line.line_total for line in lines), ZERO))
        delivery = delivery_total(groups)

        return {
            "buyer": {"id": buyer.id, "name": buyer.name, "email": buyer.email, "phone": buyer.phone},
            "address": self._address_dict(address),
            "items": invoice_lines,
            "delivery_by_seller": {seller_id: g.delivery_charge for seller_id, g in groups.items()},
            "summary": {
                "subtotal": subtotal,
                "taxable_value": to_money(sum((line.tax.taxable_value for line in lines), ZERO)),
                "gst_amount": to_money(sum((line.tax.gst_amount for line in lines), ZERO)),
                "delivery_charges": delivery,
                "total": order_total(lines, groups),
            },
        }

    # --- Helpers ---

    def _normalize(self, items: Sequence[Any]) -> List[LineRequest]:
        if not items:
            raise ValidationError("At least one item is required")

        requests = []
        for item in items:
            if isinstance(item, dict):
                req = LineRequest(item["product_id"], item["quantity"], item.get("variant_id"))
            else:
                req = LineRequest(item.product_id, item.quantity, getattr(item, "variant_id", None))
            if req.quantity is None or req.quantity <= 0:
                raise ValidationError(
                    f"Quantity must be positive for product {req.product_id}",
                    {"product_id": req.product_id, "quantity": req.quantity},
                )
            requests.append(req)
        return requests

    async def _validate_all(
        self, session: AsyncSession, requests: List[LineRequest], lock: bool
    ) -> List[ValidatedLine]:
        # Lock rows in a global (product, variant) order so two carts holding the
        # same products in opposite order cannot deadlock. Output keeps cart order.
        order = sorted(range(len(requests)), key=lambda i: (requests[i].product_id, requests[i].variant_id or 0))
        validated: Dict[int, ValidatedLine] = {}
        for i in order:
            req = requests[i]
            validated[i] = await stock_validator.validate_line(
                session, req.product_id, req.quantity, variant_id=req.variant_id, lock=lock
            )
        return [validated[i] for i in range(len(requests))]

    async def _load_buyer_and_address(
        self, session: AsyncSession, buyer_id: int, address_id: int
    ) -> Tuple[User, Address]:
        buyer = await session.get(User, buyer_id)
        if buyer is None or buyer.deleted:
            raise NotFoundError(f"Buyer not found: {buyer_id}", {"buyer_id": buyer_id})
        if buyer.role == ROLE_DISTRIBUTOR:
            raise BusinessRuleViolation(
                "Distributors must use bulk orders", {"buyer_id": buyer_id, "role": buyer.role}
            )

        address = (
            await session.execute(
                select(Address).where(
                    Address.id == address_id,
                    Address.user_id == buyer_id,
                    Address.deleted.is_(False),
                )
            )
        ).scalars().first()
        if address is None:
            raise NotFoundError("Address not found", {"address_id": address_id, "buyer_id": buyer_id})
        return buyer, address

    def _shipping_snapshot(self, buyer: User, address: Address) -> Dict[str, Any]:
        return {
            "full_name": address.full_name,
            "email": buyer.email,
            "address": address.address,
            "city": address.city,
            "state": address.state,
            "pincode": address.pincode,
            "country": settings.SHIPPING_COUNTRY,
            "phone": address.phone,
        }

    def _address_dict(self, address: Address) -> Dict[str, Any]:
        return {
            "id": address.id,
            "full_name": address.full_name,
            "address": address.address,
            "city": address.city,
            "state": address.state,
            "pincode": address.pincode,
            "phone": address.phone,
        }


order_coordinator = OrderCoordinator()
