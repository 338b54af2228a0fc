import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update

from app.core.errors import BusinessRuleViolation, InsufficientStockError, NotFoundError, ValidationError
from app.models.catalog import Product, ProductVariant
from app.models.orders import Order, OrderItem, SellerOrder
from app.services.orders.coordinator import order_coordinator


async def count(session, model):
    return await session.scalar(select(func.count()).select_from(model))


async def stock(session, product):
    return await session.scalar(select(Product.stock).where(Product.id == product.id))


@pytest.mark.asyncio
async def test_multi_seller_order(session, seed):
    items = [
        {"product_id": seed.product_a.id, "quantity": 2},  # seller A: 200
        {"product_id": seed.product_b.id, "quantity": 1},  # seller A: 50
        {"product_id": seed.product_c.id, "quantity": 1},  # seller B: 200
    ]

    placed = await order_coordinator.place_order(session, seed.buyer.id, seed.address.id, items, "cod")

    # 250 + 200 + delivery (40 first-seen for A, 60 for B)
    assert placed.order.total == Decimal("550.00")
    assert placed.order.status == "pending"
    assert placed.order.payment_method == "cod"
    assert [i.price for i in placed.items] == [Decimal("100.00"), Decimal("50.00"), Decimal("200.00")]

    by_seller = {so.seller_id: so for so in placed.seller_orders}
    assert by_seller[seed.seller_a.id].subtotal == Decimal("250.00")
    assert by_seller[seed.seller_a.id].delivery_charge == Decimal("40.00")
    assert by_seller[seed.seller_b.id].subtotal == Decimal("200.00")

    for product, left in ((seed.product_a, 8), (seed.product_b, 9), (seed.product_c, 9)):
        assert await stock(session, product) == left


@pytest.mark.asyncio
async def test_shipping_snapshot(session, seed):
    placed = await order_coordinator.place_order(
        session, seed.buyer.id, seed.address.id, [{"product_id": seed.product_c.id, "quantity": 1}], "cod"
    )

    assert placed.order.shipping_details == {
        "full_name": "Asha Buyer",
        "email": "buyer@example.com",
        "address": "12 MG Road",
        "city": "Pune",
        "state": "MH",
        "pincode": "411001",
        "country": "India",
        "phone": "9000000001",
    }


@pytest.mark.asyncio
async def test_all_or_nothing(session, seed):
    """[valid, valid, out-of-stock] leaves no trace."""
    items = [
        {"product_id": seed.product_a.id, "quantity": 1},
        {"product_id": seed.product_c.id, "quantity": 1},
        {"product_id": seed.product_low.id, "quantity": 5},
    ]

    with pytest.raises(InsufficientStockError):
        await order_coordinator.place_order(session, seed.buyer.id, seed.address.id, items, "cod")

    assert await count(session, Order) == 0
    assert await count(session, OrderItem) == 0
    assert await count(session, SellerOrder) == 0
    for product, left in ((seed.product_a, 10), (seed.product_c, 10), (seed.product_low, 1)):
        assert await stock(session, product) == left


@pytest.mark.asyncio
async def test_duplicate_lines_cannot_oversell(session, seed):
    """Each line fits alone; together they exceed stock. The decrement catches it and rolls back."""
    items = [
        {"product_id": seed.product_a.id, "quantity": 6},
        {"product_id": seed.product_a.id, "quantity": 6},
    ]

    with pytest.raises(InsufficientStockError):
        await order_coordinator.place_order(session, seed.buyer.id, seed.address.id, items, "cod")

    assert await stock(session, seed.product_a) == 10
    assert await count(session, Order) == 0


@pytest.mark.asyncio
async def test_second_order_is_told_what_is_left(session_factory, seed, session):
    """Stock 5, two sequential orders of 3 from separate sessions: the second is refused with 2 left."""
    await session.execute(update(Product).where(Product.id == seed.product_c.id).values(stock=5))
    await session.commit()
    items = [{"product_id": seed.product_c.id, "quantity": 3}]

    async def attempt():
        async with session_factory() as s:
            try:
                await order_coordinator.place_order(s, seed.buyer.id, seed.address.id, items, "cod")
                return "ok"
            except InsufficientStockError as e:
                return e

    first = await attempt()
    second = await attempt()

    assert first == "ok"
    assert isinstance(second, InsufficientStockError)
    assert second.available == 2

    assert await stock(session, seed.product_c) == 2


@pytest.mark.asyncio
async def test_variant_stock_is_decremented(session, seed):
    placed = await order_coordinator.place_order(
        session,
        seed.buyer.id,
        seed.address.id,
        [{"product_id": seed.product_a.id, "quantity": 2, "variant_id": seed.variant.id}],
        "cod",
    )

    assert placed.items[0].variant_id == seed.variant.id
    assert placed.items[0].price == Decimal("120.00")
    assert await session.scalar(select(ProductVariant.stock).where(ProductVariant.id == seed.variant.id)) == 1
    assert await stock(session, seed.product_a) == 8


@pytest.mark.asyncio
async def test_admin_order_is_prepaid_and_stamped(session, seed):
    placed = await order_coordinator.place_order(
        session,
        seed.buyer.id,
        seed.address.id,
        [{"product_id": seed.product_c.id, "quantity": 1}],
        "cod",
        placed_by=seed.admin.id,
    )

    assert placed.order.payment_method == "prepaid"
    assert placed.order.placed_by == seed.admin.id


@pytest.mark.asyncio
async def test_preconditions(session, seed):
    one = [{"product_id": seed.product_c.id, "quantity": 1}]

    with pytest.raises(NotFoundError):
        await order_coordinator.place_order(session, 9999, seed.address.id, one, "cod")

    # Address belongs to someone else
    with pytest.raises(NotFoundError):
        await order_coordinator.place_order(session, seed.buyer.id, seed.foreign_address.id, one, "cod")

    with pytest.raises(BusinessRuleViolation):
        await order_coordinator.place_order(session, seed.dist_user.id, seed.address.id, one, "cod")

    with pytest.raises(ValidationError):
        await order_coordinator.place_order(session, seed.buyer.id, seed.address.id, [], "cod")

    assert await count(session, Order) == 0


@pytest.mark.asyncio
async def test_notification_after_commit(session, seed, mock_webhook):
    placed = await order_coordinator.place_order(
        session, seed.buyer.id, seed.address.id, [{"product_id": seed.product_c.id, "quantity": 1}], "cod"
    )
    await asyncio.sleep(0)

    payload = mock_webhook.send.call_args.args[0]
    assert payload["event"] == "order.placed"
    assert payload["data"]["order_id"] == placed.order.id


@pytest.mark.asyncio
async def test_preview_invoice_writes_nothing(session, seed):
    preview = await order_coordinator.preview_invoice(
        session,
        seed.buyer.id,
        seed.address.id,
        [{"product_id": seed.product_a.id, "quantity": 1}, {"product_id": seed.product_c.id, "quantity": 1}],
    )

    line_a = preview["items"][0]
    assert line_a["taxable_value"] == Decimal("84.75")
    assert line_a["gst_amount"] == Decimal("15.25")
    assert preview["delivery_by_seller"] == {seed.seller_a.id: Decimal("40.00"), seed.seller_b.id: Decimal("60.00")}
    assert preview["summary"]["subtotal"] == Decimal("300.00")
    assert preview["summary"]["total"] == Decimal("400.00")
    assert preview["buyer"]["email"] == "buyer@example.com"

    assert await count(session, Order) == 0
    assert await stock(session, seed.product_a) == 10
