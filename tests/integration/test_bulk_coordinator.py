import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select, update

from app.core.errors import (
    AuthorizationError,
    InsufficientStockError,
    NotApprovedError,
    NotBulkEligibleError,
    NotFoundError,
    OrderTypeNotAllowedError,
)
from app.core.security import CurrentUser
from app.models.bulk_orders import BulkOrder, BulkOrderItem
from app.models.catalog import Product
from app.models.ledger import LedgerEntry
from app.models.users import Distributor
from app.services.bulk.coordinator import bulk_order_coordinator
from app.services.ledger.service import ledger_service


async def count(session, model):
    return await session.scalar(select(func.count()).select_from(model))


async def distributor_row(session, seed):
    return (
        await session.execute(
            select(Distributor)
            .where(Distributor.id == seed.distributor.id)
            .execution_options(populate_existing=True)
        )
    ).scalars().one()


@pytest.mark.asyncio
async def test_set_expansion_and_pricing(session, seed):
    """12 per set x 3 sets = 36 pieces at the 90 distributor price."""
    await session.execute(update(Product).where(Product.id == seed.product_a.id).values(stock=36))
    await session.commit()

    placed = await bulk_order_coordinator.place_bulk_order(
        session,
        seed.dist_user.id,
        [
            {"product_id": seed.product_a.id, "order_type": "sets", "quantity": 3},
            {"product_id": seed.product_c.id, "order_type": "pieces", "quantity": 2},
        ],
        notes="Diwali stock",
    )

    sets_line, pieces_line = placed.items
    assert sets_line.quantity == 3  # As ordered
    assert sets_line.unit_price == Decimal("90.00")
    assert sets_line.total_price == Decimal("3240.00")  # 36 x 90
    assert pieces_line.unit_price == Decimal("200.00")  # No selling price: catalog price
    assert pieces_line.total_price == Decimal("400.00")

    assert placed.order.total_amount == Decimal("3640.00")
    assert placed.order.status == "pending"
    assert placed.order.notes == "Diwali stock"
    assert placed.ledger_posted is True

    line = await bulk_order_coordinator.price_line(session, seed.product_a.id, "sets", 3)
    assert line.actual_quantity == 36
    assert line.total_price == Decimal("3240.00")


@pytest.mark.asyncio
async def test_posts_to_ledger(session, seed):
    placed = await bulk_order_coordinator.place_bulk_order(
        session, seed.dist_user.id, [{"product_id": seed.product_c.id, "order_type": "pieces", "quantity": 1}]
    )

    entry = (await session.execute(select(LedgerEntry))).scalars().one()
    assert entry.entry_type == "order"
    assert entry.order_type == "bulk"
    assert entry.order_id == placed.order.id
    assert entry.amount == Decimal("200.00")
    assert entry.balance_after == Decimal("200.00")
    assert entry.description == f"Bulk Order BO-{placed.order.id} - 1 item(s)"

    distributor = await distributor_row(session, seed)
    assert distributor.current_balance == Decimal("200.00")
    assert distributor.total_ordered == Decimal("200.00")


@pytest.mark.asyncio
async def test_bulk_order_does_not_touch_stock(session, seed):
    await bulk_order_coordinator.place_bulk_order(
        session, seed.dist_user.id, [{"product_id": seed.product_c.id, "order_type": "pieces", "quantity": 4}]
    )

    assert await session.scalar(select(Product.stock).where(Product.id == seed.product_c.id)) == 10


@pytest.mark.asyncio
async def test_rejections_write_nothing(session, seed):
    cases = [
        ({"product_id": seed.product_b.id, "order_type": "pieces", "quantity": 1}, NotBulkEligibleError),
        ({"product_id": seed.product_c.id, "order_type": "sets", "quantity": 1}, OrderTypeNotAllowedError),
        ({"product_id": seed.product_hidden.id, "order_type": "pieces", "quantity": 1}, NotApprovedError),
        ({"product_id": seed.product_a.id, "order_type": "sets", "quantity": 1}, InsufficientStockError),  # 12 > 10
    ]
    for item, error in cases:
        good = {"product_id": seed.product_c.id, "order_type": "pieces", "quantity": 1}
        with pytest.raises(error):
            await bulk_order_coordinator.place_bulk_order(session, seed.dist_user.id, [good, item])

    assert await count(session, BulkOrder) == 0
    assert await count(session, BulkOrderItem) == 0
    assert await count(session, LedgerEntry) == 0


@pytest.mark.asyncio
async def test_ledger_failure_keeps_the_order(session, seed, mock_webhook):
    """Phase 2 blows up: order stays, caller still gets it, ops get a CRITICAL alert."""
    with patch.object(ledger_service, "post_bulk_order", AsyncMock(side_effect=RuntimeError("ledger down"))):
        placed = await bulk_order_coordinator.place_bulk_order(
            session, seed.dist_user.id, [{"product_id": seed.product_c.id, "order_type": "pieces", "quantity": 1}]
        )
    await asyncio.sleep(0)

    assert placed.ledger_posted is False
    assert placed.order.id is not None
    assert await count(session, BulkOrder) == 1
    assert await count(session, LedgerEntry) == 0

    events = [c.args[0]["event"] for c in mock_webhook.send.call_args_list]
    assert "ledger.unposted" in events


@pytest.mark.asyncio
async def test_user_without_account_is_not_posted(session, seed):
    placed = await bulk_order_coordinator.place_bulk_order(
        session, seed.orphan_dist.id, [{"product_id": seed.product_c.id, "order_type": "pieces", "quantity": 1}]
    )

    assert placed.ledger_posted is False
    assert await count(session, LedgerEntry) == 0


@pytest.mark.asyncio
async def test_visibility_and_listing(session, seed):
    one = [{"product_id": seed.product_c.id, "order_type": "pieces", "quantity": 1}]
    mine = await bulk_order_coordinator.place_bulk_order(session, seed.dist_user.id, one)
    await bulk_order_coordinator.place_bulk_order(session, seed.orphan_dist.id, one)

    owner = CurrentUser(id=seed.dist_user.id, role="distributor")
    order, items = await bulk_order_coordinator.get_bulk_order(session, mine.order.id, caller=owner)
    assert order.id == mine.order.id
    assert len(items) == 1

    stranger = CurrentUser(id=seed.orphan_dist.id, role="distributor")
    with pytest.raises(AuthorizationError):
        await bulk_order_coordinator.get_bulk_order(session, mine.order.id, caller=stranger)

    admin = CurrentUser(id=seed.admin.id, role="admin")
    await bulk_order_coordinator.get_bulk_order(session, mine.order.id, caller=admin)

    with pytest.raises(NotFoundError):
        await bulk_order_coordinator.get_bulk_order(session, 9999, caller=admin)

    own, total = await bulk_order_coordinator.list_bulk_orders(session, distributor_user_id=seed.dist_user.id)
    assert total == 1 and own[0].id == mine.order.id

    _, everything = await bulk_order_coordinator.list_bulk_orders(session)
    assert everything == 2


@pytest.mark.asyncio
async def test_status_update_and_stats(session, seed):
    one = [{"product_id": seed.product_c.id, "order_type": "pieces", "quantity": 1}]
    first = await bulk_order_coordinator.place_bulk_order(session, seed.dist_user.id, one)
    await bulk_order_coordinator.place_bulk_order(session, seed.dist_user.id, one)

    updated = await bulk_order_coordinator.update_status(session, first.order.id, "approved", notes="ok to ship")
    assert updated.status == "approved"
    assert updated.notes == "ok to ship"

    # Approval never touches money
    assert (await distributor_row(session, seed)).current_balance == Decimal("400.00")

    stats = await bulk_order_coordinator.stats(session)
    assert stats["total"] == 2
    assert {s["status"]: (s["count"], s["total_amount"]) for s in stats["by_status"]} == {
        "approved": (1, Decimal("200.00")),
        "pending": (1, Decimal("200.00")),
    }

    approved, total = await bulk_order_coordinator.list_bulk_orders(session, status="approved")
    assert total == 1 and approved[0].id == first.order.id

    with pytest.raises(NotFoundError):
        await bulk_order_coordinator.update_status(session, 9999, "rejected")
