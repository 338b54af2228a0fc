import os
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from cryptography.fernet import Fernet

# 1. Settings must be in place before anything under app/ is imported
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENV"] = "test"
os.environ.pop("NOTIFY_WEBHOOK_URL", None)

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import bulk_orders, catalog, ledger, orders, users  # noqa: F401
from app.models.base import Base
from app.models.catalog import BulkItem, Product, ProductVariant
from app.models.users import Address, Distributor, User


# 2. Real database: in-memory SQLite, one per test
@pytest.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # FK enforcement is off by default in SQLite (needed for ON DELETE CASCADE)
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_fk(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


# 3. Notifications never leave the process
@pytest.fixture(autouse=True)
def mock_webhook():
    with patch("app.notifications.manager.webhook_client") as mock:
        mock.send = AsyncMock(return_value=True)
        yield mock


# 4. A small marketplace
@pytest.fixture
async def seed(session_factory):
    """
    seller_a: product_a (100, delivery 40, gst 18), product_b (50, delivery 25)
    seller_b: product_c (200, delivery 60), product_low (stock 1)
    product_hidden: not approved
    product_a has a variant (price 120, stock 3)
    Bulk list: product_a pieces+sets (12/set, 90 each), product_c pieces only (catalog price)
    """
    async with session_factory() as session:
        return await _populate(session)


async def _populate(session):
    buyer = User(username="buyer", email="buyer@example.com", name="Asha Buyer", phone="9000000001", role="buyer")
    other_buyer = User(username="other", email="other@example.com", name="Other", phone="9000000002", role="buyer")
    seller_a = User(username="seller_a", email="a@example.com", name="Seller A", role="seller")
    seller_b = User(username="seller_b", email="b@example.com", name="Seller B", role="seller")
    admin = User(username="admin", email="admin@example.com", name="Admin", role="admin")
    dist_user = User(username="dist", email="dist@example.com", name="Dist", role="distributor")
    orphan_dist = User(username="dist2", email="dist2@example.com", name="No Account", role="distributor")
    session.add_all([buyer, other_buyer, seller_a, seller_b, admin, dist_user, orphan_dist])
    await session.flush()

    address = Address(
        user_id=buyer.id,
        full_name="Asha Buyer",
        address="12 MG Road",
        city="Pune",
        state="MH",
        pincode="411001",
        phone="9000000001",
        is_default=True,
    )
    foreign_address = Address(
        user_id=other_buyer.id,
        full_name="Other",
        address="1 Elsewhere",
        city="Delhi",
        state="DL",
        pincode="110001",
        phone="9000000002",
    )
    distributor = Distributor(user_id=dist_user.id, current_balance=Decimal("0"), total_ordered=Decimal("0"))

    def product(name, seller, price, stock, delivery="0", gst=None, approved=True):
        return Product(
            name=name,
            sku=name.upper(),
            seller_id=seller.id,
            price=Decimal(price),
            gst_rate=Decimal(gst) if gst is not None else None,
            delivery_charges=Decimal(delivery),
            stock=stock,
            approved=approved,
            deleted=False,
        )

    product_a = product("product_a", seller_a, "100", 10, delivery="40", gst="18")
    product_b = product("product_b", seller_a, "50", 10, delivery="25", gst="5")
    product_c = product("product_c", seller_b, "200", 10, delivery="60")
    product_low = product("product_low", seller_b, "10", 1)
    product_hidden = product("product_hidden", seller_b, "10", 10, approved=False)
    session.add_all([address, foreign_address, distributor, product_a, product_b, product_c, product_low, product_hidden])
    await session.flush()

    variant = ProductVariant(product_id=product_a.id, label="XL", price=Decimal("120"), stock=3)
    bulk_a = BulkItem(
        product_id=product_a.id, allow_pieces=True, allow_sets=True, pieces_per_set=12, selling_price=Decimal("90")
    )
    bulk_c = BulkItem(product_id=product_c.id, allow_pieces=True, allow_sets=False, pieces_per_set=None, selling_price=None)
    bulk_hidden = BulkItem(
        product_id=product_hidden.id, allow_pieces=True, allow_sets=False, pieces_per_set=None, selling_price=None
    )
    session.add_all([variant, bulk_a, bulk_c, bulk_hidden])
    await session.commit()

    return SimpleNamespace(
        buyer=buyer,
        other_buyer=other_buyer,
        seller_a=seller_a,
        seller_b=seller_b,
        admin=admin,
        dist_user=dist_user,
        orphan_dist=orphan_dist,
        distributor=distributor,
        address=address,
        foreign_address=foreign_address,
        product_a=product_a,
        product_b=product_b,
        product_c=product_c,
        product_low=product_low,
        product_hidden=product_hidden,
        variant=variant,
        bulk_a=bulk_a,
        bulk_c=bulk_c,
    )
