from sqlalchemy import DECIMAL, CheckConstraint, Column, DateTime, ForeignKey, Integer, String

from app.models.base import Base, JSONType, utcnow


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    address_id = Column(Integer, ForeignKey("user_addresses.id"), nullable=False)

    status = Column(String(20), nullable=False, default="pending", index=True)
    total = Column(DECIMAL(12, 2), nullable=False)  # Lines + per-seller delivery
    payment_method = Column(String(20), nullable=False, default="cod")

    # Address frozen at order time; later address edits must not rewrite history
    shipping_details = Column(JSONType, nullable=False)
    placed_by = Column(Integer, ForeignKey("users.id"), nullable=True)  # Admin acting for the buyer

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (CheckConstraint("quantity > 0", name="quantity_positive"),)

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    quantity = Column(Integer, nullable=False)
    price = Column(DECIMAL(12, 2), nullable=False)  # Unit price frozen at order time


class SellerOrder(Base):
    __tablename__ = "seller_orders"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    subtotal = Column(DECIMAL(12, 2), nullable=False)
    delivery_charge = Column(DECIMAL(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default="pending")

    created_at = Column(DateTime(timezone=True), default=utcnow)
