from sqlalchemy import DECIMAL, Column, DateTime, ForeignKey, Integer, String, Text

from app.models.base import Base, utcnow


class BulkOrder(Base):
    __tablename__ = "bulk_orders"

    id = Column(Integer, primary_key=True, index=True)
    # The distributor's *user* id (not distributors.id)
    distributor_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    total_amount = Column(DECIMAL(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)  # pending / approved / rejected
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class BulkOrderItem(Base):
    __tablename__ = "bulk_order_items"

    id = Column(Integer, primary_key=True, index=True)
    bulk_order_id = Column(Integer, ForeignKey("bulk_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    order_type = Column(String(10), nullable=False)  # pieces / sets
    quantity = Column(Integer, nullable=False)  # As ordered (sets are NOT expanded here)
    unit_price = Column(DECIMAL(12, 2), nullable=False)  # Per piece
    total_price = Column(DECIMAL(12, 2), nullable=False)  # actual pieces x unit price

    created_at = Column(DateTime(timezone=True), default=utcnow)
