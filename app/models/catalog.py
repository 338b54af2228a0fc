from sqlalchemy import DECIMAL, Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String

from app.models.base import Base, utcnow


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (CheckConstraint("stock >= 0", name="stock_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    price = Column(DECIMAL(12, 2), nullable=False)  # Tax inclusive
    gst_rate = Column(DECIMAL(5, 2), nullable=True)  # Percent, e.g. 18.00
    delivery_charges = Column(DECIMAL(12, 2), nullable=False, default=0)  # Flat, per seller per order

    stock = Column(Integer, nullable=False, default=0)
    approved = Column(Boolean, nullable=False, default=False)
    deleted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)


class ProductVariant(Base):
    __tablename__ = "product_variants"
    __table_args__ = (CheckConstraint("stock >= 0", name="variant_stock_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String(100))
    price = Column(DECIMAL(12, 2), nullable=True)  # Falls back to product price
    stock = Column(Integer, nullable=False, default=0)


class BulkItem(Base):
    """Distributor price list entry: one per bulk-eligible product."""

    __tablename__ = "bulk_items"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), unique=True, nullable=False)

    allow_pieces = Column(Boolean, nullable=False, default=True)
    allow_sets = Column(Boolean, nullable=False, default=False)
    pieces_per_set = Column(Integer, nullable=True)  # Required when allow_sets
    selling_price = Column(DECIMAL(12, 2), nullable=True)  # Falls back to product price

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
