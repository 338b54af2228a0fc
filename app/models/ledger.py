from sqlalchemy import DECIMAL, Column, DateTime, ForeignKey, Index, Integer, String, Text

from app.models.base import Base, utcnow


class LedgerEntry(Base):
    """
    One journal line of a distributor's account.

    Invariant (per distributor, ordered by id):
        balance_after[i] == balance_after[i-1] + amount[i]   (balance_after[-1] == 0)
    """

    __tablename__ = "distributor_ledger"
    __table_args__ = (
        # Ordered suffix scans: WHERE distributor_id = ? AND id > ? ORDER BY id
        Index("ix_distributor_ledger_distributor_id_id", "distributor_id", "id"),
        Index("ix_distributor_ledger_order", "order_id", "order_type"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    distributor_id = Column(Integer, ForeignKey("distributors.id", ondelete="CASCADE"), nullable=False)

    entry_type = Column(String(20), nullable=False)  # order / payment / adjustment
    amount = Column(DECIMAL(12, 2), nullable=False)  # Signed
    balance_after = Column(DECIMAL(12, 2), nullable=False)

    # No FK: points at orders.id (normal) or bulk_orders.id (bulk)
    order_id = Column(Integer, nullable=True)
    order_type = Column(String(10), nullable=False, default="normal")

    description = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
