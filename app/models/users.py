from sqlalchemy import DECIMAL, Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from app.models.base import Base, utcnow


class User(Base):
    """Owned by the auth service; read-only here."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(255), nullable=False)
    name = Column(String(255))
    phone = Column(String(20))
    role = Column(String(20), nullable=False, default="buyer")  # buyer / seller / admin / distributor
    deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Address(Base):
    __tablename__ = "user_addresses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    address = Column(Text, nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    pincode = Column(String(10), nullable=False)
    phone = Column(String(20), nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Distributor(Base):
    """
    Account with a running balance.
    current_balance / total_ordered are a cache of the ledger and are
    written ONLY by app.services.ledger.service.
    """

    __tablename__ = "distributors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    current_balance = Column(DECIMAL(12, 2), nullable=False, default=0)
    total_ordered = Column(DECIMAL(12, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
