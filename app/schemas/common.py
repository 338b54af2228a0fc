from enum import Enum
from typing import Generic, List, TypeVar

from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class BulkOrderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class BulkOrderType(str, Enum):
    PIECES = "pieces"
    SETS = "sets"


class LedgerEntryType(str, Enum):
    ORDER = "order"  # Adds to what the distributor owes
    PAYMENT = "payment"  # Money received (negative)
    ADJUSTMENT = "adjustment"  # Manual correction (signed)


class LedgerOrderType(str, Enum):
    NORMAL = "normal"
    BULK = "bulk"


T = TypeVar("T")


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class Page(BaseModel, Generic[T]):
    items: List[T] = Field(default_factory=list)
    pagination: Pagination
