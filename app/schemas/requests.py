from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.common import BulkOrderStatus, BulkOrderType, LedgerEntryType


class OrderItemIn(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., gt=0)
    variant_id: Optional[int] = Field(default=None, gt=0)


class PlaceOrderRequest(BaseModel):
    address_id: int = Field(..., gt=0)
    items: List[OrderItemIn] = Field(..., min_length=1, description="At least one item is required")
    payment_method: str = Field(default="cod", min_length=1, max_length=20)


class AdminOrderForBuyerRequest(PlaceOrderRequest):
    buyer_id: int = Field(..., gt=0)


class InvoicePreviewRequest(BaseModel):
    buyer_id: int = Field(..., gt=0)
    address_id: int = Field(..., gt=0)
    items: List[OrderItemIn] = Field(..., min_length=1)


class BulkOrderItemIn(BaseModel):
    product_id: int = Field(..., gt=0)
    order_type: BulkOrderType
    quantity: int = Field(..., gt=0)


class PlaceBulkOrderRequest(BaseModel):
    items: List[BulkOrderItemIn] = Field(..., min_length=1, description="At least one item is required")
    notes: Optional[str] = None


class BulkOrderStatusUpdate(BaseModel):
    status: BulkOrderStatus
    notes: Optional[str] = None


class BulkItemConfig(BaseModel):
    """Create-or-update payload for a distributor price-list entry."""

    product_id: int = Field(..., gt=0)
    allow_pieces: bool = True
    allow_sets: bool = False
    pieces_per_set: Optional[int] = Field(default=None, gt=0)
    selling_price: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)

    @model_validator(mode="after")
    def validate_order_types(self) -> "BulkItemConfig":
        if self.allow_sets and not self.pieces_per_set:
            raise ValueError("pieces_per_set is required when allow_sets is true")
        if not self.allow_pieces and not self.allow_sets:
            raise ValueError("At least one of allow_pieces or allow_sets must be true")
        return self


class BulkItemPatch(BaseModel):
    """Partial update; rules are re-checked after merging with the stored row."""

    allow_pieces: Optional[bool] = None
    allow_sets: Optional[bool] = None
    pieces_per_set: Optional[int] = Field(default=None, gt=0)
    selling_price: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)


class LedgerAdjustmentRequest(BaseModel):
    entry_type: LedgerEntryType = LedgerEntryType.PAYMENT
    amount: Decimal = Field(..., max_digits=12, decimal_places=2, description="Signed amount")
    notes: Optional[str] = None

    @field_validator("entry_type")
    @classmethod
    def no_manual_orders(cls, v: LedgerEntryType) -> LedgerEntryType:
        # Order postings only come from the bulk order flow
        if v == LedgerEntryType.ORDER:
            raise ValueError("Order entries cannot be posted manually")
        return v

    @field_validator("amount")
    @classmethod
    def non_zero(cls, v: Decimal) -> Decimal:
        if v == 0:
            raise ValueError("Amount must be non-zero")
        return v
