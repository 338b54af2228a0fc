from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class OrderOut(ORMModel):
    id: int
    user_id: int
    address_id: int
    status: str
    total: Decimal
    payment_method: str
    shipping_details: Dict[str, Any]
    placed_by: Optional[int] = None
    created_at: Optional[datetime] = None


class OrderItemOut(ORMModel):
    id: int
    order_id: int
    product_id: int
    variant_id: Optional[int] = None
    seller_id: Optional[int] = None
    quantity: int
    price: Decimal


class SellerOrderOut(ORMModel):
    id: int
    order_id: int
    seller_id: int
    subtotal: Decimal
    delivery_charge: Decimal
    status: str


class PlacedOrderOut(BaseModel):
    message: str = "Order created successfully"
    order: OrderOut
    items: List[OrderItemOut]
    seller_orders: List[SellerOrderOut] = []


class BulkOrderOut(ORMModel):
    id: int
    distributor_user_id: int
    total_amount: Decimal
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BulkOrderItemOut(ORMModel):
    id: int
    bulk_order_id: int
    product_id: int
    order_type: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class PlacedBulkOrderOut(BaseModel):
    order: BulkOrderOut
    items: List[BulkOrderItemOut]
    ledger_posted: bool


class BulkOrderDetailOut(BulkOrderOut):
    items: List[BulkOrderItemOut] = []


class BulkOrderStatusStat(BaseModel):
    status: str
    count: int
    total_amount: Decimal


class BulkOrderStatsOut(BaseModel):
    by_status: List[BulkOrderStatusStat]
    total: int


class BulkItemOut(ORMModel):
    id: int
    product_id: int
    allow_pieces: bool
    allow_sets: bool
    pieces_per_set: Optional[int] = None
    selling_price: Optional[Decimal] = None


class AvailableBulkItemOut(BulkItemOut):
    product_name: str
    product_price: Decimal
    product_sku: Optional[str] = None
    product_stock: int


class LedgerEntryOut(ORMModel):
    id: int
    distributor_id: int
    entry_type: str
    amount: Decimal
    balance_after: Decimal
    order_id: Optional[int] = None
    order_type: str
    description: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None


class DistributorOut(ORMModel):
    id: int
    user_id: int
    current_balance: Decimal
    total_ordered: Decimal


class LedgerOut(BaseModel):
    distributor: DistributorOut
    entries: List[LedgerEntryOut]


class InvoiceLineOut(BaseModel):
    product_id: int
    product_name: str
    seller_id: Optional[int] = None
    quantity: int
    price: Decimal
    gst_rate: Decimal
    taxable_value: Decimal
    gst_amount: Decimal
    total: Decimal


class InvoiceSummaryOut(BaseModel):
    subtotal: Decimal
    taxable_value: Decimal
    gst_amount: Decimal
    delivery_charges: Decimal
    total: Decimal


class InvoicePreviewOut(BaseModel):
    buyer: Dict[str, Any]
    address: Dict[str, Any]
    items: List[InvoiceLineOut]
    delivery_by_seller: Dict[int, Decimal]
    summary: InvoiceSummaryOut
