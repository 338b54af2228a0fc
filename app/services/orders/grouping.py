from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Protocol

from app.services.pricing.tax_calculator import ZERO, to_money


class SellerLine(Protocol):
    seller_id: Optional[int]
    line_total: Decimal
    delivery_charge: Decimal


@dataclass
class SellerGroup:
    seller_id: int
    delivery_charge: Decimal
    subtotal: Decimal = ZERO
    items: List[SellerLine] = field(default_factory=list)


def group_by_seller(lines: Iterable[SellerLine]) -> Dict[int, SellerGroup]:
    """
    Partitions lines by seller, preserving first-seen order.

    Delivery is a flat per-seller-per-order charge: the first line seen for a
    seller sets it, later lines of the same seller do not add to it.
    Lines without a seller are not grouped (they carry no delivery charge).
    """
    groups: Dict[int, SellerGroup] = {}
    for line in lines:
        if line.seller_id is None:
            continue
        group = groups.get(line.seller_id)
        if group is None:
            group = SellerGroup(seller_id=line.seller_id, delivery_charge=to_money(line.delivery_charge))
            groups[line.seller_id] = group
        group.subtotal = to_money(group.subtotal + line.line_total)
        group.items.append(line)
    return groups


def delivery_total(groups: Dict[int, SellerGroup]) -> Decimal:
    return to_money(sum((g.delivery_charge for g in groups.values()), ZERO))


def order_total(lines: Iterable[SellerLine], groups: Dict[int, SellerGroup]) -> Decimal:
    """Σ line totals (every line, grouped or not) + Σ per-seller delivery."""
    items_total = sum((line.line_total for line in lines), ZERO)
    return to_money(items_total + delivery_total(groups))
