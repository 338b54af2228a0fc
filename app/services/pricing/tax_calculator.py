from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Optional[Number]) -> Decimal:
    """
    Rounds to the smallest currency unit (0.01), half-up.
    Idempotent: to_money(to_money(x)) == to_money(x).
    """
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        # str() first so floats like 0.1 do not drag binary noise along
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class TaxBreakdown:
    total: Decimal
    gst_rate: Decimal
    taxable_value: Decimal
    gst_amount: Decimal


class TaxCalculator:
    """
    Splits GST-inclusive amounts (catalog prices are tax inclusive).

        taxable = total / (1 + rate/100)     rounded half-up to 0.01
        gst     = total - taxable            (so taxable + gst == total exactly)
    """

    def decompose(self, total: Number, gst_rate: Optional[Number]) -> TaxBreakdown:
        total = to_money(total)
        rate = Decimal(str(gst_rate)) if gst_rate is not None else ZERO

        if rate <= 0:
            return TaxBreakdown(total=total, gst_rate=ZERO, taxable_value=total, gst_amount=ZERO)

        taxable = to_money(total / (1 + rate / 100))
        return TaxBreakdown(total=total, gst_rate=rate, taxable_value=taxable, gst_amount=total - taxable)

    def line_total(self, quantity: int, unit_price: Number) -> Decimal:
        return to_money(to_money(unit_price) * quantity)


tax_calculator = TaxCalculator()
