import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InsufficientStockError, NotApprovedError, NotFoundError
from app.models.catalog import Product, ProductVariant
from app.services.pricing.tax_calculator import TaxBreakdown, tax_calculator, to_money

logger = logging.getLogger("StockValidator")


@dataclass(frozen=True)
class ValidatedLine:
    product_id: int
    product_name: str
    variant_id: Optional[int]
    seller_id: Optional[int]
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    delivery_charge: Decimal
    tax: TaxBreakdown


class StockValidator:
    """
    Pricing & stock gate for a single order line.

    validate_line() reads the product row FOR UPDATE inside the caller's
    transaction, so the stock it checks is the stock the decrement will see.
    decrement_stock() re-checks at write time with a conditional UPDATE; it is
    the real oversell guard (it also catches duplicate lines of one product).
    """

    async def validate_line(
        self,
        session: AsyncSession,
        product_id: int,
        quantity: int,
        variant_id: Optional[int] = None,
        lock: bool = True,
    ) -> ValidatedLine:
        # 1. Product
        stmt = select(Product).where(Product.id == product_id).execution_options(populate_existing=True)
        if lock:
            stmt = stmt.with_for_update()
        product = (await session.execute(stmt)).scalars().first()

        if product is None or product.deleted:
            raise NotFoundError(f"Product not found: {product_id}", {"product_id": product_id})

        if not product.approved:
            raise NotApprovedError(f"Product not approved: {product.name}", {"product_id": product_id})

        available = product.stock
        unit_price = product.price

        # 2. Variant (must belong to the product)
        if variant_id is not None:
            v_stmt = (
                select(ProductVariant)
                .where(ProductVariant.id == variant_id, ProductVariant.product_id == product_id)
                .execution_options(populate_existing=True)
            )
            if lock:
                v_stmt = v_stmt.with_for_update()
            variant = (await session.execute(v_stmt)).scalars().first()

            if variant is None:
                raise NotFoundError(
                    f"Variant {variant_id} not found for product {product_id}",
                    {"product_id": product_id, "variant_id": variant_id},
                )
            available = min(available, variant.stock)
            if variant.price is not None:
                unit_price = variant.price

        # 3. Stock
        if quantity > available:
            raise InsufficientStockError(product.id, product.name, available, quantity)

        # 4. Price
        line_total = tax_calculator.line_total(quantity, unit_price)
        return ValidatedLine(
            product_id=product.id,
            product_name=product.name,
            variant_id=variant_id,
            seller_id=product.seller_id,
            quantity=quantity,
            unit_price=to_money(unit_price),
            line_total=line_total,
            delivery_charge=to_money(product.delivery_charges),
            tax=tax_calculator.decompose(line_total, product.gst_rate),
        )

    async def decrement_stock(self, session: AsyncSession, line: ValidatedLine) -> None:
        """
        stock = stock - qty WHERE stock >= qty. Zero rows => someone got there first.
        """
        result = await session.execute(
            update(Product)
            .where(Product.id == line.product_id, Product.stock >= line.quantity)
            .values(stock=Product.stock - line.quantity)
        )
        if result.rowcount != 1:
            available = await session.scalar(select(Product.stock).where(Product.id == line.product_id))
            logger.warning(
                f"⚠️ Stock race lost for product {line.product_id}: wanted {line.quantity}, have {available}"
            )
            raise InsufficientStockError(line.product_id, line.product_name, available or 0, line.quantity)

        if line.variant_id is not None:
            result = await session.execute(
                update(ProductVariant)
                .where(ProductVariant.id == line.variant_id, ProductVariant.stock >= line.quantity)
                .values(stock=ProductVariant.stock - line.quantity)
            )
            if result.rowcount != 1:
                available = await session.scalar(
                    select(ProductVariant.stock).where(ProductVariant.id == line.variant_id)
                )
                raise InsufficientStockError(line.product_id, line.product_name, available or 0, line.quantity)


stock_validator = StockValidator()
