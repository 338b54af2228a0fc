import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError
from app.db.session import transaction
from app.models.catalog import BulkItem, Product

logger = logging.getLogger("BulkCatalog")

CONFIG_FIELDS = ("allow_pieces", "allow_sets", "pieces_per_set", "selling_price")


def check_order_types(allow_pieces: bool, allow_sets: bool, pieces_per_set: Optional[int]) -> None:
    if allow_sets and not pieces_per_set:
        raise ValidationError("pieces_per_set is required when allow_sets is true", {"pieces_per_set": pieces_per_set})
    if not allow_pieces and not allow_sets:
        raise ValidationError("At least one of allow_pieces or allow_sets must be true")


class BulkCatalog:
    """Distributor price list: which products can be bulk ordered, and how."""

    async def get(self, session: AsyncSession, item_id: int) -> BulkItem:
        item = await session.get(BulkItem, item_id)
        if item is None:
            raise NotFoundError(f"Bulk item not found: {item_id}", {"bulk_item_id": item_id})
        return item

    async def get_for_product(self, session: AsyncSession, product_id: int) -> Optional[BulkItem]:
        return (await session.execute(select(BulkItem).where(BulkItem.product_id == product_id))).scalars().first()

    async def list_items(self, session: AsyncSession, page: int = 1, limit: int = 20) -> Tuple[List[BulkItem], int]:
        total = await session.scalar(select(func.count(BulkItem.id)))
        items = (
            await session.execute(
                select(BulkItem).order_by(BulkItem.id.desc()).limit(limit).offset((page - 1) * limit)
            )
        ).scalars().all()
        return list(items), total or 0

    async def list_available(self, session: AsyncSession) -> List[Dict[str, Any]]:
        """What a distributor can order right now: configured AND approved, live products."""
        rows = (
            await session.execute(
                select(BulkItem, Product)
                .join(Product, Product.id == BulkItem.product_id)
                .where(Product.approved.is_(True), Product.deleted.is_(False))
                .order_by(Product.name)
            )
        ).all()
        return [
            {
                "id": item.id,
                "product_id": item.product_id,
                "allow_pieces": item.allow_pieces,
                "allow_sets": item.allow_sets,
                "pieces_per_set": item.pieces_per_set,
                "selling_price": item.selling_price,
                "product_name": product.name,
                "product_price": product.price,
                "product_sku": product.sku,
                "product_stock": product.stock,
            }
            for item, product in rows
        ]

    async def upsert(self, session: AsyncSession, config: Dict[str, Any]) -> Tuple[BulkItem, bool]:
        """Create or replace the entry for config['product_id']. Returns (item, created)."""
        product_id = config["product_id"]
        check_order_types(config.get("allow_pieces", True), config.get("allow_sets", False), config.get("pieces_per_set"))

        async with transaction(session):
            product = await session.get(Product, product_id)
            if product is None or product.deleted:
                raise NotFoundError(f"Product not found: {product_id}", {"product_id": product_id})

            item = await self.get_for_product(session, product_id)
            created = item is None
            if created:
                item = BulkItem(product_id=product_id)
                session.add(item)

            item.allow_pieces = config.get("allow_pieces", True)
            item.allow_sets = config.get("allow_sets", False)
            item.pieces_per_set = config.get("pieces_per_set")
            item.selling_price = config.get("selling_price")
            await session.flush()

        logger.info(f"📦 Bulk item {'created' if created else 'updated'} for product {product_id}")
        return item, created

    async def update(self, session: AsyncSession, item_id: int, changes: Dict[str, Any]) -> BulkItem:
        async with transaction(session):
            item = await self.get(session, item_id)
            merged = {name: getattr(item, name) for name in CONFIG_FIELDS}
            merged.update({k: v for k, v in changes.items() if k in CONFIG_FIELDS})
            check_order_types(merged["allow_pieces"], merged["allow_sets"], merged["pieces_per_set"])

            for name, value in merged.items():
                setattr(item, name, value)
            await session.flush()
        return item

    async def delete(self, session: AsyncSession, item_id: int) -> None:
        async with transaction(session):
            item = await self.get(session, item_id)
            await session.delete(item)
        logger.info(f"🗑️ Bulk item {item_id} removed")


bulk_catalog = BulkCatalog()
