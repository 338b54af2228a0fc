import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError
from app.db.session import transaction
from app.models.bulk_orders import BulkOrder
from app.models.ledger import LedgerEntry
from app.models.users import Distributor
from app.schemas.common import LedgerEntryType, LedgerOrderType
from app.services.pricing.tax_calculator import ZERO, Number, to_money

logger = logging.getLogger("LedgerService")


class LedgerService:
    """
    Sole writer of distributor_ledger and of the Distributor aggregates
    (current_balance, total_ordered). Nothing else may touch those columns.

    Every mutation holds the distributor row FOR UPDATE, which serializes
    appends and deletions per distributor. Different distributors never
    contend.
    """

    # --- Reads ---

    async def get_distributor_by_user(
        self, session: AsyncSession, user_id: int, lock: bool = False
    ) -> Optional[Distributor]:
        stmt = select(Distributor).where(Distributor.user_id == user_id).execution_options(populate_existing=True)
        if lock:
            stmt = stmt.with_for_update()
        return (await session.execute(stmt)).scalars().first()

    async def get_distributor(self, session: AsyncSession, distributor_id: int) -> Distributor:
        distributor = await session.get(Distributor, distributor_id)
        if distributor is None:
            raise NotFoundError(f"Distributor not found: {distributor_id}", {"distributor_id": distributor_id})
        return distributor

    async def list_entries(
        self, session: AsyncSession, distributor_id: int, limit: int = 100, offset: int = 0
    ) -> Tuple[List[LedgerEntry], int]:
        """Newest first, like a bank statement."""
        total = await session.scalar(
            select(func.count(LedgerEntry.id)).where(LedgerEntry.distributor_id == distributor_id)
        )
        entries = (
            await session.execute(
                select(LedgerEntry)
                .where(LedgerEntry.distributor_id == distributor_id)
                .order_by(LedgerEntry.id.desc())
                .limit(limit)
                .offset(offset)
            )
        ).scalars().all()
        return list(entries), total or 0

    # --- Writes (caller owns the transaction) ---

    async def append(
        self,
        session: AsyncSession,
        distributor_id: int,
        amount: Number,
        entry_type: LedgerEntryType,
        order_id: Optional[int] = None,
        order_type: LedgerOrderType = LedgerOrderType.NORMAL,
        description: Optional[str] = None,
        created_by: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> LedgerEntry:
        entry_type = LedgerEntryType(entry_type)
        order_type = LedgerOrderType(order_type)
        amount = to_money(amount)

        distributor = await self._lock_distributor(session, distributor_id)
        previous_balance = await self._balance_before(session, distributor_id)
        balance_after = to_money(previous_balance + amount)

        entry = LedgerEntry(
            distributor_id=distributor_id,
            entry_type=entry_type.value,
            amount=amount,
            balance_after=balance_after,
            order_id=order_id,
            order_type=order_type.value,
            description=description,
            notes=notes,
            created_by=created_by,
        )
        session.add(entry)

        distributor.current_balance = balance_after
        if entry_type == LedgerEntryType.ORDER:
            distributor.total_ordered = to_money(to_money(distributor.total_ordered) + amount)

        await session.flush()
        logger.info(
            f"📒 Ledger #{entry.id} distributor={distributor_id} {entry_type.value} "
            f"{amount:+} -> balance {balance_after}"
        )
        return entry

    # --- Writes (own transaction) ---

    async def post_bulk_order(
        self,
        session: AsyncSession,
        distributor_user_id: int,
        bulk_order_id: int,
        total_amount: Number,
        item_count: int,
        created_by: Optional[int] = None,
    ) -> Optional[LedgerEntry]:
        """
        Financial half of a bulk order. Returns None when the user has no
        distributor account (nothing to post against).

        At most one posting per bulk order: if one exists (reconcile racing a
        slow placement, two operators running --apply) it is returned as is.
        """
        async with transaction(session):
            distributor = await self.get_distributor_by_user(session, distributor_user_id, lock=True)
            if distributor is None:
                logger.warning(
                    f"⚠️ No distributor account for user {distributor_user_id}; BO-{bulk_order_id} not posted"
                )
                return None

            existing = await self._find_order_entry(session, bulk_order_id, LedgerOrderType.BULK, distributor)
            if existing is not None:
                logger.info(f"📒 BO-{bulk_order_id} already posted as ledger #{existing.id}; skipped")
                return existing

            return await self.append(
                session,
                distributor.id,
                total_amount,
                LedgerEntryType.ORDER,
                order_id=bulk_order_id,
                order_type=LedgerOrderType.BULK,
                description=f"Bulk Order BO-{bulk_order_id} - {item_count} item(s)",
                created_by=created_by,
            )

    async def record_adjustment(
        self,
        session: AsyncSession,
        distributor_id: int,
        amount: Number,
        entry_type: LedgerEntryType = LedgerEntryType.PAYMENT,
        created_by: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Manual posting by an admin.
        Payments always reduce the balance; adjustments keep the sign given.
        """
        entry_type = LedgerEntryType(entry_type)
        if entry_type == LedgerEntryType.ORDER:
            raise ValidationError("Order entries are posted by the order flow only", {"entry_type": entry_type.value})

        amount = to_money(amount)
        if amount == ZERO:
            raise ValidationError("Amount must be non-zero", {"amount": str(amount)})
        if entry_type == LedgerEntryType.PAYMENT:
            amount = -abs(amount)

        description = "Payment received" if entry_type == LedgerEntryType.PAYMENT else "Manual adjustment"
        async with transaction(session):
            return await self.append(
                session,
                distributor_id,
                amount,
                entry_type,
                description=description,
                created_by=created_by,
                notes=notes,
            )

    async def delete_for_order(
        self, session: AsyncSession, order_id: int, order_type: LedgerOrderType = LedgerOrderType.BULK
    ) -> Optional[LedgerEntry]:
        """
        Administrative reversal of an order's posting, in ONE transaction:

            1. lock the distributor, delete the order's entry
            2. rewrite balance_after for every later entry (ascending id)
            3. current_balance = last rewritten balance (or the predecessor's, or 0)
            4. total_ordered -= deleted amount
            5. delete the bulk order itself (items go with the FK cascade)

        Any failure rolls all of it back. No entry => ledger untouched, order still deleted.
        Returns the removed entry, if there was one.
        """
        order_type = LedgerOrderType(order_type)

        async with transaction(session):
            bulk_order = None
            distributor = None
            if order_type == LedgerOrderType.BULK:
                bulk_order = await session.get(BulkOrder, order_id)
                if bulk_order is None:
                    raise NotFoundError(f"Bulk order not found: {order_id}", {"order_id": order_id})
                distributor = await self.get_distributor_by_user(session, bulk_order.distributor_user_id, lock=True)

            entry = await self._find_order_entry(session, order_id, order_type, distributor)
            if entry is not None and distributor is None:
                distributor = await self._lock_distributor(session, entry.distributor_id)
                # Re-read under the lock; a concurrent delete may have won
                entry = await self._find_order_entry(session, order_id, order_type, distributor)

            if entry is not None:
                await self._remove_and_rebalance(session, distributor, entry)
            else:
                logger.info(f"📒 No ledger entry for {order_type.value} order {order_id}; ledger untouched")

            if bulk_order is not None:
                await session.execute(delete(BulkOrder).where(BulkOrder.id == order_id))
                logger.info(f"🗑️ Bulk order BO-{order_id} deleted")

        return entry

    # --- Internals ---

    async def _lock_distributor(self, session: AsyncSession, distributor_id: int) -> Distributor:
        distributor = (
            await session.execute(
                select(Distributor)
                .where(Distributor.id == distributor_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalars().first()
        if distributor is None:
            raise NotFoundError(f"Distributor not found: {distributor_id}", {"distributor_id": distributor_id})
        return distributor

    async def _balance_before(
        self, session: AsyncSession, distributor_id: int, before_id: Optional[int] = None
    ) -> Decimal:
        """balance_after of the latest entry (optionally: latest with id < before_id), else 0."""
        stmt = select(LedgerEntry.balance_after).where(LedgerEntry.distributor_id == distributor_id)
        if before_id is not None:
            stmt = stmt.where(LedgerEntry.id < before_id)
        balance = await session.scalar(stmt.order_by(LedgerEntry.id.desc()).limit(1))
        return to_money(balance) if balance is not None else ZERO

    async def _find_order_entry(
        self,
        session: AsyncSession,
        order_id: int,
        order_type: LedgerOrderType,
        distributor: Optional[Distributor],
    ) -> Optional[LedgerEntry]:
        stmt = select(LedgerEntry).where(
            LedgerEntry.order_id == order_id,
            LedgerEntry.order_type == order_type.value,
            LedgerEntry.entry_type == LedgerEntryType.ORDER.value,
        )
        if distributor is not None:
            stmt = stmt.where(LedgerEntry.distributor_id == distributor.id)
        stmt = stmt.order_by(LedgerEntry.id).limit(1).execution_options(populate_existing=True)
        return (await session.execute(stmt)).scalars().first()

    async def _remove_and_rebalance(self, session: AsyncSession, distributor: Distributor, entry: LedgerEntry) -> None:
        running = await self._balance_before(session, distributor.id, before_id=entry.id)

        await session.delete(entry)

        suffix = (
            await session.execute(
                select(LedgerEntry)
                .where(LedgerEntry.distributor_id == distributor.id, LedgerEntry.id > entry.id)
                .order_by(LedgerEntry.id.asc())
                .execution_options(populate_existing=True)
            )
        ).scalars().all()

        # Each row's balance depends on the previous row's new balance
        for later in suffix:
            running = to_money(running + to_money(later.amount))
            later.balance_after = running

        distributor.current_balance = running
        if entry.entry_type == LedgerEntryType.ORDER.value:
            distributor.total_ordered = to_money(to_money(distributor.total_ordered) - to_money(entry.amount))

        await session.flush()
        logger.info(
            f"📒 Ledger #{entry.id} removed for distributor {distributor.id}; "
            f"{len(suffix)} later entries rebalanced, balance now {running}"
        )


def verify_chain(entries: Iterable[LedgerEntry]) -> bool:
    """
    True iff balance_after[i] == balance_after[i-1] + amount[i] (from 0),
    for entries of ONE distributor. Order is taken from id.
    """
    running = ZERO
    for entry in sorted(entries, key=lambda e: e.id):
        running = to_money(running + to_money(entry.amount))
        if to_money(entry.balance_after) != running:
            return False
    return True


ledger_service = LedgerService()
