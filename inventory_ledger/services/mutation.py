import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from inventory_ledger.core.exceptions import (
    ConcurrentModificationError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from inventory_ledger.models.inventory import InventoryItem
from inventory_ledger.models.transaction import (
    INBOUND_TYPES,
    InventoryTransaction,
    TransactionStatusEnum,
    TransactionTypeEnum,
)
from inventory_ledger.schemas.inventory import ActorSchema
from inventory_ledger.services.costing import apply_inbound_cost
from inventory_ledger.services.sequence import SequenceService
from inventory_ledger.utils.clock import Clock, SystemClock
from inventory_ledger.utils.money import quantize_qty

logger = logging.getLogger(__name__)


async def load_item_for_update(db: AsyncSession, inventory_id: UUID) -> InventoryItem:
    """Fresh read of the item, row-locked where the database supports it."""
    stmt = (
        select(InventoryItem)
        .where(InventoryItem.id == inventory_id)
        .with_for_update()  # row lock on PostgreSQL, the version column covers the rest
        .execution_options(populate_existing=True)
    )
    item = (await db.execute(stmt)).scalar_one_or_none()
    if item is None:
        raise NotFoundError("Inventory item", inventory_id)
    return item


def format_transaction_number(sequence_no: int, when) -> str:
    """IT + YYYYMMDD + zero-padded global sequence; sorts in creation order."""
    return f"IT{when:%Y%m%d}{sequence_no:08d}"


def update_last_transaction(item: InventoryItem, transaction: Optional[InventoryTransaction]) -> None:
    if transaction is None:
        item.last_transaction_type = None
        item.last_transaction_at = None
        item.last_transaction_quantity = None
        item.last_transaction_number = None
        return
    item.last_transaction_type = TransactionTypeEnum(transaction.type).value
    item.last_transaction_at = transaction.transaction_date
    item.last_transaction_quantity = abs(transaction.change_qty)
    item.last_transaction_number = transaction.transaction_number


def assert_quantities_valid(item: InventoryItem) -> None:
    for bucket, value in item.quantity_buckets().items():
        if value is None or value < 0:
            raise ValidationError(f"{bucket} quantity of item {item.id} cannot be negative ({value})", field=bucket)


class MutationEngine:
    """Applies one PENDING transaction to its item.

    Everything happens inside the caller's database transaction: the item
    UPDATE is guarded by the version column and the ledger INSERT is flushed
    in the same unit of work, so the caller's commit (or rollback) covers both.
    """

    def __init__(self, sequence_service: Optional[SequenceService] = None, clock: Optional[Clock] = None):
        self.sequence_service = sequence_service or SequenceService()
        self.clock = clock or SystemClock()

    async def apply(
        self,
        db: AsyncSession,
        item: InventoryItem,
        transaction: InventoryTransaction,
        actor: ActorSchema,
    ) -> InventoryTransaction:
        if transaction.status != TransactionStatusEnum.PENDING:
            raise ValidationError(f"only PENDING transactions can be applied, got {transaction.status}")
        if transaction.inventory_id != item.id:
            raise ValidationError("transaction does not belong to this inventory item", field="inventory_id")
        if quantize_qty(transaction.previous_qty) != quantize_qty(item.available_qty):
            # the snapshot was taken from a different read of the item
            raise ConcurrentModificationError(item.id)

        change: Decimal = transaction.change_qty
        new_available = item.available_qty + change
        if new_available < 0:
            raise InsufficientStockError(
                requested=quantize_qty(abs(change)),
                available=quantize_qty(item.available_qty),
                sku=item.sku,
            )

        if transaction.type in INBOUND_TYPES:
            # cost blends against the quantity on hand before the receipt
            apply_inbound_cost(item, change, transaction.unit_cost)

        now = self.clock.now()
        item.available_qty = quantize_qty(new_available)
        assert_quantities_valid(item)
        item.updated_at = now

        sequence_no = await self.sequence_service.next_value(db)
        transaction.sequence_no = sequence_no
        transaction.transaction_number = format_transaction_number(sequence_no, now)
        transaction.created_at = now
        transaction.status = TransactionStatusEnum.CONFIRMED
        transaction.confirmed_by_id = actor.user_id
        transaction.confirmed_by_name = actor.user_name
        transaction.confirmed_at = now

        update_last_transaction(item, transaction)

        db.add(item)
        db.add(transaction)
        try:
            await db.flush()
        except StaleDataError:
            logger.warning(f"version conflict on inventory_id={item.id} sku={item.sku}")
            raise ConcurrentModificationError(item.id)

        logger.info(
            f"applied transaction_number={transaction.transaction_number} type={transaction.type.value} "
            f"sku={item.sku} previous={transaction.previous_qty} change={change} available={item.available_qty}"
        )
        return transaction
