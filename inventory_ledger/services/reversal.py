import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from inventory_ledger.core.exceptions import ConcurrentModificationError, NotCancellableError, ValidationError
from inventory_ledger.models.inventory import InventoryItem, InventoryStatusEnum
from inventory_ledger.models.transaction import InventoryTransaction, TransactionStatusEnum
from inventory_ledger.schemas.inventory import ActorSchema
from inventory_ledger.services.mutation import assert_quantities_valid, update_last_transaction
from inventory_ledger.services.reporting import latest_confirmed_transaction
from inventory_ledger.utils.clock import Clock, SystemClock
from inventory_ledger.utils.money import quantize_qty

logger = logging.getLogger(__name__)


class ReversalEngine:
    """Cancels a confirmed movement by applying its inverse delta.

    The original row stays in the log with status CANCELLED. Average cost is
    left as it is, even when the cancelled row was a priced receipt.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()

    async def cancel(
        self,
        db: AsyncSession,
        transaction: InventoryTransaction,
        item: InventoryItem,
        reason: str,
        actor: ActorSchema,
    ) -> InventoryTransaction:
        if not transaction.can_cancel():
            status = TransactionStatusEnum(transaction.status).value
            raise NotCancellableError(
                transaction.transaction_number,
                status,
                f"only CONFIRMED transactions can be cancelled, status is {status}",
            )
        if transaction.inventory_id != item.id:
            raise ValidationError("transaction does not belong to this inventory item", field="inventory_id")
        if not reason or not reason.strip():
            raise ValidationError("reason is required", field="reason")
        if item.status == InventoryStatusEnum.archived:
            raise NotCancellableError(
                transaction.transaction_number,
                TransactionStatusEnum(transaction.status).value,
                f"inventory item {item.id} is archived",
            )

        inverse = -transaction.change_qty
        new_available = item.available_qty + inverse
        if new_available < 0:
            raise NotCancellableError(
                transaction.transaction_number,
                TransactionStatusEnum(transaction.status).value,
                f"reversal requires {quantize_qty(-inverse)} available but only "
                f"{quantize_qty(item.available_qty)} remain",
            )

        now = self.clock.now()
        item.available_qty = quantize_qty(new_available)
        assert_quantities_valid(item)
        item.updated_at = now

        transaction.status = TransactionStatusEnum.CANCELLED
        transaction.cancelled_by_id = actor.user_id
        transaction.cancelled_by_name = actor.user_name
        transaction.cancelled_at = now
        transaction.append_note(f"CANCELLED by {actor.user_name}: {reason.strip()}")

        db.add(transaction)
        db.add(item)
        try:
            await db.flush()
            # the cancelled row no longer counts as the item's latest movement
            latest = await latest_confirmed_transaction(db, item.id)
            update_last_transaction(item, latest)
            await db.flush()
        except StaleDataError:
            logger.warning(f"version conflict on inventory_id={item.id} sku={item.sku}")
            raise ConcurrentModificationError(item.id)

        logger.info(
            f"cancelled transaction_number={transaction.transaction_number} sku={item.sku} "
            f"inverse={quantize_qty(inverse)} available={item.available_qty}"
        )
        return transaction
