import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from tenacity import before_sleep_log, retry, retry_if_exception, stop_after_attempt, wait_exponential

from inventory_ledger.core.config import settings
from inventory_ledger.core.exceptions import (
    BusinessLogicException,
    ConcurrentModificationError,
    DatabaseConstraintException,
    DatabaseException,
    InsufficientStockError,
    NotFoundError,
)
from inventory_ledger.models.inventory import InventoryItem
from inventory_ledger.models.transaction import InventoryTransaction, TransactionTypeEnum
from inventory_ledger.schemas.inventory import ActorSchema, InventoryItemSchema
from inventory_ledger.schemas.transaction import (
    AdjustmentRequest,
    CancelRequest,
    InboundRequest,
    InventoryTransactionSchema,
    LedgerResult,
    OutboundRequest,
)
from inventory_ledger.services import audit
from inventory_ledger.services.audit import AuditRecorder, LoggingAuditRecorder, record_safely
from inventory_ledger.services.mutation import MutationEngine, load_item_for_update
from inventory_ledger.services.reversal import ReversalEngine
from inventory_ledger.services.sequence import SequenceService
from inventory_ledger.services.transaction_factory import build_adjustment, build_inbound, build_outbound
from inventory_ledger.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RECORDED_EVENTS = {
    TransactionTypeEnum.INBOUND: audit.INBOUND_RECORDED,
    TransactionTypeEnum.OUTBOUND: audit.OUTBOUND_RECORDED,
    TransactionTypeEnum.ADJUSTMENT: audit.ADJUSTMENT_RECORDED,
}

def _is_retryable(ex: BaseException) -> bool:
    return isinstance(ex, BusinessLogicException) and ex.retryable


ledger_retry = retry(
    retry=retry_if_exception(_is_retryable),  # re-read and try again on version conflicts
    wait=wait_exponential(multiplier=settings.ledger_retry_wait_seconds, max=1),
    stop=stop_after_attempt(settings.ledger_max_attempts),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


def _transaction_payload(transaction: InventoryTransaction, item: InventoryItem) -> Dict[str, Any]:
    return {
        "transaction_id": str(transaction.id),
        "transaction_number": transaction.transaction_number,
        "type": TransactionTypeEnum(transaction.type).value,
        "inventory_id": str(item.id),
        "warehouse_id": str(item.warehouse_id),
        "sku": item.sku,
        "previous_qty": str(transaction.previous_qty),
        "change_qty": str(transaction.change_qty),
        "current_qty": str(transaction.current_qty),
        "unit_cost": str(transaction.unit_cost) if transaction.unit_cost is not None else None,
        "total_cost": str(transaction.total_cost) if transaction.total_cost is not None else None,
        "available_qty": str(item.available_qty),
        "average_unit_cost": str(item.average_unit_cost),
    }


class LedgerService:
    """Public write operations on the inventory ledger.

    Each operation runs as one database transaction: lock and re-read the
    item, build the ledger row, apply it, commit. Version conflicts are
    retried with a fresh read; every other failure rolls back and surfaces
    as a typed exception.
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        audit_recorder: Optional[AuditRecorder] = None,
        sequence_service: Optional[SequenceService] = None,
    ):
        self.clock = clock or SystemClock()
        self.audit_recorder = audit_recorder or LoggingAuditRecorder()
        self.mutation_engine = MutationEngine(sequence_service or SequenceService(), self.clock)
        self.reversal_engine = ReversalEngine(self.clock)

    async def _load_transaction(self, db: AsyncSession, transaction_id: UUID) -> InventoryTransaction:
        stmt = (
            select(InventoryTransaction)
            .where(InventoryTransaction.id == transaction_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        transaction = (await db.execute(stmt)).scalar_one_or_none()
        if transaction is None:
            raise NotFoundError("Transaction", transaction_id)
        return transaction

    async def _run_atomic(self, db: AsyncSession, resource_id: Any, work: Callable[[], Awaitable[T]]) -> T:
        try:
            result = await work()
            await db.commit()
            return result
        except BusinessLogicException:
            await db.rollback()
            raise
        except StaleDataError:
            await db.rollback()
            logger.warning(f"stale state resource_id={resource_id}")
            raise ConcurrentModificationError(resource_id)
        except IntegrityError as ex:
            await db.rollback()
            logger.exception(f"constraint violation resource_id={resource_id}")
            raise DatabaseConstraintException(f"Ledger write rejected by a database constraint: {ex.orig}")
        except SQLAlchemyError:
            await db.rollback()
            logger.exception(f"unexpected database error resource_id={resource_id}")
            raise DatabaseException(500, "Unexpected error while writing to the inventory ledger")

    async def _record_movement(self, db: AsyncSession, inventory_id: UUID, builder, request, actor: ActorSchema) -> LedgerResult:
        async def work():
            item = await load_item_for_update(db, inventory_id)
            transaction = builder(item, request, self.clock.now())
            await self.mutation_engine.apply(db, item, transaction, actor)
            return item, transaction

        item, transaction = await self._run_atomic(db, inventory_id, work)
        await record_safely(
            self.audit_recorder,
            _RECORDED_EVENTS[TransactionTypeEnum(transaction.type)],
            _transaction_payload(transaction, item),
            actor,
        )
        return LedgerResult(
            transaction=InventoryTransactionSchema.model_validate(transaction),
            item=InventoryItemSchema.model_validate(item),
        )

    @ledger_retry
    async def record_inbound(self, db: AsyncSession, request: InboundRequest) -> LedgerResult:
        return await self._record_movement(db, request.inventory_id, build_inbound, request, request.created_by)

    @ledger_retry
    async def record_outbound(self, db: AsyncSession, request: OutboundRequest) -> LedgerResult:
        try:
            return await self._record_movement(db, request.inventory_id, build_outbound, request, request.created_by)
        except InsufficientStockError as ex:
            logger.warning(
                f"outbound blocked inventory_id={request.inventory_id} sku={ex.sku} "
                f"requested={ex.requested} available={ex.available}"
            )
            await record_safely(
                self.audit_recorder,
                audit.NEGATIVE_STOCK_BLOCKED,
                {
                    "inventory_id": str(request.inventory_id),
                    "sku": ex.sku,
                    "requested": str(ex.requested),
                    "available": str(ex.available),
                    "reason": request.reason,
                },
                request.created_by,
            )
            raise

    @ledger_retry
    async def record_adjustment(self, db: AsyncSession, request: AdjustmentRequest) -> LedgerResult:
        return await self._record_movement(db, request.inventory_id, build_adjustment, request, request.created_by)

    @ledger_retry
    async def cancel_transaction(self, db: AsyncSession, transaction_id: UUID, request: CancelRequest) -> LedgerResult:
        async def work():
            transaction = await self._load_transaction(db, transaction_id)
            item = await load_item_for_update(db, transaction.inventory_id)
            await self.reversal_engine.cancel(db, transaction, item, request.reason, request.cancelled_by)
            return item, transaction

        item, transaction = await self._run_atomic(db, transaction_id, work)
        payload = _transaction_payload(transaction, item)
        payload["reason"] = request.reason
        await record_safely(self.audit_recorder, audit.TRANSACTION_CANCELLED, payload, request.cancelled_by)
        return LedgerResult(
            transaction=InventoryTransactionSchema.model_validate(transaction),
            item=InventoryItemSchema.model_validate(item),
        )

    # quantity-oriented names used by callers that think in deltas vs absolute counts

    async def add_quantity(self, db: AsyncSession, request: InboundRequest) -> LedgerResult:
        return await self.record_inbound(db, request)

    async def remove_quantity(self, db: AsyncSession, request: OutboundRequest) -> LedgerResult:
        return await self.record_outbound(db, request)

    async def set_quantity(self, db: AsyncSession, request: AdjustmentRequest) -> LedgerResult:
        return await self.record_adjustment(db, request)
