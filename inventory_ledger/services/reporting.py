"""Read side of the ledger: history listing, summaries and reconciliation.

Nothing in this module commits. The rebuild helpers mutate the cached
last_transaction_* columns and leave committing to the caller.
"""
import logging
from datetime import timedelta
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import Numeric, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_ledger.core.config import settings
from inventory_ledger.core.exceptions import NotFoundError, ValidationError
from inventory_ledger.db.service import PaginationService
from inventory_ledger.models.inventory import InventoryItem, InventoryStatusEnum
from inventory_ledger.models.transaction import InventoryTransaction, TransactionStatusEnum
from inventory_ledger.schemas.inventory import WarehouseStockSummary
from inventory_ledger.schemas.pagination import PaginatedResponse, SortOrder
from inventory_ledger.schemas.transaction import (
    InventoryTransactionSchema,
    ReplayReport,
    SummaryGroup,
    SummaryGroupBy,
    TransactionFilters,
    TransactionSummary,
)
from inventory_ledger.services.mutation import load_item_for_update, update_last_transaction
from inventory_ledger.utils.clock import Clock, SystemClock
from inventory_ledger.utils.money import ZERO, quantize_qty, quantize_value, to_decimal

logger = logging.getLogger(__name__)

_GROUP_COLUMNS = {
    SummaryGroupBy.type: InventoryTransaction.type,
    SummaryGroupBy.status: InventoryTransaction.status,
    SummaryGroupBy.warehouse_id: InventoryTransaction.warehouse_id,
    SummaryGroupBy.sku: InventoryTransaction.sku,
}


async def latest_confirmed_transaction(db: AsyncSession, inventory_id: UUID) -> Optional[InventoryTransaction]:
    stmt = (
        select(InventoryTransaction)
        .where(
            InventoryTransaction.inventory_id == inventory_id,
            InventoryTransaction.status == TransactionStatusEnum.CONFIRMED,
        )
        .order_by(InventoryTransaction.sequence_no.desc())
        .limit(1)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


def _low_stock_condition():
    return InventoryItem.available_qty <= InventoryItem.reorder_point


def _group_key(value) -> str:
    return value.value if hasattr(value, "value") else str(value)


class ReportingService:
    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()

    def _filter_dict(self, filters: TransactionFilters) -> Dict:
        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise ValidationError("start_date must not be after end_date", field="start_date")
        return {
            "warehouse_id": filters.warehouse_id,
            "location_id": filters.location_id,
            "inventory_id": filters.inventory_id,
            "type": filters.type,
            "status": filters.status,
            "sku": filters.sku,
            "transaction_date": {"gte": filters.start_date, "lte": filters.end_date},
        }

    async def list_transactions(
        self,
        db: AsyncSession,
        filters: Optional[TransactionFilters] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> PaginatedResponse[InventoryTransactionSchema]:
        filters = filters or TransactionFilters()
        limit = min(limit or settings.default_page_size, settings.max_page_size)
        if limit < 1:
            raise ValidationError("limit must be at least 1", field="limit")

        pagination_service = PaginationService(db)
        return await pagination_service.paginate(
            model_class=InventoryTransaction,
            output_schema=InventoryTransactionSchema,
            page=page,
            limit=limit,
            sort_by=("transaction_date", "sequence_no"),
            sort_order=SortOrder.desc,
            filters=self._filter_dict(filters),
        )

    async def get_transaction(self, db: AsyncSession, transaction_id: UUID) -> InventoryTransaction:
        transaction = await db.get(InventoryTransaction, transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction", transaction_id)
        return transaction

    async def summarize(
        self,
        db: AsyncSession,
        filters: TransactionFilters,
        group_by: SummaryGroupBy = SummaryGroupBy.type,
    ) -> TransactionSummary:
        """Totals per group over a required date window.

        total_quantity is the sum of |change_qty| so inbound and outbound
        volume add up instead of cancelling out; total_value sums total_cost.
        """
        if filters.start_date is None or filters.end_date is None:
            raise ValidationError("start_date and end_date are required for a summary", field="start_date")
        conditions = PaginationService(db).build_conditions(InventoryTransaction, self._filter_dict(filters))

        group_column = _GROUP_COLUMNS[SummaryGroupBy(group_by)]
        quantity = func.abs(InventoryTransaction.change_qty, type_=Numeric(18, 4))
        stmt = (
            select(
                group_column,
                func.count(InventoryTransaction.id),
                func.coalesce(func.sum(quantity), 0),
                func.coalesce(func.sum(InventoryTransaction.total_cost), 0),
            )
            .where(*conditions)
            .group_by(group_column)
            .order_by(group_column)
        )
        rows = (await db.execute(stmt)).all()

        groups: List[SummaryGroup] = []
        for key, count, total_quantity, total_value in rows:
            groups.append(SummaryGroup(
                key=_group_key(key),
                total_transactions=count,
                total_quantity=quantize_qty(to_decimal(total_quantity)),
                total_value=quantize_value(to_decimal(total_value)),
            ))

        summary = TransactionSummary(
            group_by=group_by,
            groups=groups,
            total_transactions=sum(group.total_transactions for group in groups),
            filters={
                name: (str(value.value if hasattr(value, "value") else value) if value is not None else None)
                for name, value in filters.model_dump().items()
            },
            generated_at=self.clock.now(),
        )
        logger.debug(f"summary group_by={summary.group_by.value} groups={len(groups)} total={summary.total_transactions}")
        return summary

    async def replay_item(self, db: AsyncSession, inventory_id: UUID) -> ReplayReport:
        """Recompute available from the confirmed log and compare with stored values.

        Every confirmed row must satisfy current = previous + change. While the
        item has no cancelled rows, each row's previous_qty must also equal the
        running total of the rows before it. After a cancellation only the
        final total is expected to match.
        """
        item = await db.get(InventoryItem, inventory_id, populate_existing=True)
        if item is None:
            raise NotFoundError("Inventory item", inventory_id)

        stmt = (
            select(InventoryTransaction)
            .where(
                InventoryTransaction.inventory_id == inventory_id,
                InventoryTransaction.status.in_([TransactionStatusEnum.CONFIRMED, TransactionStatusEnum.CANCELLED]),
            )
            .order_by(InventoryTransaction.sequence_no)
            .execution_options(populate_existing=True)
        )
        rows = (await db.execute(stmt)).scalars().all()
        confirmed = [row for row in rows if row.status == TransactionStatusEnum.CONFIRMED]
        chain_checked = len(confirmed) == len(rows)

        replayed = ZERO
        drifted: List[str] = []
        for row in confirmed:
            previous = quantize_qty(to_decimal(row.previous_qty))
            change = to_decimal(row.change_qty)
            snapshot_ok = quantize_qty(previous + change) == quantize_qty(to_decimal(row.current_qty))
            chain_ok = not chain_checked or previous == quantize_qty(replayed)
            if not (snapshot_ok and chain_ok):
                drifted.append(row.transaction_number)
            replayed += change

        replayed = quantize_qty(replayed)
        recorded = quantize_qty(item.available_qty)
        report = ReplayReport(
            inventory_id=inventory_id,
            confirmed_transactions=len(confirmed),
            replayed_available=replayed,
            recorded_available=recorded,
            consistent=replayed == recorded and not drifted,
            drifted_transactions=drifted,
            chain_checked=chain_checked,
        )
        if not report.consistent:
            logger.error(
                f"ledger drift inventory_id={inventory_id} replayed={replayed} recorded={recorded} "
                f"drifted_transactions={drifted}"
            )
        return report

    async def rebuild_last_transaction(self, db: AsyncSession, inventory_id: UUID) -> InventoryItem:
        item = await load_item_for_update(db, inventory_id)
        latest = await latest_confirmed_transaction(db, inventory_id)
        update_last_transaction(item, latest)
        await db.flush()
        return item

    async def reindex_all(self, db: AsyncSession) -> int:
        item_ids = (await db.execute(select(InventoryItem.id))).scalars().all()
        for inventory_id in item_ids:
            await self.rebuild_last_transaction(db, inventory_id)
        logger.info(f"reindexed last transaction cache for items={len(item_ids)}")
        return len(item_ids)

    async def warehouse_summary(self, db: AsyncSession, warehouse_id: UUID) -> WarehouseStockSummary:
        value = func.sum(InventoryItem.available_qty * InventoryItem.average_unit_cost, type_=Numeric(36, 10))
        low = func.sum(case((_low_stock_condition(), 1), else_=0))
        stmt = (
            select(
                func.count(InventoryItem.id),
                func.coalesce(func.sum(InventoryItem.available_qty), 0),
                func.coalesce(value, 0),
                func.coalesce(low, 0),
            )
            .where(
                InventoryItem.warehouse_id == warehouse_id,
                InventoryItem.status != InventoryStatusEnum.archived,
            )
        )
        count, available, total_value, low_stock = (await db.execute(stmt)).one()
        return WarehouseStockSummary(
            warehouse_id=warehouse_id,
            total_items=count,
            total_available=quantize_qty(to_decimal(available)),
            total_value=quantize_value(to_decimal(total_value)),
            low_stock_items=int(low_stock),
        )

    async def list_low_stock(self, db: AsyncSession, warehouse_id: Optional[UUID] = None) -> List[InventoryItem]:
        """Active items at or below their reorder point, emptiest first."""
        stmt = select(InventoryItem).where(
            InventoryItem.status == InventoryStatusEnum.active,
            _low_stock_condition(),
        )
        if warehouse_id is not None:
            stmt = stmt.where(InventoryItem.warehouse_id == warehouse_id)
        stmt = stmt.order_by(InventoryItem.available_qty, InventoryItem.sku)
        items = list((await db.execute(stmt)).scalars().all())
        logger.info(f"low stock items={len(items)} warehouse_id={warehouse_id}")
        return items

    async def list_expiring(
        self,
        db: AsyncSession,
        days: int = 30,
        warehouse_id: Optional[UUID] = None,
    ) -> List[InventoryItem]:
        """Active batches whose expiry date falls within the next `days` days.

        Batches that are already past their date are included.
        """
        if days < 0:
            raise ValidationError("days cannot be negative", field="days")
        cutoff = self.clock.now().date() + timedelta(days=days)
        stmt = select(InventoryItem).where(
            InventoryItem.status == InventoryStatusEnum.active,
            InventoryItem.batch_expiry_date.is_not(None),
            InventoryItem.batch_expiry_date <= cutoff,
        )
        if warehouse_id is not None:
            stmt = stmt.where(InventoryItem.warehouse_id == warehouse_id)
        stmt = stmt.order_by(InventoryItem.batch_expiry_date, InventoryItem.sku)
        items = list((await db.execute(stmt)).scalars().all())
        logger.info(f"expiring items={len(items)} days={days} cutoff={cutoff} warehouse_id={warehouse_id}")
        return items
