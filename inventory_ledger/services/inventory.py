import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from inventory_ledger.core.config import settings
from inventory_ledger.core.exceptions import (
    BusinessLogicException,
    ConcurrentModificationError,
    DatabaseException,
    DuplicateItemError,
    NotFoundError,
    ResourceConflictError,
    ValidationError,
)
from inventory_ledger.db.service import PaginationService
from inventory_ledger.models.inventory import InventoryItem, InventoryStatusEnum
from inventory_ledger.models.transaction import PartyTypeEnum, ReferenceTypeEnum
from inventory_ledger.schemas.inventory import CreateInventoryItemRequest, InventoryItemSchema, UpdateInventoryItemRequest
from inventory_ledger.schemas.pagination import PaginatedResponse, SortOrder
from inventory_ledger.schemas.transaction import InboundRequest, PartyInfo, ReferenceInfo
from inventory_ledger.services.ledger import ledger_retry
from inventory_ledger.services.mutation import MutationEngine, load_item_for_update
from inventory_ledger.services.reporting import ReportingService
from inventory_ledger.services.transaction_factory import build_inbound
from inventory_ledger.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

OPENING_BALANCE = "Opening balance"

_REQUIRED_ON_UPDATE = ("product_name", "reorder_point", "status")


class InventoryService:
    def __init__(
        self,
        mutation_engine: Optional[MutationEngine] = None,
        reporting_service: Optional[ReportingService] = None,
        clock: Optional[Clock] = None,
    ):
        self.clock = clock or SystemClock()
        self.mutation_engine = mutation_engine or MutationEngine(clock=self.clock)
        self.reporting_service = reporting_service or ReportingService(self.clock)

    async def _find_slot(self, db: AsyncSession, data: CreateInventoryItemRequest) -> Optional[InventoryItem]:
        batch_condition = (
            InventoryItem.batch_number.is_(None)
            if data.batch_number is None
            else InventoryItem.batch_number == data.batch_number
        )
        stmt = select(InventoryItem).where(
            InventoryItem.warehouse_id == data.warehouse_id,
            InventoryItem.location_id == data.location_id,
            InventoryItem.sku == data.sku,
            batch_condition,
        )
        return (await db.execute(stmt)).scalar_one_or_none()

    async def create_item(self, db: AsyncSession, data: CreateInventoryItemRequest) -> InventoryItem:
        """Register a stock slot, optionally stocked with an opening balance.

        The opening balance is written as an ordinary INBOUND row so that the
        item's available quantity can always be replayed from the log.
        """
        try:
            if await self._find_slot(db, data) is not None:
                raise DuplicateItemError(
                    f"Inventory item for sku {data.sku} already exists at this location"
                    + (f" for batch {data.batch_number}" if data.batch_number else "")
                )

            now = self.clock.now()
            item = InventoryItem(
                warehouse_id=data.warehouse_id,
                location_id=data.location_id,
                sku=data.sku,
                product_name=data.product_name,
                product_category=data.product_category,
                batch_number=data.batch_number,
                batch_expiry_date=data.batch_expiry_date,
                unit=data.unit,
                currency=data.currency or settings.default_currency,
                reorder_point=data.reorder_point,
                created_at=now,
                updated_at=now,
            )
            db.add(item)
            await db.flush()

            if data.opening_quantity > 0:
                opening = InboundRequest(
                    inventory_id=item.id,
                    quantity=data.opening_quantity,
                    unit_cost=data.opening_unit_cost,
                    reason=OPENING_BALANCE,
                    party=PartyInfo(type=PartyTypeEnum.INTERNAL, name=OPENING_BALANCE),
                    reference=ReferenceInfo(type=ReferenceTypeEnum.ADJUSTMENT),
                    created_by=data.created_by,
                )
                transaction = build_inbound(item, opening, now)
                await self.mutation_engine.apply(db, item, transaction, data.created_by)

            await db.commit()
        except BusinessLogicException:
            await db.rollback()
            raise
        except IntegrityError:
            await db.rollback()
            logger.warning(f"duplicate inventory slot sku={data.sku} warehouse_id={data.warehouse_id}")
            raise DuplicateItemError(f"Inventory item for sku {data.sku} already exists at this location")
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("unexpected error creating inventory item")
            raise DatabaseException(500, "Unexpected error while creating an inventory item")

        logger.info(
            f"created inventory_id={item.id} sku={item.sku} warehouse_id={item.warehouse_id} "
            f"opening_qty={item.available_qty}"
        )
        return item

    async def get_item(self, db: AsyncSession, inventory_id: UUID) -> InventoryItem:
        item = await db.get(InventoryItem, inventory_id)
        if item is None:
            raise NotFoundError("Inventory item", inventory_id)
        return item

    async def list_items(
        self,
        db: AsyncSession,
        warehouse_id: Optional[UUID] = None,
        location_id: Optional[UUID] = None,
        sku: Optional[str] = None,
        status: Optional[InventoryStatusEnum] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> PaginatedResponse[InventoryItemSchema]:
        limit = min(limit or settings.default_page_size, settings.max_page_size)
        pagination_service = PaginationService(db)
        return await pagination_service.paginate(
            model_class=InventoryItem,
            output_schema=InventoryItemSchema,
            page=page,
            limit=limit,
            sort_by=("sku", "created_at"),
            sort_order=SortOrder.asc,
            filters={
                "warehouse_id": warehouse_id,
                "location_id": location_id,
                "sku": sku.upper() if sku else None,
                "status": status,
            },
        )

    async def list_by_sku(self, db: AsyncSession, sku: str, warehouse_id: Optional[UUID] = None) -> List[InventoryItem]:
        """Every slot holding the sku, across warehouses unless one is given."""
        stmt = select(InventoryItem).where(InventoryItem.sku == sku.strip().upper())
        if warehouse_id is not None:
            stmt = stmt.where(InventoryItem.warehouse_id == warehouse_id)
        stmt = stmt.order_by(InventoryItem.warehouse_id, InventoryItem.location_id, InventoryItem.batch_number)
        return list((await db.execute(stmt)).scalars().all())

    async def _commit_item_change(self, db: AsyncSession, inventory_id: UUID, action: str, work) -> InventoryItem:
        try:
            item = await work()
            await db.commit()
        except BusinessLogicException:
            await db.rollback()
            raise
        except StaleDataError:
            await db.rollback()
            logger.warning(f"stale state during {action} inventory_id={inventory_id}")
            raise ConcurrentModificationError(inventory_id)
        except SQLAlchemyError:
            await db.rollback()
            logger.exception(f"unexpected error during {action} inventory_id={inventory_id}")
            raise DatabaseException(500, f"Unexpected error during {action} of an inventory item")
        return item

    @ledger_retry
    async def update_item(self, db: AsyncSession, inventory_id: UUID, data: UpdateInventoryItemRequest) -> InventoryItem:
        changes = data.changes()
        if not changes:
            raise ValidationError("no fields to update")
        for name in _REQUIRED_ON_UPDATE:
            if name in changes and changes[name] is None:
                raise ValidationError(f"{name} cannot be null", field=name)
        if changes.get("status") == InventoryStatusEnum.archived:
            raise ValidationError("use archive to retire an inventory item", field="status")

        async def work():
            item = await load_item_for_update(db, inventory_id)
            if item.status == InventoryStatusEnum.archived:
                raise ResourceConflictError(f"Inventory item {inventory_id} is archived and cannot be updated")
            for name, value in changes.items():
                setattr(item, name, value)
            item.updated_at = self.clock.now()
            await db.flush()
            return item

        item = await self._commit_item_change(db, inventory_id, "update", work)
        logger.info(
            f"updated inventory_id={inventory_id} sku={item.sku} fields={sorted(changes)} "
            f"by={data.updated_by.user_id}"
        )
        return item

    @ledger_retry
    async def archive_item(self, db: AsyncSession, inventory_id: UUID) -> InventoryItem:
        """Soft-delete an item. Its ledger rows stay readable."""
        async def work():
            item = await load_item_for_update(db, inventory_id)
            if item.status == InventoryStatusEnum.archived:
                raise ResourceConflictError(f"Inventory item {inventory_id} is already archived")
            if item.reserved_qty > 0 or item.committed_qty > 0:
                raise ResourceConflictError(
                    f"Inventory item {inventory_id} has reserved or committed stock and cannot be archived"
                )
            if item.available_qty > 0:
                raise ValidationError(
                    f"Inventory item {inventory_id} still holds {item.available_qty} available, "
                    "adjust it to zero before archiving",
                    field="available_qty",
                )
            item.status = InventoryStatusEnum.archived
            item.updated_at = self.clock.now()
            await db.flush()
            return item

        item = await self._commit_item_change(db, inventory_id, "archive", work)
        logger.info(f"archived inventory_id={inventory_id} sku={item.sku}")
        return item

    @ledger_retry
    async def reindex_item(self, db: AsyncSession, inventory_id: UUID) -> InventoryItem:
        async def work():
            return await self.reporting_service.rebuild_last_transaction(db, inventory_id)

        return await self._commit_item_change(db, inventory_id, "reindex", work)

    async def reindex_all(self, db: AsyncSession) -> int:
        """Rebuild every item's cache, one committed (and retried) unit per item."""
        item_ids = (await db.execute(select(InventoryItem.id))).scalars().all()
        for inventory_id in item_ids:
            await self.reindex_item(db, inventory_id)
        logger.info(f"reindexed last transaction cache for items={len(item_ids)}")
        return len(item_ids)
