import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_ledger.api.deps import get_inventory_service, get_reporting_service
from inventory_ledger.db.session import get_db
from inventory_ledger.models.inventory import InventoryStatusEnum
from inventory_ledger.schemas.inventory import (
    CreateInventoryItemRequest,
    InventoryItemSchema,
    UpdateInventoryItemRequest,
    WarehouseStockSummary,
)
from inventory_ledger.schemas.pagination import PaginatedResponse
from inventory_ledger.schemas.transaction import ReplayReport
from inventory_ledger.services.inventory import InventoryService
from inventory_ledger.services.reporting import ReportingService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=InventoryItemSchema, status_code=status.HTTP_201_CREATED)
async def create_inventory_item(
    data: CreateInventoryItemRequest,
    inventory_service: InventoryService = Depends(get_inventory_service),
    db: AsyncSession = Depends(get_db)):
    return await inventory_service.create_item(db, data)


@router.get("", response_model=PaginatedResponse[InventoryItemSchema])
async def list_inventory_items(
    warehouse_id: Optional[UUID] = Query(None),
    location_id: Optional[UUID] = Query(None),
    sku: Optional[str] = Query(None, max_length=50),
    item_status: Optional[InventoryStatusEnum] = Query(None, alias="status"),
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(20, ge=1, le=100),
    inventory_service: InventoryService = Depends(get_inventory_service),
    db: AsyncSession = Depends(get_db)):
    return await inventory_service.list_items(db, warehouse_id, location_id, sku, item_status, page, limit)


@router.post("/reindex")
async def reindex_all_items(
    inventory_service: InventoryService = Depends(get_inventory_service),
    db: AsyncSession = Depends(get_db)):
    count = await inventory_service.reindex_all(db)
    return {"reindexed": count}


@router.get("/warehouses/{warehouse_id}/summary", response_model=WarehouseStockSummary)
async def warehouse_stock_summary(
    warehouse_id: UUID,
    reporting_service: ReportingService = Depends(get_reporting_service),
    db: AsyncSession = Depends(get_db)):
    return await reporting_service.warehouse_summary(db, warehouse_id)


@router.get("/low-stock", response_model=List[InventoryItemSchema])
async def list_low_stock_items(
    warehouse_id: Optional[UUID] = Query(None),
    reporting_service: ReportingService = Depends(get_reporting_service),
    db: AsyncSession = Depends(get_db)):
    return await reporting_service.list_low_stock(db, warehouse_id)


@router.get("/expiring", response_model=List[InventoryItemSchema])
async def list_expiring_items(
    days: int = Query(30, ge=0, le=3650),
    warehouse_id: Optional[UUID] = Query(None),
    reporting_service: ReportingService = Depends(get_reporting_service),
    db: AsyncSession = Depends(get_db)):
    return await reporting_service.list_expiring(db, days, warehouse_id)


@router.get("/sku/{sku}", response_model=List[InventoryItemSchema])
async def list_inventory_by_sku(
    sku: str,
    warehouse_id: Optional[UUID] = Query(None),
    inventory_service: InventoryService = Depends(get_inventory_service),
    db: AsyncSession = Depends(get_db)):
    return await inventory_service.list_by_sku(db, sku, warehouse_id)


@router.get("/{inventory_id}", response_model=InventoryItemSchema)
async def get_inventory_item(
    inventory_id: UUID,
    inventory_service: InventoryService = Depends(get_inventory_service),
    db: AsyncSession = Depends(get_db)):
    return await inventory_service.get_item(db, inventory_id)


@router.put("/{inventory_id}", response_model=InventoryItemSchema)
async def update_inventory_item(
    inventory_id: UUID,
    data: UpdateInventoryItemRequest,
    inventory_service: InventoryService = Depends(get_inventory_service),
    db: AsyncSession = Depends(get_db)):
    return await inventory_service.update_item(db, inventory_id, data)


@router.delete("/{inventory_id}", response_model=InventoryItemSchema)
async def archive_inventory_item(
    inventory_id: UUID,
    inventory_service: InventoryService = Depends(get_inventory_service),
    db: AsyncSession = Depends(get_db)):
    return await inventory_service.archive_item(db, inventory_id)


@router.post("/{inventory_id}/reindex", response_model=InventoryItemSchema)
async def reindex_inventory_item(
    inventory_id: UUID,
    inventory_service: InventoryService = Depends(get_inventory_service),
    db: AsyncSession = Depends(get_db)):
    return await inventory_service.reindex_item(db, inventory_id)


@router.get("/{inventory_id}/reconcile", response_model=ReplayReport)
async def reconcile_inventory_item(
    inventory_id: UUID,
    reporting_service: ReportingService = Depends(get_reporting_service),
    db: AsyncSession = Depends(get_db)):
    return await reporting_service.replay_item(db, inventory_id)
