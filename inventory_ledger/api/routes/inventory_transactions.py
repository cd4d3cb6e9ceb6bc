import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_ledger.api.deps import get_ledger_service, get_reporting_service
from inventory_ledger.db.session import get_db
from inventory_ledger.models.transaction import TransactionStatusEnum, TransactionTypeEnum
from inventory_ledger.schemas.pagination import PaginatedResponse
from inventory_ledger.schemas.transaction import (
    AdjustmentRequest,
    CancelRequest,
    InboundRequest,
    InventoryTransactionSchema,
    LedgerResult,
    OutboundRequest,
    SummaryGroupBy,
    TransactionFilters,
    TransactionSummary,
)
from inventory_ledger.services.ledger import LedgerService
from inventory_ledger.services.reporting import ReportingService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_transaction_filters(
    warehouse_id: Optional[UUID] = Query(None),
    location_id: Optional[UUID] = Query(None),
    inventory_id: Optional[UUID] = Query(None),
    type: Optional[TransactionTypeEnum] = Query(None),
    status: Optional[TransactionStatusEnum] = Query(None),
    sku: Optional[str] = Query(None, max_length=50),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
) -> TransactionFilters:
    return TransactionFilters(
        warehouse_id=warehouse_id,
        location_id=location_id,
        inventory_id=inventory_id,
        type=type,
        status=status,
        sku=sku,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("/inbound", response_model=LedgerResult, status_code=status.HTTP_201_CREATED)
async def record_inbound(
    data: InboundRequest,
    ledger_service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db)):
    return await ledger_service.record_inbound(db, data)


@router.post("/outbound", response_model=LedgerResult, status_code=status.HTTP_201_CREATED)
async def record_outbound(
    data: OutboundRequest,
    ledger_service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db)):
    return await ledger_service.record_outbound(db, data)


@router.post("/adjustment", response_model=LedgerResult, status_code=status.HTTP_201_CREATED)
async def record_adjustment(
    data: AdjustmentRequest,
    ledger_service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db)):
    return await ledger_service.record_adjustment(db, data)


@router.post("/{transaction_id}/cancel", response_model=LedgerResult)
async def cancel_transaction(
    transaction_id: UUID,
    data: CancelRequest,
    ledger_service: LedgerService = Depends(get_ledger_service),
    db: AsyncSession = Depends(get_db)):
    return await ledger_service.cancel_transaction(db, transaction_id, data)


@router.get("", response_model=PaginatedResponse[InventoryTransactionSchema])
async def list_transactions(
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(20, ge=1, le=100),
    filters: TransactionFilters = Depends(get_transaction_filters),
    reporting_service: ReportingService = Depends(get_reporting_service),
    db: AsyncSession = Depends(get_db)):
    return await reporting_service.list_transactions(db, filters, page, limit)


@router.get("/summary", response_model=TransactionSummary)
async def summarize_transactions(
    group_by: SummaryGroupBy = Query(SummaryGroupBy.type),
    filters: TransactionFilters = Depends(get_transaction_filters),
    reporting_service: ReportingService = Depends(get_reporting_service),
    db: AsyncSession = Depends(get_db)):
    return await reporting_service.summarize(db, filters, group_by)


@router.get("/{transaction_id}", response_model=InventoryTransactionSchema)
async def get_transaction(
    transaction_id: UUID,
    reporting_service: ReportingService = Depends(get_reporting_service),
    db: AsyncSession = Depends(get_db)):
    return await reporting_service.get_transaction(db, transaction_id)
