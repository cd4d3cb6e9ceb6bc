import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from inventory_ledger.models.transaction import (
    PartyTypeEnum,
    QualityStatusEnum,
    ReferenceTypeEnum,
    TransactionStatusEnum,
    TransactionTypeEnum,
)
from inventory_ledger.schemas.inventory import ActorSchema, InventoryItemSchema

_STRICT = ConfigDict(extra="forbid", str_strip_whitespace=True)


class ReferenceInfo(BaseModel):
    type: ReferenceTypeEnum = ReferenceTypeEnum.OTHER
    number: Optional[str] = Field(default=None, max_length=50)
    date: Optional[dt.date] = None

    model_config = _STRICT


class PartyContact(BaseModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=20)

    model_config = _STRICT


class PartyInfo(BaseModel):
    type: PartyTypeEnum = PartyTypeEnum.OTHER
    name: str = Field(min_length=1, max_length=200)
    code: Optional[str] = Field(default=None, max_length=50)
    contact: Optional[PartyContact] = None

    model_config = _STRICT


class BatchInfo(BaseModel):
    number: Optional[str] = Field(default=None, max_length=50)
    manufacture_date: Optional[date] = None
    expiry_date: Optional[date] = None

    model_config = _STRICT

    @model_validator(mode="after")
    def expiry_after_manufacture(self):
        if self.manufacture_date and self.expiry_date and self.expiry_date <= self.manufacture_date:
            raise ValueError("expiry_date must be after manufacture_date")
        return self


class QualityInfo(BaseModel):
    status: QualityStatusEnum = QualityStatusEnum.GOOD
    inspector: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=500)

    model_config = _STRICT


class _MovementRequest(BaseModel):
    inventory_id: UUID
    reason: str = Field(min_length=1, max_length=200)
    notes: Optional[str] = Field(default=None, max_length=1000)
    transaction_date: Optional[datetime] = None
    created_by: ActorSchema

    model_config = _STRICT


class InboundRequest(_MovementRequest):
    """Receive stock: adds `quantity` to available and blends `unit_cost` into the average."""
    quantity: Decimal = Field(gt=0, max_digits=18, decimal_places=4)
    unit_cost: Optional[Decimal] = Field(default=None, ge=0, max_digits=18, decimal_places=6)
    currency: Optional[str] = Field(default=None, pattern=r"^[A-Za-z]{3}$")
    party: PartyInfo
    reference: Optional[ReferenceInfo] = None
    batch: Optional[BatchInfo] = None
    quality: Optional[QualityInfo] = None


class OutboundRequest(_MovementRequest):
    """Issue stock: removes `quantity` from available at the current average cost unless one is given."""
    quantity: Decimal = Field(gt=0, max_digits=18, decimal_places=4)
    unit_cost: Optional[Decimal] = Field(default=None, ge=0, max_digits=18, decimal_places=6)
    currency: Optional[str] = Field(default=None, pattern=r"^[A-Za-z]{3}$")
    party: PartyInfo
    reference: Optional[ReferenceInfo] = None
    batch: Optional[BatchInfo] = None
    quality: Optional[QualityInfo] = None


class AdjustmentRequest(_MovementRequest):
    """Set available to the absolute `new_quantity` (a stock count), not a delta."""
    new_quantity: Decimal = Field(ge=0, max_digits=18, decimal_places=4)
    notes: str = Field(min_length=1, max_length=1000)
    reference: Optional[ReferenceInfo] = None


class CancelRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=200)
    cancelled_by: ActorSchema

    model_config = _STRICT


class InventoryTransactionSchema(BaseModel):
    id: UUID
    transaction_number: Optional[str] = None
    sequence_no: Optional[int] = None
    type: TransactionTypeEnum
    status: TransactionStatusEnum
    warehouse_id: UUID
    location_id: UUID
    inventory_id: UUID
    sku: str
    product_name: str
    previous_qty: Decimal
    change_qty: Decimal
    current_qty: Decimal
    unit: str
    direction: str
    unit_cost: Optional[Decimal] = None
    total_cost: Optional[Decimal] = None
    currency: str
    reference_type: Optional[ReferenceTypeEnum] = None
    reference_number: Optional[str] = None
    reference_date: Optional[date] = None
    party_type: Optional[PartyTypeEnum] = None
    party_name: Optional[str] = None
    party_code: Optional[str] = None
    party_email: Optional[str] = None
    party_phone: Optional[str] = None
    batch_number: Optional[str] = None
    batch_manufacture_date: Optional[date] = None
    batch_expiry_date: Optional[date] = None
    quality_status: QualityStatusEnum
    quality_inspector: Optional[str] = None
    quality_notes: Optional[str] = None
    reason: str
    notes: Optional[str] = None
    created_by_id: str
    created_by_name: str
    confirmed_by_id: Optional[str] = None
    confirmed_by_name: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    cancelled_by_id: Optional[str] = None
    cancelled_by_name: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    transaction_date: datetime
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LedgerResult(BaseModel):
    transaction: InventoryTransactionSchema
    item: InventoryItemSchema


class TransactionFilters(BaseModel):
    warehouse_id: Optional[UUID] = None
    location_id: Optional[UUID] = None
    inventory_id: Optional[UUID] = None
    type: Optional[TransactionTypeEnum] = None
    status: Optional[TransactionStatusEnum] = None
    sku: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    model_config = _STRICT

    @field_validator("sku")
    @classmethod
    def upper_sku(cls, value: Optional[str]) -> Optional[str]:
        return value.upper() if value else value


class SummaryGroupBy(str, Enum):
    type = "type"
    status = "status"
    warehouse_id = "warehouse_id"
    sku = "sku"


class SummaryGroup(BaseModel):
    key: str
    total_transactions: int
    total_quantity: Decimal
    total_value: Decimal


class TransactionSummary(BaseModel):
    group_by: SummaryGroupBy
    groups: List[SummaryGroup]
    total_transactions: int
    filters: Dict[str, Optional[str]]
    generated_at: datetime


class ReplayReport(BaseModel):
    inventory_id: UUID
    confirmed_transactions: int
    replayed_available: Decimal
    recorded_available: Decimal
    consistent: bool
    # confirmed rows whose stored snapshot disagrees with the replay
    drifted_transactions: List[str] = []
    # a cancellation removes a delta after later rows were snapshotted,
    # so running-balance checks only apply to items without one
    chain_checked: bool = True
