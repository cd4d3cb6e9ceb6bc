from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from inventory_ledger.models.inventory import InventoryStatusEnum, QuantityUnitEnum, StockStatusEnum


class ActorSchema(BaseModel):
    """Who performed an action. Authentication happens upstream."""
    user_id: str = Field(min_length=1, max_length=64)
    user_name: str = Field(min_length=1, max_length=100)

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class CreateInventoryItemRequest(BaseModel):
    warehouse_id: UUID
    location_id: UUID
    sku: str = Field(min_length=1, max_length=50)
    product_name: str = Field(min_length=1, max_length=200)
    product_category: Optional[str] = Field(default=None, max_length=100)
    batch_number: Optional[str] = Field(default=None, max_length=50)
    batch_expiry_date: Optional[date] = None
    unit: QuantityUnitEnum = QuantityUnitEnum.pcs
    currency: Optional[str] = Field(default=None, pattern=r"^[A-Za-z]{3}$")
    reorder_point: Decimal = Field(default=Decimal("0"), ge=0, max_digits=18, decimal_places=4)

    # stocked through an INBOUND ledger row so the log stays complete
    opening_quantity: Decimal = Field(default=Decimal("0"), ge=0, max_digits=18, decimal_places=4)
    opening_unit_cost: Optional[Decimal] = Field(default=None, ge=0, max_digits=18, decimal_places=6)
    created_by: ActorSchema

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    @field_validator("sku")
    @classmethod
    def upper_sku(cls, value: str) -> str:
        return value.upper()

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, value: Optional[str]) -> Optional[str]:
        return value.upper() if value else value

    @model_validator(mode="after")
    def opening_cost_required(self):
        if self.opening_quantity > 0 and self.opening_unit_cost is None:
            raise ValueError("opening_unit_cost is required when opening_quantity is given")
        return self


class UpdateInventoryItemRequest(BaseModel):
    """Descriptive fields only. Quantities and cost move through the ledger."""
    product_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    product_category: Optional[str] = Field(default=None, max_length=100)
    batch_expiry_date: Optional[date] = None
    reorder_point: Optional[Decimal] = Field(default=None, ge=0, max_digits=18, decimal_places=4)
    status: Optional[InventoryStatusEnum] = None
    updated_by: ActorSchema

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={"updated_by"})


class InventoryItemSchema(BaseModel):
    id: UUID
    warehouse_id: UUID
    location_id: UUID
    sku: str
    product_name: str
    product_category: Optional[str] = None
    batch_number: Optional[str] = None
    batch_expiry_date: Optional[date] = None
    unit: QuantityUnitEnum
    available_qty: Decimal
    reserved_qty: Decimal
    committed_qty: Decimal
    damaged_qty: Decimal
    total_qty: Decimal
    average_unit_cost: Decimal
    last_unit_cost: Optional[Decimal] = None
    currency: str
    reorder_point: Decimal
    total_value: Decimal
    stock_status: StockStatusEnum
    last_transaction_type: Optional[str] = None
    last_transaction_at: Optional[datetime] = None
    last_transaction_quantity: Optional[Decimal] = None
    last_transaction_number: Optional[str] = None
    status: InventoryStatusEnum
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WarehouseStockSummary(BaseModel):
    warehouse_id: UUID
    total_items: int
    total_available: Decimal
    total_value: Decimal
    low_stock_items: int
