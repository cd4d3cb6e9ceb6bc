# inventory_ledger/models/inventory.py
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy import Enum as SqlEnum
from sqlalchemy.ext.hybrid import hybrid_property

from inventory_ledger.models.base import Base
from inventory_ledger.utils.money import quantize_value


class InventoryStatusEnum(str, Enum):
    active = "active"
    on_hold = "on_hold"
    quarantine = "quarantine"
    expired = "expired"
    damaged = "damaged"
    recalled = "recalled"
    archived = "archived"


class QuantityUnitEnum(str, Enum):
    pcs = "pcs"
    kg = "kg"
    lbs = "lbs"
    ton = "ton"
    liter = "liter"
    gallon = "gallon"
    box = "box"
    pallet = "pallet"
    case = "case"


class StockStatusEnum(str, Enum):
    out_of_stock = "out_of_stock"
    low = "low"
    adequate = "adequate"


_ZERO = Decimal("0")

_DEFAULTS = {
    "available_qty": _ZERO,
    "reserved_qty": _ZERO,
    "committed_qty": _ZERO,
    "damaged_qty": _ZERO,
    "average_unit_cost": _ZERO,
    "reorder_point": _ZERO,
    "unit": QuantityUnitEnum.pcs,
    "status": InventoryStatusEnum.active,
}


class InventoryItem(Base):
    """Current stock of one SKU (and optional batch) at one warehouse location.

    Quantities change only through the ledger engine. The last_transaction_*
    columns are a cache of the newest confirmed ledger row and can always be
    rebuilt from inventory_transactions.
    """
    __tablename__ = "inventory_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    warehouse_id = Column(Uuid, nullable=False, index=True)
    location_id = Column(Uuid, nullable=False, index=True)

    # product identity (owned by the catalog service, copied here)
    sku = Column(String(50), nullable=False, index=True)
    product_name = Column(String(200), nullable=False)
    product_category = Column(String(100), nullable=True)

    batch_number = Column(String(50), nullable=True, index=True)
    batch_expiry_date = Column(Date, nullable=True)

    unit = Column(SqlEnum(QuantityUnitEnum, name="quantity_unit"), nullable=False, default=QuantityUnitEnum.pcs)
    available_qty = Column(Numeric(18, 4), nullable=False, default=_ZERO)
    reserved_qty = Column(Numeric(18, 4), nullable=False, default=_ZERO)
    committed_qty = Column(Numeric(18, 4), nullable=False, default=_ZERO)
    damaged_qty = Column(Numeric(18, 4), nullable=False, default=_ZERO)

    average_unit_cost = Column(Numeric(18, 6), nullable=False, default=_ZERO)
    last_unit_cost = Column(Numeric(18, 6), nullable=True)
    currency = Column(String(3), nullable=False, default="USD")

    reorder_point = Column(Numeric(18, 4), nullable=False, default=_ZERO)

    last_transaction_type = Column(String(20), nullable=True)
    last_transaction_at = Column(DateTime, nullable=True)
    last_transaction_quantity = Column(Numeric(18, 4), nullable=True)
    last_transaction_number = Column(String(20), nullable=True)

    status = Column(SqlEnum(InventoryStatusEnum, name="inventory_status"), nullable=False, default=InventoryStatusEnum.active)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("warehouse_id", "location_id", "sku", "batch_number", name="uq_inventory_item_slot"),
        CheckConstraint("available_qty >= 0", name="ck_inventory_available_non_negative"),
        CheckConstraint("reserved_qty >= 0", name="ck_inventory_reserved_non_negative"),
        CheckConstraint("committed_qty >= 0", name="ck_inventory_committed_non_negative"),
        CheckConstraint("damaged_qty >= 0", name="ck_inventory_damaged_non_negative"),
        CheckConstraint("average_unit_cost >= 0", name="ck_inventory_average_cost_non_negative"),
        Index("ix_inventory_items_warehouse_sku", "warehouse_id", "sku"),
        Index("ix_inventory_items_warehouse_status", "warehouse_id", "status"),
    )

    def __init__(self, **kwargs):
        for key, value in _DEFAULTS.items():
            kwargs.setdefault(key, value)
        super().__init__(**kwargs)

    @hybrid_property
    def total_qty(self):
        return self.available_qty + self.reserved_qty + self.committed_qty + self.damaged_qty

    @property
    def total_value(self) -> Decimal:
        return quantize_value(self.total_qty * self.average_unit_cost)

    @property
    def stock_status(self) -> StockStatusEnum:
        if self.available_qty <= 0:
            return StockStatusEnum.out_of_stock
        if self.available_qty <= self.reorder_point:
            return StockStatusEnum.low
        return StockStatusEnum.adequate

    def quantity_buckets(self) -> dict:
        return {
            "available": self.available_qty,
            "reserved": self.reserved_qty,
            "committed": self.committed_qty,
            "damaged": self.damaged_qty,
        }
