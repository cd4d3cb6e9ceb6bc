# inventory_ledger/models/transaction.py
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Uuid,
    event,
    inspect,
)
from sqlalchemy import Enum as SqlEnum
from sqlalchemy.orm import relationship

from inventory_ledger.core.exceptions import ImmutableTransactionError
from inventory_ledger.models.base import Base
from inventory_ledger.utils.money import extended_value


class TransactionTypeEnum(str, Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"


class TransactionStatusEnum(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class ReferenceTypeEnum(str, Enum):
    PURCHASE_ORDER = "PURCHASE_ORDER"
    SALES_ORDER = "SALES_ORDER"
    TRANSFER = "TRANSFER"
    RETURN = "RETURN"
    ADJUSTMENT = "ADJUSTMENT"
    PRODUCTION = "PRODUCTION"
    OTHER = "OTHER"


class PartyTypeEnum(str, Enum):
    SUPPLIER = "SUPPLIER"
    CUSTOMER = "CUSTOMER"
    INTERNAL = "INTERNAL"
    OTHER = "OTHER"


class QualityStatusEnum(str, Enum):
    GOOD = "GOOD"
    DAMAGED = "DAMAGED"
    EXPIRED = "EXPIRED"
    QUARANTINE = "QUARANTINE"


INBOUND_TYPES = {TransactionTypeEnum.INBOUND, TransactionTypeEnum.TRANSFER_IN}
OUTBOUND_TYPES = {TransactionTypeEnum.OUTBOUND, TransactionTypeEnum.TRANSFER_OUT}

# columns frozen once a row leaves PENDING
SNAPSHOT_COLUMNS = frozenset({
    "transaction_number",
    "sequence_no",
    "type",
    "warehouse_id",
    "location_id",
    "inventory_id",
    "sku",
    "product_name",
    "previous_qty",
    "change_qty",
    "current_qty",
    "unit",
    "unit_cost",
    "total_cost",
    "currency",
    "transaction_date",
})


class InventoryTransaction(Base):
    """One append-only ledger row per stock movement."""
    __tablename__ = "inventory_transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    transaction_number = Column(String(20), unique=True, nullable=True)
    sequence_no = Column(BigInteger, unique=True, nullable=True)

    type = Column(SqlEnum(TransactionTypeEnum, name="inv_txn_type"), nullable=False, index=True)
    status = Column(SqlEnum(TransactionStatusEnum, name="inv_txn_status"), nullable=False,
                    default=TransactionStatusEnum.PENDING, index=True)

    warehouse_id = Column(Uuid, nullable=False, index=True)
    location_id = Column(Uuid, nullable=False, index=True)
    inventory_id = Column(Uuid, ForeignKey("inventory_items.id"), nullable=False, index=True)

    # product identity as it was when the movement happened
    sku = Column(String(50), nullable=False, index=True)
    product_name = Column(String(200), nullable=False)

    previous_qty = Column(Numeric(18, 4), nullable=False)
    change_qty = Column(Numeric(18, 4), nullable=False)
    current_qty = Column(Numeric(18, 4), nullable=False)
    unit = Column(String(20), nullable=False)

    unit_cost = Column(Numeric(18, 6), nullable=True)
    total_cost = Column(Numeric(18, 2), nullable=True)
    currency = Column(String(3), nullable=False)

    reference_type = Column(SqlEnum(ReferenceTypeEnum, name="inv_txn_reference_type"), nullable=True)
    reference_number = Column(String(50), nullable=True)
    reference_date = Column(Date, nullable=True)

    party_type = Column(SqlEnum(PartyTypeEnum, name="inv_txn_party_type"), nullable=True)
    party_name = Column(String(200), nullable=True)
    party_code = Column(String(50), nullable=True)
    party_email = Column(String(254), nullable=True)
    party_phone = Column(String(20), nullable=True)

    batch_number = Column(String(50), nullable=True, index=True)
    batch_manufacture_date = Column(Date, nullable=True)
    batch_expiry_date = Column(Date, nullable=True)

    quality_status = Column(SqlEnum(QualityStatusEnum, name="inv_txn_quality_status"), nullable=False,
                            default=QualityStatusEnum.GOOD)
    quality_inspector = Column(String(100), nullable=True)
    quality_notes = Column(String(500), nullable=True)

    reason = Column(String(200), nullable=False)
    notes = Column(String(2000), nullable=True)

    created_by_id = Column(String(64), nullable=False)
    created_by_name = Column(String(100), nullable=False)
    confirmed_by_id = Column(String(64), nullable=True)
    confirmed_by_name = Column(String(100), nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    cancelled_by_id = Column(String(64), nullable=True)
    cancelled_by_name = Column(String(100), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    transaction_date = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    inventory = relationship("InventoryItem", foreign_keys=[inventory_id])

    __table_args__ = (
        Index("ix_inv_txn_warehouse_date", "warehouse_id", "transaction_date"),
        Index("ix_inv_txn_type_date", "type", "transaction_date"),
        Index("ix_inv_txn_sku_date", "sku", "transaction_date"),
        Index("ix_inv_txn_inventory_seq", "inventory_id", "sequence_no"),
    )

    @property
    def direction(self) -> str:
        return "IN" if self.change_qty >= 0 else "OUT"

    @property
    def total_value(self) -> Decimal:
        return extended_value(self.change_qty, self.unit_cost)

    def is_inbound(self) -> bool:
        return self.type in INBOUND_TYPES or self.change_qty > 0

    def is_outbound(self) -> bool:
        return self.type in OUTBOUND_TYPES or self.change_qty < 0

    def can_cancel(self) -> bool:
        return self.status == TransactionStatusEnum.CONFIRMED

    def append_note(self, line: str) -> None:
        self.notes = f"{self.notes}\n{line}" if self.notes else line


@event.listens_for(InventoryTransaction, "before_update")
def _refuse_snapshot_rewrite(mapper, connection, target: InventoryTransaction):
    state = inspect(target)
    status_history = state.attrs.status.history
    previous_status = status_history.deleted[0] if status_history.deleted else target.status
    if previous_status == TransactionStatusEnum.PENDING:
        return
    changed = {name for name in SNAPSHOT_COLUMNS if state.attrs[name].history.has_changes()}
    if changed:
        raise ImmutableTransactionError(target.transaction_number, changed)
