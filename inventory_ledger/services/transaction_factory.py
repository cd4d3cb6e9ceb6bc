"""Builds candidate ledger rows from movement requests.

The builders are pure: they read a snapshot of the item and the request and
return a PENDING InventoryTransaction that has not been added to any
session. Nothing here touches the database or mutates the item.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from inventory_ledger.core.exceptions import (
    InsufficientStockError,
    NoOpAdjustmentError,
    ValidationError,
)
from inventory_ledger.models.inventory import InventoryItem, InventoryStatusEnum, QuantityUnitEnum
from inventory_ledger.models.transaction import (
    InventoryTransaction,
    QualityStatusEnum,
    ReferenceTypeEnum,
    TransactionStatusEnum,
    TransactionTypeEnum,
)
from inventory_ledger.schemas.inventory import ActorSchema
from inventory_ledger.schemas.transaction import (
    AdjustmentRequest,
    BatchInfo,
    InboundRequest,
    OutboundRequest,
    PartyInfo,
    QualityInfo,
    ReferenceInfo,
)
from inventory_ledger.utils.money import extended_value, quantize_cost, quantize_qty


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required", field=field)
    return value.strip()


def _require_actor(actor: Optional[ActorSchema]) -> ActorSchema:
    if actor is None or not actor.user_id or not actor.user_name:
        raise ValidationError("created_by is required", field="created_by")
    return actor


def _require_movable(item: InventoryItem) -> None:
    if item.status == InventoryStatusEnum.archived:
        raise ValidationError(f"inventory item {item.id} is archived", field="inventory_id")


def _check_currency(item: InventoryItem, currency: Optional[str]) -> str:
    if currency and currency.upper() != item.currency:
        raise ValidationError(
            f"currency {currency.upper()} does not match item currency {item.currency}",
            field="currency",
        )
    return item.currency


def _new_transaction(
    item: InventoryItem,
    type_: TransactionTypeEnum,
    change: Decimal,
    unit_cost: Optional[Decimal],
    reason: str,
    notes: Optional[str],
    actor: ActorSchema,
    transaction_date: datetime,
) -> InventoryTransaction:
    previous = quantize_qty(item.available_qty)
    change = quantize_qty(change)
    unit_cost = quantize_cost(unit_cost) if unit_cost is not None else None
    return InventoryTransaction(
        type=type_,
        status=TransactionStatusEnum.PENDING,
        warehouse_id=item.warehouse_id,
        location_id=item.location_id,
        inventory_id=item.id,
        sku=item.sku,
        product_name=item.product_name,
        previous_qty=previous,
        change_qty=change,
        current_qty=previous + change,
        unit=QuantityUnitEnum(item.unit).value,
        unit_cost=unit_cost,
        total_cost=extended_value(change, unit_cost) if unit_cost is not None else None,
        currency=item.currency,
        quality_status=QualityStatusEnum.GOOD,
        reason=reason,
        notes=notes,
        created_by_id=actor.user_id,
        created_by_name=actor.user_name,
        transaction_date=transaction_date,
    )


def _apply_reference(transaction: InventoryTransaction, reference: Optional[ReferenceInfo]) -> None:
    if reference is None:
        return
    transaction.reference_type = reference.type
    transaction.reference_number = reference.number
    transaction.reference_date = reference.date


def _apply_party(transaction: InventoryTransaction, party: PartyInfo) -> None:
    transaction.party_type = party.type
    transaction.party_name = party.name
    transaction.party_code = party.code
    if party.contact is not None:
        transaction.party_email = str(party.contact.email).lower() if party.contact.email else None
        transaction.party_phone = party.contact.phone


def _apply_batch(transaction: InventoryTransaction, batch: Optional[BatchInfo]) -> None:
    if batch is None:
        return
    transaction.batch_number = batch.number
    transaction.batch_manufacture_date = batch.manufacture_date
    transaction.batch_expiry_date = batch.expiry_date


def _apply_quality(transaction: InventoryTransaction, quality: Optional[QualityInfo]) -> None:
    if quality is None:
        return
    transaction.quality_status = quality.status
    transaction.quality_inspector = quality.inspector
    transaction.quality_notes = quality.notes


def _require_party(party: Optional[PartyInfo]) -> PartyInfo:
    if party is None or not party.name or not party.name.strip():
        raise ValidationError("party.name is required", field="party.name")
    return party


def build_inbound(item: InventoryItem, request: InboundRequest, now: datetime) -> InventoryTransaction:
    _require_movable(item)
    reason = _require_text(request.reason, "reason")
    actor = _require_actor(request.created_by)
    party = _require_party(request.party)
    if request.quantity is None or request.quantity <= 0:
        raise ValidationError("quantity must be greater than 0", field="quantity")
    if request.unit_cost is not None and request.unit_cost < 0:
        raise ValidationError("unit_cost cannot be negative", field="unit_cost")
    _check_currency(item, request.currency)

    transaction = _new_transaction(
        item,
        TransactionTypeEnum.INBOUND,
        change=request.quantity,
        unit_cost=request.unit_cost,
        reason=reason,
        notes=request.notes,
        actor=actor,
        transaction_date=request.transaction_date or now,
    )
    _apply_party(transaction, party)
    _apply_reference(transaction, request.reference)
    _apply_batch(transaction, request.batch)
    _apply_quality(transaction, request.quality)
    return transaction


def build_outbound(item: InventoryItem, request: OutboundRequest, now: datetime) -> InventoryTransaction:
    _require_movable(item)
    reason = _require_text(request.reason, "reason")
    actor = _require_actor(request.created_by)
    party = _require_party(request.party)
    if request.quantity is None or request.quantity <= 0:
        raise ValidationError("quantity must be greater than 0", field="quantity")
    _check_currency(item, request.currency)

    # checked here, before anything is mutated
    if request.quantity > item.available_qty:
        raise InsufficientStockError(
            requested=quantize_qty(request.quantity),
            available=quantize_qty(item.available_qty),
            sku=item.sku,
        )

    unit_cost = request.unit_cost if request.unit_cost is not None else item.average_unit_cost
    transaction = _new_transaction(
        item,
        TransactionTypeEnum.OUTBOUND,
        change=-request.quantity,
        unit_cost=unit_cost,
        reason=reason,
        notes=request.notes,
        actor=actor,
        transaction_date=request.transaction_date or now,
    )
    _apply_party(transaction, party)
    _apply_reference(transaction, request.reference)
    _apply_batch(transaction, request.batch)
    _apply_quality(transaction, request.quality)
    return transaction


def build_adjustment(item: InventoryItem, request: AdjustmentRequest, now: datetime) -> InventoryTransaction:
    _require_movable(item)
    reason = _require_text(request.reason, "reason")
    notes = _require_text(request.notes, "notes")
    actor = _require_actor(request.created_by)
    if request.new_quantity is None or request.new_quantity < 0:
        raise ValidationError("new_quantity cannot be negative", field="new_quantity")

    change = quantize_qty(request.new_quantity) - quantize_qty(item.available_qty)
    if change == 0:
        raise NoOpAdjustmentError(quantize_qty(item.available_qty))

    transaction = _new_transaction(
        item,
        TransactionTypeEnum.ADJUSTMENT,
        change=change,
        unit_cost=item.average_unit_cost,
        reason=reason,
        notes=notes,
        actor=actor,
        transaction_date=request.transaction_date or now,
    )
    reference = request.reference or ReferenceInfo(type=ReferenceTypeEnum.ADJUSTMENT)
    _apply_reference(transaction, reference)
    return transaction
