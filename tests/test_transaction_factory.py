from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_ledger.core.exceptions import InsufficientStockError, NoOpAdjustmentError, ValidationError
from inventory_ledger.models.inventory import InventoryItem, InventoryStatusEnum
from inventory_ledger.models.transaction import ReferenceTypeEnum, TransactionStatusEnum, TransactionTypeEnum
from inventory_ledger.services.transaction_factory import build_adjustment, build_inbound, build_outbound

from helpers import adjustment, inbound, outbound

NOW = datetime(2024, 3, 1, 9, 0, 0)


@pytest.fixture
def item() -> InventoryItem:
    return InventoryItem(
        id=uuid4(),
        warehouse_id=uuid4(),
        location_id=uuid4(),
        sku="SKU-1",
        product_name="Widget",
        currency="USD",
        available_qty=Decimal("20"),
        average_unit_cost=Decimal("5"),
    )


def test_inbound_snapshot(item):
    transaction = build_inbound(item, inbound(item.id, 10, 7), NOW)
    assert transaction.type == TransactionTypeEnum.INBOUND
    assert transaction.status == TransactionStatusEnum.PENDING
    assert transaction.previous_qty == Decimal("20")
    assert transaction.change_qty == Decimal("10")
    assert transaction.current_qty == Decimal("30")
    assert transaction.unit_cost == Decimal("7")
    assert transaction.total_cost == Decimal("70.00")
    assert transaction.party_name == "Acme Supplies"
    assert transaction.transaction_date == NOW
    assert transaction.unit == "pcs"
    assert transaction.is_inbound() and not transaction.is_outbound()
    assert transaction.total_value == Decimal("70.00")
    # building never touches the item
    assert item.available_qty == Decimal("20")


def test_inbound_without_cost_has_no_total(item):
    transaction = build_inbound(item, inbound(item.id, 3), NOW)
    assert transaction.unit_cost is None
    assert transaction.total_cost is None


def test_outbound_defaults_to_average_cost(item):
    transaction = build_outbound(item, outbound(item.id, 4), NOW)
    assert transaction.change_qty == Decimal("-4")
    assert transaction.current_qty == Decimal("16")
    assert transaction.unit_cost == Decimal("5")
    assert transaction.total_cost == Decimal("20.00")
    assert transaction.direction == "OUT"
    assert transaction.is_outbound()


def test_outbound_of_exactly_available_is_allowed(item):
    transaction = build_outbound(item, outbound(item.id, 20), NOW)
    assert transaction.current_qty == Decimal("0")


def test_outbound_beyond_available_is_refused(item):
    with pytest.raises(InsufficientStockError) as exc_info:
        build_outbound(item, outbound(item.id, "20.0001"), NOW)
    assert exc_info.value.available == Decimal("20")
    assert exc_info.value.sku == "SKU-1"


def test_adjustment_records_delta_to_target(item):
    transaction = build_adjustment(item, adjustment(item.id, 12), NOW)
    assert transaction.type == TransactionTypeEnum.ADJUSTMENT
    assert transaction.change_qty == Decimal("-8")
    assert transaction.current_qty == Decimal("12")
    assert transaction.unit_cost == Decimal("5")
    assert transaction.reference_type == ReferenceTypeEnum.ADJUSTMENT


def test_adjustment_to_same_quantity_is_a_no_op(item):
    with pytest.raises(NoOpAdjustmentError):
        build_adjustment(item, adjustment(item.id, 20), NOW)


def test_archived_item_cannot_move(item):
    item.status = InventoryStatusEnum.archived
    with pytest.raises(ValidationError):
        build_inbound(item, inbound(item.id, 1, 1), NOW)


def test_currency_must_match_item(item):
    with pytest.raises(ValidationError) as exc_info:
        build_inbound(item, inbound(item.id, 1, 1, currency="EUR"), NOW)
    assert exc_info.value.field == "currency"


def test_backdated_transaction_date_is_kept(item):
    when = datetime(2024, 2, 1, 8, 30)
    transaction = build_outbound(item, outbound(item.id, 1, transaction_date=when), NOW)
    assert transaction.transaction_date == when
