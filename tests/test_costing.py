from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_ledger.models.inventory import InventoryItem
from inventory_ledger.services.costing import apply_inbound_cost, weighted_average_cost


def _item(available="0", average="0") -> InventoryItem:
    return InventoryItem(
        id=uuid4(),
        warehouse_id=uuid4(),
        location_id=uuid4(),
        sku="SKU-1",
        product_name="Widget",
        currency="USD",
        available_qty=Decimal(available),
        average_unit_cost=Decimal(average),
    )


def test_first_receipt_sets_average_to_its_cost():
    assert weighted_average_cost(0, 0, 50, 100) == Decimal("100")


def test_second_receipt_blends_by_quantity():
    assert weighted_average_cost(Decimal("50"), Decimal("100"), Decimal("50"), Decimal("200")) == Decimal("150")


def test_blend_is_rounded_to_six_places():
    assert weighted_average_cost(1, 1, 2, 2) == Decimal("1.666667")


def test_zero_cost_receipt_dilutes_average():
    assert weighted_average_cost(10, 10, 10, 0) == Decimal("5")


@pytest.mark.parametrize("quantity, unit_cost", [(0, 10), (-5, 10), (5, -1)])
def test_invalid_receipt_is_rejected(quantity, unit_cost):
    with pytest.raises(ValueError):
        weighted_average_cost(10, 10, quantity, unit_cost)


def test_apply_inbound_cost_uses_pre_receipt_quantity():
    item = _item(available="50", average="100")
    changed = apply_inbound_cost(item, Decimal("50"), Decimal("200"))
    assert changed is True
    assert item.average_unit_cost == Decimal("150")
    assert item.last_unit_cost == Decimal("200")
    # quantity is the mutation engine's job
    assert item.available_qty == Decimal("50")


def test_apply_inbound_cost_without_cost_leaves_item_alone():
    item = _item(available="5", average="12")
    assert apply_inbound_cost(item, Decimal("5"), None) is False
    assert item.average_unit_cost == Decimal("12")
    assert item.last_unit_cost is None
