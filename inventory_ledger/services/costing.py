"""Weighted-average costing.

Each inbound receipt blends its unit cost into one running per-unit average:

    new_average = (available * average + quantity * unit_cost) / (available + quantity)

Outbound movements and adjustments read the average but never change it.
"""
from decimal import Decimal
from typing import Optional

from inventory_ledger.models.inventory import InventoryItem
from inventory_ledger.utils.money import quantize_cost, to_decimal


def weighted_average_cost(available, average_cost, quantity, unit_cost) -> Decimal:
    available = to_decimal(available)
    average_cost = to_decimal(average_cost)
    quantity = to_decimal(quantity)
    unit_cost = to_decimal(unit_cost)

    if quantity <= 0:
        raise ValueError(f"inbound quantity must be positive, got {quantity}")
    if unit_cost < 0:
        raise ValueError(f"unit cost cannot be negative, got {unit_cost}")

    new_total = available + quantity
    if new_total == 0:
        return quantize_cost(unit_cost)
    return quantize_cost((available * average_cost + quantity * unit_cost) / new_total)


def apply_inbound_cost(item: InventoryItem, quantity, unit_cost: Optional[Decimal]) -> bool:
    """Blend an inbound receipt into the item's average cost.

    Must run before the receipt is added to available_qty. Does nothing when
    the receipt carries no unit cost. Returns True when the cost changed.
    """
    if unit_cost is None:
        return False
    item.average_unit_cost = weighted_average_cost(
        item.available_qty, item.average_unit_cost, quantity, unit_cost
    )
    item.last_unit_cost = quantize_cost(unit_cost)
    return True
