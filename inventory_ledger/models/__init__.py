from .inventory import InventoryItem
from .transaction import InventoryTransaction
from .sequence import LedgerSequence

__all__ = ["InventoryItem", "InventoryTransaction", "LedgerSequence"]
