# exceptions.py
from decimal import Decimal
from typing import Any, Dict, Optional


class BusinessLogicException(Exception):
    """Base class for business-related exceptions."""
    retryable: bool = False

    def __init__(self, status_code: int, detail: str, extra: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.detail = detail
        self.extra = extra or {}
        super().__init__(self.detail)


class NotFoundError(BusinessLogicException):
    def __init__(self, resource: str, resource_id: Any):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(
            status_code=404,
            detail=f"{resource} {resource_id} not found",
        )


class ValidationError(BusinessLogicException):
    def __init__(self, detail: str, field: Optional[str] = None):
        self.field = field
        super().__init__(
            status_code=422,
            detail=detail,
            extra={"field": field} if field else None,
        )


class InsufficientStockError(BusinessLogicException):
    def __init__(self, requested: Decimal, available: Decimal, sku: str):
        self.requested = requested
        self.available = available
        self.sku = sku
        super().__init__(
            status_code=409,
            detail=f"Insufficient stock for {sku}: {requested} requested, {available} available",
            extra={"requested": str(requested), "available": str(available), "sku": sku},
        )


class NoOpAdjustmentError(BusinessLogicException):
    def __init__(self, quantity: Decimal):
        self.quantity = quantity
        super().__init__(
            status_code=400,
            detail=f"No quantity change detected: available is already {quantity}",
        )


class NotCancellableError(BusinessLogicException):
    def __init__(self, transaction_number: str, status: str, reason: str):
        self.transaction_number = transaction_number
        self.status = status
        self.reason = reason
        super().__init__(
            status_code=409,
            detail=f"Transaction {transaction_number} cannot be cancelled: {reason}",
            extra={"status": status},
        )


class ConcurrentModificationError(BusinessLogicException):
    retryable = True

    def __init__(self, inventory_id: Any):
        self.inventory_id = inventory_id
        super().__init__(
            status_code=409,
            detail=f"Inventory item {inventory_id} was modified concurrently, re-read and retry",
        )


class ResourceConflictError(BusinessLogicException):
    def __init__(self, detail: str):
        super().__init__(status_code=409, detail=detail)


class DuplicateItemError(ResourceConflictError):
    pass


class ImmutableTransactionError(BusinessLogicException):
    """Raised when a confirmed ledger row would have its snapshot rewritten."""

    def __init__(self, transaction_number: str, fields):
        super().__init__(
            status_code=500,
            detail=f"Transaction {transaction_number} is immutable, refused change to {', '.join(sorted(fields))}",
        )


class DatabaseException(Exception):
    """Base class for database-related exceptions."""
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.detail)


class DatabaseConstraintException(DatabaseException):
    def __init__(self, detail: str):
        super().__init__(status_code=409, detail=detail)
