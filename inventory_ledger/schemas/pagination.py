from enum import Enum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


class PaginationInfo(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next: bool
    has_previous: bool
    next_page: Optional[int] = None
    previous_page: Optional[int] = None


# T can be any Pydantic model (e.g. InventoryTransactionSchema, InventoryItemSchema)
T = TypeVar('T')


class PaginatedResponse(BaseModel, Generic[T]):
    data: List[T]
    pagination: PaginationInfo
