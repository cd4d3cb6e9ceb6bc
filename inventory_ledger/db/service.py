# Core pagination service

import logging
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import asc, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_ledger.core.exceptions import ValidationError
from inventory_ledger.schemas.pagination import PaginatedResponse, PaginationInfo, SortOrder

# Generic type for the output schema classes
T = TypeVar('T', bound=BaseModel)
logger = logging.getLogger(__name__)

RANGE_OPERATORS = ("gte", "lte", "gt", "lt", "eq")


class PaginationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def build_conditions(self, model_class, filters: Optional[Dict[str, Any]]) -> list:
        """Turn {"field": value} and {"field": {"gte": a, "lte": b}} into WHERE clauses.

        None values are skipped; unknown fields or operators are rejected.
        """
        where_filters = []
        for field, value in (filters or {}).items():
            if value is None:
                continue
            column = getattr(model_class, field, None)
            if column is None:
                raise ValidationError(f"unknown filter field '{field}'", field=field)
            if isinstance(value, dict):
                # Handle range filters like {"gte": start, "lte": end}
                unknown = set(value) - set(RANGE_OPERATORS)
                if unknown:
                    raise ValidationError(f"unsupported operator(s) {sorted(unknown)} for '{field}'", field=field)
                if value.get("gte") is not None:
                    where_filters.append(column >= value["gte"])
                if value.get("gt") is not None:
                    where_filters.append(column > value["gt"])
                if value.get("lte") is not None:
                    where_filters.append(column <= value["lte"])
                if value.get("lt") is not None:
                    where_filters.append(column < value["lt"])
                if value.get("eq") is not None:
                    where_filters.append(column == value["eq"])
            else:
                # Direct equality filter
                where_filters.append(column == value)
        return where_filters

    async def paginate(
        self,
        model_class,
        output_schema: Type[T],
        page: Optional[int] = None,
        limit: int = 20,
        sort_by: Sequence[str] = ("created_at",),
        sort_order: SortOrder = SortOrder.desc,
        filters: Optional[Dict[str, Any]] = None,
    ) -> PaginatedResponse[T]:
        """
        Offset pagination over any SQLAlchemy model.

        Args:
            model_class: SQLAlchemy model class to paginate
            output_schema: Pydantic schema each row is converted to
            page: 1-based page number, defaults to 1
            limit: Number of items per page
            sort_by: Field names to sort by, in priority order; later ones break ties
            sort_order: Sort order applied to every sort field
            filters: Dictionary of field:value or field:{op: value} filters
        """
        where_filters = self.build_conditions(model_class, filters)

        order_columns = []
        for field in sort_by:
            column = getattr(model_class, field, None)
            if column is None:
                raise ValidationError(f"unknown sort field '{field}'", field=field)
            order_columns.append(desc(column) if sort_order == SortOrder.desc else asc(column))

        count_query = select(func.count()).select_from(model_class).where(*where_filters)
        total_items = (await self.db.execute(count_query)).scalar_one()
        total_pages = (total_items + limit - 1) // limit

        if page is None or page < 1:
            page = 1

        offset = (page - 1) * limit
        query = (
            select(model_class)
            .where(*where_filters)
            .order_by(*order_columns)
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(query)
        items = result.scalars().all()

        data = [output_schema.model_validate(item) for item in items]
        has_next = page < total_pages
        has_previous = page > 1
        pagination = PaginationInfo(
            current_page=page,
            total_pages=total_pages,
            total_items=total_items,
            items_per_page=limit,
            has_next=has_next,
            has_previous=has_previous,
            next_page=page + 1 if has_next else None,
            previous_page=page - 1 if has_previous else None,
        )
        logger.debug(f"paginated {model_class.__name__} page={page} limit={limit} total={total_items}")
        return PaginatedResponse[output_schema](data=data, pagination=pagination)
