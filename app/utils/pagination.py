# app/utils/pagination.py
import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from fastapi import HTTPException, Query, status
from sqlalchemy import or_

from app.models.all_models import to_local_naive

class PageParams:
    """Common `page` / `limit` / `sort` query parameters."""

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number"),
        limit: int = Query(10, ge=1, le=100, description="Items per page"),
        sort: str = Query("-created_at", description="Sort field, prefix with - for descending"),
    ):
        self.page = page
        self.limit = limit
        self.sort = sort

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

class WidePageParams(PageParams):
    """Same parameters with a default page size of 20."""

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number"),
        limit: int = Query(20, ge=1, le=100, description="Items per page"),
        sort: str = Query("-created_at", description="Sort field, prefix with - for descending"),
    ):
        super().__init__(page, limit, sort)

def pagination_meta(total: int, page: int, limit: int) -> Dict[str, Any]:
    pages = math.ceil(total / limit) if limit else 0
    return {
        "current": page,
        "pages": pages,
        "total": total,
        "limit": limit,
        "has_next": page < pages,
        "has_prev": page > 1,
    }

def apply_sort(query, model, sort: Optional[str], allowed: Iterable[str]):
    sort = sort or "-created_at"
    descending = sort.startswith("-")
    field = sort.lstrip("-")
    if field not in allowed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid sort field: {field}"
        )
    column = getattr(model, field)
    return query.order_by(column.desc() if descending else column.asc())

def paginate(query, params: PageParams) -> Tuple[List[Any], Dict[str, Any]]:
    """Run a count and a windowed fetch for the given query."""
    total = query.order_by(None).count()
    rows = query.offset(params.offset).limit(params.limit).all()
    return rows, pagination_meta(total, params.page, params.limit)

def paginate_list(items: Sequence[Any], params: PageParams) -> Tuple[List[Any], Dict[str, Any]]:
    rows = list(items[params.offset:params.offset + params.limit])
    return rows, pagination_meta(len(items), params.page, params.limit)

def apply_search(query, term: Optional[str], columns: Iterable):
    if not term:
        return query
    pattern = f"%{term}%"
    return query.filter(or_(*[column.ilike(pattern) for column in columns]))

def apply_date_range(query, column, date_from: Optional[datetime], date_to: Optional[datetime]):
    if date_from:
        query = query.filter(column >= to_local_naive(date_from))
    if date_to:
        query = query.filter(column <= to_local_naive(date_to))
    return query
