# retail_backend/schemas/query_schemas.py
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field

from retail_backend.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from retail_backend.core.exceptions import ValidationError

FILTER_OPS = ("eq", "in", "contains", "gte", "lte")


# --------------------------
# Query plan primitives
# --------------------------
@dataclass(frozen=True)
class FilterClause:
    field: str
    op: str
    value: Any


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class Pagination:
    page_size: int
    current_page: int = 0  # zero-based

    @property
    def offset(self) -> int:
        return self.page_size * self.current_page


@dataclass(frozen=True)
class QueryPlan:
    filters: Tuple[FilterClause, ...] = ()
    sort: Tuple[SortKey, ...] = ()
    pagination: Optional[Pagination] = None
    select: Tuple[str, ...] = ()
    search: Optional[str] = None


@dataclass
class QueryResult:
    rows: List[dict] = field(default_factory=list)
    total_count: int = 0
    summary: Optional[Dict[str, float]] = None


# --------------------------
# Request body
# --------------------------
class PaginationIn(BaseModel):
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    current_page: int = Field(0, ge=0)


class FilterAndPagination(BaseModel):
    """
    List request accepted by every ``get-all`` route.

    ``filter`` maps a field to a value (equality) or to ``{op: value}`` with
    op one of eq, in, contains, gte, lte (a leading ``$`` is accepted).
    ``sort`` maps a field to 1/-1 or "asc"/"desc".
    """

    filter: Optional[Dict[str, Any]] = None
    sort: Optional[Dict[str, Any]] = None
    pagination: Optional[PaginationIn] = None
    select: Optional[List[str]] = None

    def to_plan(self, search: Optional[str] = None) -> QueryPlan:
        filters = []
        for name, raw in (self.filter or {}).items():
            if isinstance(raw, dict):
                for op, value in raw.items():
                    op = op.lstrip("$")
                    if op not in FILTER_OPS:
                        raise ValidationError(f"Unsupported filter operator '{op}' on '{name}'")
                    filters.append(FilterClause(name, op, value))
            else:
                filters.append(FilterClause(name, "eq", raw))

        sort = []
        for name, direction in (self.sort or {}).items():
            if direction in (-1, "-1", "desc", "DESC"):
                sort.append(SortKey(name, descending=True))
            elif direction in (1, "1", "asc", "ASC"):
                sort.append(SortKey(name, descending=False))
            else:
                raise ValidationError(f"Invalid sort direction '{direction}' for '{name}'")

        pagination = None
        if self.pagination is not None:
            pagination = Pagination(self.pagination.page_size, self.pagination.current_page)

        return QueryPlan(
            filters=tuple(filters),
            sort=tuple(sort),
            pagination=pagination,
            select=tuple(self.select or ()),
            search=search.strip() if search and search.strip() else None,
        )


class ListResponse(BaseModel):
    message: str
    total: int
    data: List[Dict[str, Any]]
    summary: Optional[Dict[str, float]] = None
