"""
Shared list-retrieval contract: ``page`` (0-based), ``size`` and ``sort=field,direction``
in, :class:`~eventura.schemas.common.Page` out.
"""
from typing import Any, Dict, Optional, Type

from fastapi import Query
from pydantic import BaseModel

from ..config import settings
from ..errors import InvalidInput
from ..schemas.common import Page, Pageable, total_pages


class PageParams:
    """FastAPI dependency collecting the pagination query parameters."""

    def __init__(
        self,
        page: int = Query(0, ge=0),
        size: Optional[int] = Query(None, ge=1, le=settings.max_page_size),
        sort: Optional[str] = Query(None),
    ):
        self.page = page
        self.size = size or settings.default_page_size
        self.sort = sort


def parse_sort(sort: Optional[str], columns: Dict[str, Any], default: str):
    raw = (sort or default).strip()
    field, _, direction = raw.partition(",")
    field = field.strip()
    direction = (direction.strip() or "asc").lower()
    if field not in columns:
        allowed = ", ".join(sorted(columns))
        raise InvalidInput(f"Cannot sort by '{field}'. Allowed: {allowed}")
    if direction not in ("asc", "desc"):
        raise InvalidInput("Sort direction must be 'asc' or 'desc'")
    column = columns[field]
    return column.desc() if direction == "desc" else column.asc()


def paginate(
    query,
    params: PageParams,
    schema: Type[BaseModel],
    columns: Dict[str, Any],
    id_column,
    default_sort: str = "createdAt,desc",
) -> Page:
    total = query.order_by(None).count()
    # Entity id keeps the ordering stable across pages for ties on the sort key
    order = [parse_sort(params.sort, columns, default_sort), id_column.asc()]
    rows = query.order_by(*order).offset(params.page * params.size).limit(params.size).all()
    return Page[schema](
        content=[schema.model_validate(r) for r in rows],
        pageable=Pageable(page_number=params.page, page_size=params.size),
        total_pages=total_pages(total, params.size),
        total_elements=total,
    )
