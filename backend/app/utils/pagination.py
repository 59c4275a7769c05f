"""
Pagination helper for admin list endpoints.
"""
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

MAX_PAGE_SIZE = 100


def total_pages_for(total: int, page_size: int) -> int:
    """Number of pages needed for ``total`` rows; an empty result still has one page"""
    return (total + page_size - 1) // page_size if total > 0 else 1


async def paginate(
    db: AsyncSession,
    query: Select,
    page: int = 1,
    page_size: int = 20,
    count_query: Optional[Select] = None
) -> dict:
    """
    Apply offset pagination to a SELECT.

    Returns a dict shaped like QuoteListResponse: items, total, page,
    page_size, total_pages, has_next, has_previous.
    """
    page = max(1, page)
    page_size = max(1, min(MAX_PAGE_SIZE, page_size))

    if count_query is None:
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar() or 0
    total_pages = total_pages_for(total, page_size)

    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))
    items = list(result.scalars().all())

    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1
    }
