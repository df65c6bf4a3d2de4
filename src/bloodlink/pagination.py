"""Offset pagination helpers shared by list endpoints."""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


class PaginationMeta(BaseModel):
    page: int
    per_page: int
    total: int
    pages: int


def page_meta(page: int, per_page: int, total: int) -> PaginationMeta:
    return PaginationMeta(
        page=page,
        per_page=per_page,
        total=total,
        pages=math.ceil(total / per_page) if per_page else 0,
    )


async def count_rows(db: AsyncSession, query: Select[Any]) -> int:
    """Count the rows a select would return, ignoring its ordering."""
    result = await db.execute(select(func.count()).select_from(query.order_by(None).subquery()))
    return result.scalar_one()


async def paginate(
    db: AsyncSession,
    query: Select[Any],
    page: int = 1,
    per_page: int = 10,
) -> tuple[list[Any], int]:
    """Run `query` for one page of ORM entities.

    Returns:
        Tuple of (items, total).
    """
    offset = (page - 1) * per_page
    total = await count_rows(db, query)
    result = await db.execute(query.offset(offset).limit(per_page))
    return list(result.scalars().all()), total
