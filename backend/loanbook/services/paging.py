from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from loanbook.core.errors import ValidationError


@dataclass
class Page:
    items: list[Any]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


def paginate(s: Session, stmt: Select, page: int = 1, limit: int = 10) -> Page:
    page = max(1, int(page or 1))
    limit = max(1, int(limit or 10))
    total = s.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
    items = s.execute(stmt.offset((page - 1) * limit).limit(limit)).scalars().unique().all()
    return Page(items=list(items), page=page, limit=limit, total=int(total))


def order_clause(columns: dict[str, Any], sort_by: str, sort_order: str):
    col = columns.get(sort_by)
    if col is None:
        raise ValidationError("sort_field_invalid", f"cannot sort by {sort_by!r}")
    if (sort_order or "desc").lower() == "asc":
        return col.asc()
    return col.desc()
