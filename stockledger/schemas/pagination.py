from __future__ import annotations

from math import ceil
from typing import Optional

from pydantic import BaseModel


class PageMeta(BaseModel):
    page: int
    limit: int
    pages: int
    total: int
    search: Optional[str] = None

    @classmethod
    def build(cls, *, page: int, limit: int, total: int, search: str | None) -> "PageMeta":
        return cls(page=page, limit=limit, pages=ceil(total / limit) if limit else 0, total=total, search=search)
