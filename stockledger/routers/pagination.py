from typing import Optional

from fastapi import Query

from ..core.config import settings


class PageParams:
    """Shared ``page``/``limit``/``search`` query parameters for list routes."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: Optional[int] = Query(None, ge=1),
        search: Optional[str] = Query(None, max_length=200),
    ) -> None:
        self.page = page
        self.limit = min(limit or settings.DEFAULT_PAGE_LIMIT, settings.MAX_PAGE_LIMIT)
        self.search = (search or "").strip() or None
