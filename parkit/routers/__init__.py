from fastapi import Query

from parkit.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
):
    return page, limit
