from typing import NamedTuple

from sqlalchemy.orm import Query


class Page(NamedTuple):
    items: list
    total_count: int
    page: int
    page_size: int


def paginate(query: Query, page: int, page_size: int) -> Page:
    total_count = query.order_by(None).count()
    items = query.limit(page_size).offset((page - 1) * page_size).all()
    return Page(items=items, total_count=total_count, page=page, page_size=page_size)
