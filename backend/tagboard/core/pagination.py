from __future__ import annotations

import math
from typing import Sequence, TypeVar

from ..models import SearchParams, SelectedTag, StockListResult

T = TypeVar("T")


def count_pages(total: int, per_page: int) -> int:
    if total <= 0:
        return 0
    return math.ceil(total / per_page)


def paginate(items: Sequence[T], page: int, per_page: int) -> tuple[list[T], int]:
    """
    Slice one 1-based page out of an already sorted sequence.

    Pages past the end yield an empty list; the returned page count always
    reflects the full sequence.
    """
    total_pages = count_pages(len(items), per_page)
    start_index = (page - 1) * per_page
    if start_index >= len(items):
        return [], total_pages
    end_index = min(start_index + per_page, len(items))
    return list(items[start_index:end_index]), total_pages


def get_stock_list(selected_tag: SelectedTag, params: SearchParams) -> StockListResult:
    """Page through the stocks that carry the selected tag."""
    stocks, total_pages = paginate(selected_tag.stocks, params.stocks_page, params.stocks_per_page)
    return StockListResult(
        stocks=stocks,
        total_stocks=len(selected_tag.stocks),
        total_pages=total_pages,
        current_page=params.stocks_page,
    )
