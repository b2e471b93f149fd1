"""Helpers for estimating invoice pagination constraints."""

from __future__ import annotations

import math
from typing import Tuple

from .layout import BOTTOM_MARGIN, ITEM_ROW_H, ITEMS_START_Y_CONT, ITEMS_START_Y_FIRST, PAGE_H, TOTALS_RESERVE


def page_capacities(page_height: float = PAGE_H) -> Tuple[int, int]:
    """Single-line rows that fit on the first page and on each continuation page."""
    bottom = page_height - BOTTOM_MARGIN
    first = int((bottom - ITEMS_START_Y_FIRST) // ITEM_ROW_H)
    cont = int((bottom - ITEMS_START_Y_CONT) // ITEM_ROW_H)
    return max(1, first), max(1, cont)


def _reserve_rows() -> int:
    return int(math.ceil(TOTALS_RESERVE / ITEM_ROW_H))


def estimate_page_count(item_count: int, page_height: float = PAGE_H) -> int:
    first, cont = page_capacities(page_height)
    rows = item_count + _reserve_rows()
    if rows <= first:
        return 1
    return 1 + (rows - first + cont - 1) // cont


def max_items_for_pages(page_count: int, page_height: float = PAGE_H) -> int:
    first, cont = page_capacities(page_height)
    pages = max(1, page_count)
    return max(0, first + cont * (pages - 1) - _reserve_rows())
