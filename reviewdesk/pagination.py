from typing import List, Tuple

WINDOW = 5


def page_window(current: int, pages: int, size: int = WINDOW) -> List[int]:
    """Page-number buttons for a sliding window centered on ``current``."""
    if pages <= 0:
        return []
    if pages <= size:
        return list(range(1, pages + 1))
    start = min(max(current - size // 2, 1), pages - size + 1)
    return list(range(start, start + size))


def showing_range(page: int, limit: int, total: int) -> Tuple[int, int, int]:
    """(first, last, total) for the "Showing X to Y of Z" line."""
    if total <= 0:
        return 0, 0, 0
    first = (page - 1) * limit + 1
    last = min(page * limit, total)
    return min(first, total), last, total
