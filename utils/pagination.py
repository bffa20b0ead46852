from datetime import date, datetime, time, timedelta, timezone
from math import ceil

from sqlalchemy import asc, desc

MAX_LIMIT = 100


def page_meta(page: int, limit: int, total: int) -> dict:
    total_pages = ceil(total / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next_page": page < total_pages,
        "has_previous_page": page > 1,
    }


def clamp(page, limit, default_limit=10):
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or default_limit), 1), MAX_LIMIT)
    return page, limit


def apply_sort(query, sort: str, columns: dict, default: str):
    """
    Sort by an allowlisted column. A leading '-' means descending,
    e.g. "-created_at". Unknown keys fall back to the default.
    """
    key = (sort or default).strip()
    direction = desc if key.startswith("-") else asc
    col = columns.get(key.lstrip("-"))
    if col is None:
        key = default
        direction = desc if key.startswith("-") else asc
        col = columns[key.lstrip("-")]
    return query.order_by(direction(col)), key


def day_start(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def day_after(d: date) -> datetime:
    """Exclusive upper bound covering the whole of day d."""
    return day_start(d + timedelta(days=1))


def apply_date_range(query, column, start: date = None, end: date = None):
    if start is not None:
        query = query.filter(column >= day_start(start))
    if end is not None:
        query = query.filter(column < day_after(end))
    return query
