"""
Time Bucket Generator - Shared monthly columns for a forecast view.

The bucket sequence spans floor_to_month(earliest start) through
ceil_to_month(latest end) across every record, so all rows of a view
share identical columns. It is derived once per load and handed to
every row build.
"""
from datetime import date
from typing import Iterable, Iterator, List, Optional, Tuple

from ..entities import CostCodeRecord, TimeBucket
from ..exceptions import ValidationError


def month_key(day: date) -> str:
    """Month key ('YYYY-MM') containing a date."""
    return f"{day.year:04d}-{day.month:02d}"


def parse_month_key(key: str) -> Tuple[int, int]:
    """
    Split a 'YYYY-MM' key into (year, month).

    Raises:
        ValidationError: If the key is malformed
    """
    try:
        year_text, month_text = key.split('-')
        year, month = int(year_text), int(month_text)
    except (AttributeError, ValueError):
        raise ValidationError("bucket", f"'{key}' is not a YYYY-MM month key")
    if not 1 <= month <= 12:
        raise ValidationError("bucket", f"'{key}' has an invalid month")
    return year, month


def month_label(key: str) -> str:
    """Display label for a month key ('2025-01' -> 'Jan 2025')."""
    year, month = parse_month_key(key)
    return TimeBucket.for_month(year, month).label


def iter_months(start: date, end: date) -> Iterator[TimeBucket]:
    """Yield one bucket per calendar month from start's month through end's month."""
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        yield TimeBucket.for_month(year, month)
        month += 1
        if month > 12:
            year, month = year + 1, 1


def iter_month_keys(start: date, end: date) -> Iterator[str]:
    for bucket in iter_months(start, end):
        yield bucket.key


def _span(records: Iterable[CostCodeRecord]) -> Tuple[Optional[date], Optional[date]]:
    earliest = None
    latest = None
    for record in records:
        for start, end in record.date_ranges():
            if start is None or end is None:
                continue
            if earliest is None or start < earliest:
                earliest = start
            if latest is None or end > latest:
                latest = end
    return earliest, latest


def generate_time_buckets(records: Iterable[CostCodeRecord]) -> List[TimeBucket]:
    """
    Derive the ordered, contiguous monthly buckets for a set of records.

    Only date pairs with both a start and an end contribute. An inverted
    pair still widens the span; it is rejected later when distributed.

    Args:
        records: Every cost code record in the view

    Returns:
        Buckets from the month of the earliest start to the month of the
        latest end, inclusive; empty if no record has a complete range
    """
    earliest, latest = _span(records)
    if earliest is None or latest is None:
        return []
    if earliest > latest:
        earliest, latest = latest, earliest
    return list(iter_months(earliest, latest))
