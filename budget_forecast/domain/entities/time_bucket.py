"""
Time Bucket Entity - One calendar-month column of the forecast view.
"""
import calendar
from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class TimeBucket:
    """
    Calendar month a budget total is spread across.

    Attributes:
        key: Month key in 'YYYY-MM' form (sortable, used in value maps)
        label: Display label, e.g. 'Jan 2025'
        start: First day of the month
        end: Last day of the month
    """

    key: str
    label: str
    start: date
    end: date

    @classmethod
    def for_month(cls, year: int, month: int) -> "TimeBucket":
        """Build the bucket for a given year/month."""
        last_day = calendar.monthrange(year, month)[1]
        return cls(
            key=f"{year:04d}-{month:02d}",
            label=f"{calendar.month_abbr[month]} {year}",
            start=date(year, month, 1),
            end=date(year, month, last_day),
        )

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def to_dict(self) -> dict:
        return {
            'key': self.key,
            'label': self.label,
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
        }
