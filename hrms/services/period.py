"""
Pay period resolution.

A period is a (year, month) pay cycle covering the inclusive date range from
the first to the last calendar day of that month.
"""
import calendar
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Optional

from hrms.core.exceptions import InvalidPeriodError


@dataclass(frozen=True)
class PayPeriod:
    year: int
    month: int

    @classmethod
    def resolve(cls, year: Any, month: Any) -> "PayPeriod":
        if isinstance(year, bool) or isinstance(month, bool):
            raise InvalidPeriodError(year, month)
        try:
            y, m = int(year), int(month)
        except (TypeError, ValueError):
            raise InvalidPeriodError(year, month)
        if y <= 0 or not 1 <= m <= 12:
            raise InvalidPeriodError(year, month)
        return cls(y, m)

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    @property
    def next_start(self) -> date:
        if self.month == 12:
            return date(self.year + 1, 1, 1)
        return date(self.year, self.month + 1, 1)

    @property
    def start_datetime(self) -> datetime:
        return datetime.combine(self.start, time.min)

    @property
    def end_datetime_exclusive(self) -> datetime:
        return datetime.combine(self.next_start, time.min)

    @property
    def month_name(self) -> str:
        return calendar.month_name[self.month]

    def previous(self) -> "PayPeriod":
        if self.month == 1:
            return PayPeriod(self.year - 1, 12)
        return PayPeriod(self.year, self.month - 1)

    def overlaps(self, effective_from: Optional[date], effective_to: Optional[date]) -> bool:
        """Open-ended bounds (None) always overlap on their side."""
        return (effective_from is None or effective_from <= self.end) and (
            effective_to is None or effective_to >= self.start
        )

    def contains(self, value: Optional[date]) -> bool:
        if value is None:
            return False
        if isinstance(value, datetime):
            value = value.date()
        return self.start <= value <= self.end

    def has_joined(self, joining_date: Optional[date]) -> bool:
        """True when an employee who joined on `joining_date` is payable in this period."""
        if joining_date is None:
            return True
        return (joining_date.year, joining_date.month) <= (self.year, self.month)

    def as_dict(self) -> dict:
        return {"year": self.year, "month": self.month, "month_name": self.month_name}
