"""Calendar utilities: month arithmetic and statement-cycle resolution"""

import calendar
import re
from dataclasses import dataclass
from datetime import date
from typing import List

from treasury_engine.domain.exceptions import InvalidArgumentError

_YEAR_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})(?:-01)?$")


@dataclass(frozen=True, order=True)
class YearMonth:
    """A calendar month, ordered chronologically"""

    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise InvalidArgumentError(f"Month out of range: {self.month}", field="month")

    @classmethod
    def from_date(cls, value: date) -> "YearMonth":
        return cls(value.year, value.month)

    @classmethod
    def parse(cls, value: str, field: str = "month") -> "YearMonth":
        """Parse ``YYYY-MM`` (or ``YYYY-MM-01``)"""
        match = _YEAR_MONTH_RE.match(value or "")
        if not match or not 1 <= int(match.group(2)) <= 12:
            raise InvalidArgumentError(
                f"Invalid month {value!r}, expected YYYY-MM or YYYY-MM-01",
                field=field,
            )
        return cls(int(match.group(1)), int(match.group(2)))

    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    def last_day(self) -> date:
        return date(self.year, self.month, days_in_month(self.year, self.month))

    def contains(self, value: date) -> bool:
        return value.year == self.year and value.month == self.month

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def resolve_statement_month(purchase_date: date, closing_day: int) -> YearMonth:
    """
    Competence month of a card purchase.

    Purchases on or before the closing day fall in the purchase month,
    later purchases roll to the following month (December rolls into
    January of the next year).
    """
    month = YearMonth.from_date(purchase_date)
    if purchase_date.day <= closing_day:
        return month
    return step_months(month, 1)


def step_months(year_month: YearMonth, n: int) -> YearMonth:
    """Add ``n`` months (may be negative) to a month"""
    index = year_month.year * 12 + (year_month.month - 1) + n
    return YearMonth(index // 12, index % 12 + 1)


def generate_monthly_sequence(start: date, end: date) -> List[YearMonth]:
    """Inclusive list of months from ``start``'s month through ``end``'s month"""
    if end < start:
        return []
    return month_range(YearMonth.from_date(start), YearMonth.from_date(end))


def month_range(first: YearMonth, last: YearMonth) -> List[YearMonth]:
    """Inclusive list of months between two months"""
    months = []
    current = first
    while current <= last:
        months.append(current)
        current = step_months(current, 1)
    return months


def clamp_to_month(year_month: YearMonth, day: int) -> date:
    """Date for ``day`` within a month, clamped to the month's last day"""
    return date(
        year_month.year,
        year_month.month,
        min(day, days_in_month(year_month.year, year_month.month)),
    )
