"""
Billing periods.

The fleet settles on a 20th-to-19th cycle instead of calendar months. A period
is identified by the 0-indexed calendar month it *ends* in (0 = January) and
that month's year, so ``(0, 2025)`` runs from 2024-12-20 to 2025-01-19.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator

from fleet_ledger.core import Trip

PERIOD_START_DAY = 20
PERIOD_END_DAY = 19

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


@dataclass(frozen=True)
class BillingWindow:
    start: date
    end: date

    def contains(self, day: date) -> bool:
        if isinstance(day, datetime):
            day = day.date()
        return self.start <= day <= self.end

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def __len__(self) -> int:
        return (self.end - self.start).days + 1


def _month_start(year: int, month: int) -> date:
    # Same overflow rules as calendar-date construction: month -1 is December of the previous year.
    carry, month_index = divmod(month, 12)
    return date(year + carry, month_index + 1, 1)


def window_for(month: int, year: int) -> BillingWindow:
    end = _month_start(year, month).replace(day=PERIOD_END_DAY)
    start = (_month_start(year, month) - timedelta(days=1)).replace(day=PERIOD_START_DAY)
    return BillingWindow(start=start, end=end)


def classify(day: date, month: int, year: int) -> bool:
    return window_for(month, year).contains(day)


def advance(month: int, year: int, direction: int) -> tuple[int, int]:
    if direction not in (-1, 1):
        raise ValueError(f"direction must be -1 or +1, got {direction!r}")
    if not 0 <= month <= 11:
        raise ValueError(f"month must be 0-11, got {month!r}")

    new_month = month + direction
    if new_month < 0:
        return 11, year - 1
    if new_month > 11:
        return 0, year + 1
    return new_month, year


def current_period(today: date | None = None) -> tuple[int, int]:
    today = today or date.today()
    return today.month - 1, today.year


def period_label(month: int, year: int) -> str:
    window = window_for(month, year)
    start_name = MONTH_NAMES[window.start.month - 1]
    end_name = MONTH_NAMES[window.end.month - 1]
    return f"{window.start.day} {start_name} - {window.end.day} {end_name} {year}"


def trips_in_window(trips: Iterable[Trip], window: BillingWindow) -> list[Trip]:
    return [trip for trip in trips if window.contains(trip.date)]


def trips_for_period(trips: Iterable[Trip], month: int, year: int) -> list[Trip]:
    return trips_in_window(trips, window_for(month, year))


def trips_for_year(trips: Iterable[Trip], year: int) -> list[Trip]:
    return [trip for trip in trips if trip.date.year == year]
