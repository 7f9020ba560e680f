from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import date
from decimal import Decimal
from typing import Any, Iterable

from fleet_ledger.core import ZERO, Trip, as_float, parse_amount
from fleet_ledger.periods import trips_for_period, trips_for_year, window_for

UNSPECIFIED_DRIVER = "unspecified"
# Flat per-period stipend every driver receives once, however many trips they ran.
BASE_ALLOWANCE = Decimal("1000")
DAY_AMOUNT_FIELDS = ("price", "fuel", "wage", "maintenance", "basket", "basket_share", "staff_share", "profit")


@dataclass
class PeriodStats:
    total_trips: int = 0
    total_revenue: Decimal = ZERO
    total_wages: Decimal = ZERO
    total_fuel: Decimal = ZERO
    total_maintenance: Decimal = ZERO
    # Sum of basket_share (the driver payout), not basket revenue.
    total_basket: Decimal = ZERO
    total_staff_advance: Decimal = ZERO
    total_profit: Decimal = ZERO
    total_remaining_pay: Decimal = ZERO


@dataclass
class DriverLedger:
    driver_name: str
    wage: Decimal = ZERO
    basket_share: Decimal = ZERO
    advance: Decimal = ZERO
    cn_deduction: Decimal = ZERO
    trips: list[Trip] = field(default_factory=list)

    @property
    def net_pay(self) -> Decimal:
        return (self.wage + self.basket_share + BASE_ALLOWANCE) - self.advance - self.cn_deduction


@dataclass
class DaySummary:
    date: date
    route: str = "-"
    driver_name: str = ""
    price: Decimal = ZERO
    fuel: Decimal = ZERO
    wage: Decimal = ZERO
    maintenance: Decimal = ZERO
    basket: Decimal = ZERO
    basket_share: Decimal = ZERO
    staff_share: Decimal = ZERO
    profit: Decimal = ZERO
    count: int = 0
    items: list[Trip] = field(default_factory=list)


def driver_key(trip: Trip) -> str:
    return trip.driver_name or UNSPECIFIED_DRIVER


def deduction_for(cn_deductions: Mapping[str, Any] | None, driver_name: str) -> Decimal:
    if not cn_deductions:
        return ZERO
    return parse_amount(cn_deductions.get(driver_name))


def driver_ledgers(
    trips: Iterable[Trip],
    cn_deductions: Mapping[str, Any] | None = None,
) -> dict[str, DriverLedger]:
    ledgers: dict[str, DriverLedger] = {}
    for trip in trips:
        name = driver_key(trip)
        ledger = ledgers.get(name)
        if ledger is None:
            ledger = DriverLedger(driver_name=name, cn_deduction=deduction_for(cn_deductions, name))
            ledgers[name] = ledger
        ledger.wage += trip.wage
        ledger.basket_share += trip.basket_share
        ledger.advance += trip.staff_share
        ledger.trips.append(trip)
    return ledgers


def calculate_stats(
    trips: Iterable[Trip],
    cn_deductions: Mapping[str, Any] | None = None,
) -> PeriodStats:
    trips = list(trips)
    stats = PeriodStats()
    for trip in trips:
        stats.total_trips += 1
        stats.total_revenue += trip.price + trip.basket
        stats.total_wages += trip.wage
        stats.total_fuel += trip.fuel
        stats.total_maintenance += trip.maintenance
        stats.total_basket += trip.basket_share
        stats.total_staff_advance += trip.staff_share
        stats.total_profit += trip.profit

    for ledger in driver_ledgers(trips, cn_deductions).values():
        stats.total_remaining_pay += ledger.net_pay
    return stats


def aggregate_period(
    trips: Iterable[Trip],
    month: int,
    year: int,
    cn_deductions: Mapping[str, Any] | None = None,
) -> PeriodStats:
    return calculate_stats(trips_for_period(trips, month, year), cn_deductions)


def aggregate_year(trips: Iterable[Trip], year: int) -> PeriodStats:
    # CN deductions are per billing period, so yearly figures never include them.
    return calculate_stats(trips_for_year(trips, year), None)


def day_data(trips: Iterable[Trip], day: date) -> DaySummary:
    day_trips = [trip for trip in trips if trip.date == day]
    if not day_trips:
        return DaySummary(date=day)

    summary = DaySummary(
        date=day,
        route=", ".join(dict.fromkeys(trip.route for trip in day_trips)),
        driver_name=", ".join(dict.fromkeys(trip.driver_name for trip in day_trips if trip.driver_name)) or "-",
        count=len(day_trips),
        items=day_trips,
    )
    for trip in day_trips:
        for name in DAY_AMOUNT_FIELDS:
            setattr(summary, name, getattr(summary, name) + getattr(trip, name))
    return summary


def period_table(trips: Iterable[Trip], month: int, year: int) -> list[DaySummary]:
    window = window_for(month, year)
    by_day: dict[date, list[Trip]] = {}
    for trip in trips:
        if window.contains(trip.date):
            by_day.setdefault(trip.date, []).append(trip)
    return [day_data(by_day.get(day, []), day) for day in window.days()]


def table_totals(rows: Iterable[DaySummary]) -> dict[str, Decimal]:
    totals = {name: ZERO for name in DAY_AMOUNT_FIELDS}
    for row in rows:
        for name in DAY_AMOUNT_FIELDS:
            totals[name] += getattr(row, name)
    return totals


def stats_to_dict(stats: PeriodStats) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for item in fields(stats):
        value = getattr(stats, item.name)
        payload[item.name] = as_float(value) if isinstance(value, Decimal) else value
    return payload


def day_to_dict(summary: DaySummary) -> dict[str, Any]:
    return {
        "date": summary.date.isoformat(),
        "route": summary.route,
        "driver_name": summary.driver_name,
        "count": summary.count,
        **{name: as_float(getattr(summary, name)) for name in DAY_AMOUNT_FIELDS},
        "trip_ids": [trip.id for trip in summary.items],
    }
