from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable

from fleet_ledger.aggregate import BASE_ALLOWANCE, driver_key, driver_ledgers
from fleet_ledger.core import ZERO, Trip, as_float, format_money, parse_amount
from fleet_ledger.periods import period_label, trips_for_period


@dataclass
class SlipLine:
    trip_id: Any
    date: date
    route: str
    wage: Decimal
    basket_share: Decimal
    staff_share: Decimal

    @property
    def amount(self) -> Decimal:
        return self.wage + self.basket_share - self.staff_share


@dataclass
class PayrollSlip:
    driver_name: str
    period_label: str
    lines: list[SlipLine] = field(default_factory=list)
    base_allowance: Decimal = BASE_ALLOWANCE
    cn_deduction: Decimal = ZERO
    net_pay: Decimal = ZERO

    @property
    def total_wage(self) -> Decimal:
        return sum((line.wage for line in self.lines), ZERO)

    @property
    def total_basket_share(self) -> Decimal:
        return sum((line.basket_share for line in self.lines), ZERO)

    @property
    def total_advance(self) -> Decimal:
        return sum((line.staff_share for line in self.lines), ZERO)


def build_slip(
    driver_name: str,
    trips: Iterable[Trip],
    cn_deduction: Any = None,
    period_label: str = "",
) -> PayrollSlip:
    """
    Build one driver's payroll slip.

    The trips must already be limited to this driver and billing period; nothing
    is filtered here. Net pay is the sum of each trip's wage plus basket share
    minus its advance, plus the flat allowance, minus the CN deduction.
    """
    lines = [
        SlipLine(
            trip_id=trip.id,
            date=trip.date,
            route=trip.route,
            wage=trip.wage,
            basket_share=trip.basket_share,
            staff_share=trip.staff_share,
        )
        for trip in trips
    ]
    deduction = parse_amount(cn_deduction)
    earned = sum((line.amount for line in lines), ZERO)
    return PayrollSlip(
        driver_name=driver_name,
        period_label=period_label,
        lines=lines,
        cn_deduction=deduction,
        net_pay=earned + BASE_ALLOWANCE - deduction,
    )


def slips_for_period(
    trips: Iterable[Trip],
    month: int,
    year: int,
    cn_deductions: Mapping[str, Any] | None = None,
) -> list[PayrollSlip]:
    label = period_label(month, year)
    in_period = sorted(trips_for_period(trips, month, year), key=lambda trip: (trip.date, str(trip.id or "")))
    ledgers = driver_ledgers(in_period)
    return [
        build_slip(name, ledger.trips, (cn_deductions or {}).get(name), period_label=label)
        for name, ledger in ledgers.items()
    ]


def slip_for_driver(
    trips: Iterable[Trip],
    driver_name: str,
    month: int,
    year: int,
    cn_deductions: Mapping[str, Any] | None = None,
) -> PayrollSlip:
    in_period = sorted(trips_for_period(trips, month, year), key=lambda trip: (trip.date, str(trip.id or "")))
    driver_trips = [trip for trip in in_period if driver_key(trip) == driver_name]
    return build_slip(
        driver_name,
        driver_trips,
        (cn_deductions or {}).get(driver_name),
        period_label=period_label(month, year),
    )


def slip_to_dict(slip: PayrollSlip) -> dict[str, Any]:
    return {
        "schema_version": "1.0.0",
        "driver_name": slip.driver_name,
        "period_label": slip.period_label,
        "lines": [
            {
                "trip_id": None if line.trip_id is None else str(line.trip_id),
                "date": line.date.isoformat(),
                "route": line.route,
                "wage": as_float(line.wage),
                "basket_share": as_float(line.basket_share),
                "staff_share": as_float(line.staff_share),
                "amount": as_float(line.amount),
            }
            for line in slip.lines
        ],
        "total_wage": as_float(slip.total_wage),
        "total_basket_share": as_float(slip.total_basket_share),
        "total_advance": as_float(slip.total_advance),
        "base_allowance": as_float(slip.base_allowance),
        "cn_deduction": as_float(slip.cn_deduction),
        "net_pay": as_float(slip.net_pay),
    }


def slip_to_markdown(slip: PayrollSlip) -> str:
    lines: list[str] = []

    lines.append(f"# Payroll Slip: {slip.driver_name}")
    lines.append("")
    if slip.period_label:
        lines.append(f"- Period: {slip.period_label}")
    lines.append(f"- Trips: {len(slip.lines)}")
    lines.append("")

    if slip.lines:
        lines.append("| Date | Route | Wage | Basket Share | Advance | Amount |")
        lines.append("| :--- | :--- | ---: | ---: | ---: | ---: |")
        for line in slip.lines:
            lines.append(
                f"| {line.date.isoformat()} | {line.route or '-'} | {format_money(line.wage)} | "
                f"{format_money(line.basket_share)} | {format_money(line.staff_share)} | {format_money(line.amount)} |"
            )
        lines.append("")

    lines.append("## Summary")
    lines.append(f"- Wages: {format_money(slip.total_wage)}")
    lines.append(f"- Basket Share: {format_money(slip.total_basket_share)}")
    lines.append(f"- Allowance: {format_money(slip.base_allowance)}")
    lines.append(f"- Advances: -{format_money(slip.total_advance)}")
    lines.append(f"- CN Deduction: -{format_money(slip.cn_deduction)}")
    lines.append(f"- **Net Pay: {format_money(slip.net_pay)}**")
    lines.append("")

    return "\n".join(lines)
