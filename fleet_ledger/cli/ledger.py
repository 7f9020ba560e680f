"""
CLI Entry Point: fleet-ledger

Billing-period rollups, yearly totals, payroll slips and trip entry for the
fleet trip log.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from fleet_ledger.aggregate import (
    DAY_AMOUNT_FIELDS,
    PeriodStats,
    aggregate_period,
    aggregate_year,
    day_to_dict,
    driver_ledgers,
    period_table,
    stats_to_dict,
    table_totals,
)
from fleet_ledger.config import load_config, open_cache, open_repository
from fleet_ledger.core import format_money, parse_amount, suggest_basket
from fleet_ledger.deductions import DeductionBook, DriverNameMemory
from fleet_ledger.payroll import slip_for_driver, slip_to_dict, slip_to_markdown
from fleet_ledger.periods import current_period, period_label, trips_for_period
from fleet_ledger.store import TripRepository
from fleet_ledger.utils import console
from fleet_ledger.utils.contracts import validate_output
from fleet_ledger.utils.kv import KeyValueStore

DAY_COLUMNS = ["Date", "Driver", "Route", "Fare", "Fuel", "Wage", "Repairs", "Basket", "Basket Share", "Advance", "Profit"]


def write_markdown(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def parse_trip_id(value: str) -> Any:
    try:
        return int(value)
    except ValueError:
        return value


def resolve_period(args: argparse.Namespace) -> tuple[int, int]:
    month, year = current_period()
    if args.month is not None:
        if not 1 <= args.month <= 12:
            raise SystemExit(f"--month must be between 1 and 12, got {args.month}")
        month = args.month - 1
    if args.year is not None:
        year = args.year
    return month, year


def money_cell(value: Any) -> str:
    return format_money(value) if value else "-"


def stats_rows(stats: PeriodStats) -> list[list[str]]:
    return [
        ["Trips", str(stats.total_trips)],
        ["Revenue", format_money(stats.total_revenue)],
        ["Wages", format_money(stats.total_wages)],
        ["Fuel", format_money(stats.total_fuel)],
        ["Maintenance", format_money(stats.total_maintenance)],
        ["Basket Share Paid", format_money(stats.total_basket)],
        ["Advances", format_money(stats.total_staff_advance)],
        ["Profit", format_money(stats.total_profit)],
        ["Remaining Pay", format_money(stats.total_remaining_pay)],
    ]


def cmd_period(args: argparse.Namespace, repository: TripRepository, deductions: DeductionBook) -> None:
    month, year = resolve_period(args)
    trips = repository.trips
    stats = aggregate_period(trips, month, year, deductions.as_dict())
    rows = period_table(trips, month, year)

    if args.json:
        payload = stats_to_dict(stats)
        validate_output(payload, "period_stats", mode="STRICT")
        print(
            json.dumps(
                {
                    "period": period_label(month, year),
                    "stats": payload,
                    "days": [day_to_dict(row) for row in rows if args.all_days or row.count],
                },
                indent=2,
            )
        )
        return

    console.print_step(f"Billing period {period_label(month, year)}")
    if repository.degraded:
        console.print_warning("Trip store unreachable; showing local cache.")

    shown = [row for row in rows if args.all_days or row.count]
    totals = table_totals(rows)
    console.print_table(
        "Daily trips",
        DAY_COLUMNS,
        [
            [
                row.date.isoformat(),
                row.driver_name or "-",
                row.route,
                money_cell(row.price),
                money_cell(row.fuel),
                money_cell(row.wage),
                money_cell(row.maintenance),
                money_cell(row.basket),
                money_cell(row.basket_share),
                money_cell(row.staff_share),
                money_cell(row.profit),
            ]
            for row in shown
        ],
        footer=["Total", "", ""] + [format_money(totals[name]) for name in DAY_AMOUNT_FIELDS],
    )
    console.print_table("Period totals", ["Metric", "Amount"], stats_rows(stats))

    ledgers = driver_ledgers(trips_for_period(trips, month, year), deductions.as_dict())
    console.print_table(
        "Driver pay",
        ["Driver", "Trips", "Wages", "Basket Share", "Advances", "CN", "Net Pay"],
        [
            [
                name,
                str(len(ledger.trips)),
                format_money(ledger.wage),
                format_money(ledger.basket_share),
                format_money(ledger.advance),
                format_money(ledger.cn_deduction),
                format_money(ledger.net_pay),
            ]
            for name, ledger in sorted(ledgers.items())
        ],
    )


def cmd_year(args: argparse.Namespace, repository: TripRepository, deductions: DeductionBook) -> None:
    year = args.year if args.year is not None else current_period()[1]
    stats = aggregate_year(repository.trips, year)
    if args.json:
        payload = stats_to_dict(stats)
        validate_output(payload, "period_stats", mode="STRICT")
        print(json.dumps({"year": year, "stats": payload}, indent=2))
        return
    console.print_step(f"Year {year}")
    console.print_table("Yearly totals", ["Metric", "Amount"], stats_rows(stats))


def cmd_slip(args: argparse.Namespace, repository: TripRepository, deductions: DeductionBook) -> None:
    month, year = resolve_period(args)
    slip = slip_for_driver(repository.trips, args.driver, month, year, deductions.as_dict())
    if not slip.lines:
        console.print_warning(f"No trips for {args.driver} in {period_label(month, year)}.")

    if args.json:
        payload = slip_to_dict(slip)
        validate_output(payload, "payroll_slip", mode="STRICT")
        print(json.dumps(payload, indent=2))
        return

    markdown = slip_to_markdown(slip)
    if args.markdown_out:
        write_markdown(args.markdown_out, markdown)
        console.print_success(f"Slip written to {args.markdown_out}")
    else:
        print(markdown)


def cmd_deduct(args: argparse.Namespace, repository: TripRepository, deductions: DeductionBook) -> None:
    if args.clear:
        deductions.clear(args.driver)
        console.print_success(f"Cleared CN deduction for {args.driver}")
        return
    if args.amount is None:
        print(f"{args.driver}: {format_money(deductions.get(args.driver))}")
        return
    deductions.set(args.driver, args.amount)
    console.print_success(f"CN deduction for {args.driver}: {format_money(parse_amount(args.amount))}")


def build_entry(args: argparse.Namespace, repository: TripRepository, memory: DriverNameMemory) -> dict[str, Any]:
    try:
        route = args.route or console.ask_input("Route")
    except RuntimeError:
        route = ""
    if not route:
        console.print_error("A route is required (pass --route).", exit_code=2)
    driver = args.driver if args.driver is not None else console.ask_input("Driver", default=memory.last)

    preset = repository.preset_for(route) or {}
    entry: dict[str, Any] = {
        "date": args.date,
        "route": route,
        "driverName": driver,
        "price": args.price if args.price is not None else preset.get("price"),
        "wage": args.wage if args.wage is not None else preset.get("wage"),
        "fuel": args.fuel,
        "maintenance": args.maintenance,
        "staffShare": args.advance,
        "basketCount": args.basket_count,
    }

    tier = suggest_basket(args.basket_count)
    entry["basket"] = args.basket if args.basket is not None else tier.basket
    entry["basketShare"] = args.basket_share if args.basket_share is not None else tier.basket_share
    return entry


def cmd_add(
    args: argparse.Namespace,
    repository: TripRepository,
    deductions: DeductionBook,
    memory: DriverNameMemory,
) -> None:
    entry = build_entry(args, repository, memory)
    result = repository.add_trip(entry)
    if not result.ok or result.trip is None:
        for error in result.errors:
            console.print_warning(error)
        console.print_error("Could not save the trip. Please retry.", exit_code=1)
        return

    memory.remember(result.trip.driver_name)
    trip = result.trip
    console.print_success(
        f"Saved trip {trip.id} on {trip.date.isoformat()} ({trip.route}); profit {format_money(trip.profit)}"
    )


def cmd_delete(args: argparse.Namespace, repository: TripRepository, deductions: DeductionBook) -> None:
    trip_id = parse_trip_id(args.trip_id)
    if not args.yes and not console.ask_confirm(f"Delete trip {trip_id}?", default=False):
        console.print_warning("Aborted.")
        return
    if not repository.delete_trip(trip_id):
        console.print_error(f"Could not delete trip {trip_id}.", exit_code=1)
        return
    console.print_success(f"Deleted trip {trip_id}")


def cmd_presets(args: argparse.Namespace, repository: TripRepository, deductions: DeductionBook) -> None:
    if args.delete:
        if not repository.delete_preset(args.delete):
            console.print_error(f"Could not delete preset {args.delete}.", exit_code=1)
            return
        console.print_success(f"Deleted preset {args.delete}")
        return
    console.print_table(
        "Route presets",
        ["Route", "Fare", "Wage"],
        [
            [route, format_money(parse_amount(preset.get("price"))), format_money(parse_amount(preset.get("wage")))]
            for route, preset in sorted(repository.presets.items())
        ],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fleet trip ledger: billing periods, payroll slips and trip entry.")
    parser.add_argument("--config", type=Path, default=None, help="Path to fleet config JSON.")
    parser.add_argument("--offline", action="store_true", help="Work from the local cache only.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_period_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--month", type=int, default=None, help="Calendar month the period ends in (1-12).")
        p.add_argument("--year", type=int, default=None, help="Year the period ends in.")

    period = sub.add_parser("period", help="Show one 20th-to-19th billing period.")
    add_period_args(period)
    period.add_argument("--all-days", action="store_true", help="Include days without trips.")
    period.add_argument("--json", action="store_true", help="Output machine-readable JSON.")

    year = sub.add_parser("year", help="Show calendar-year totals.")
    year.add_argument("--year", type=int, default=None)
    year.add_argument("--json", action="store_true", help="Output machine-readable JSON.")

    slip = sub.add_parser("slip", help="Build a driver's payroll slip.")
    slip.add_argument("driver", help="Driver name.")
    add_period_args(slip)
    slip.add_argument("--markdown-out", type=Path, default=None, help="Write the slip as Markdown.")
    slip.add_argument("--json", action="store_true", help="Output machine-readable JSON.")

    deduct = sub.add_parser("deduct", help="Show, set or clear a driver's CN deduction.")
    deduct.add_argument("driver")
    deduct.add_argument("amount", nargs="?", default=None)
    deduct.add_argument("--clear", action="store_true")

    add = sub.add_parser("add", help="Record a trip.")
    add.add_argument("--date", default=None, help="Service date YYYY-MM-DD (default: today).")
    add.add_argument("--driver", default=None)
    add.add_argument("--route", default=None)
    add.add_argument("--price", default=None)
    add.add_argument("--fuel", default=None)
    add.add_argument("--wage", default=None)
    add.add_argument("--maintenance", default=None)
    add.add_argument("--advance", default=None, help="Advance already paid to the driver.")
    add.add_argument("--basket-count", default=None)
    add.add_argument("--basket", default=None, help="Override the suggested basket revenue.")
    add.add_argument("--basket-share", default=None, help="Override the suggested basket share.")

    delete = sub.add_parser("delete", help="Delete a trip by id.")
    delete.add_argument("trip_id")
    delete.add_argument("--yes", action="store_true", help="Skip confirmation.")

    presets = sub.add_parser("presets", help="List or delete route presets.")
    presets.add_argument("--delete", default=None, metavar="ROUTE")

    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except Exception as e:
        raise SystemExit(f"Invalid configuration: {e}")

    cache: KeyValueStore = open_cache(config)
    repository = open_repository(config, cache=cache, offline=args.offline)
    deductions = DeductionBook(cache)

    if args.command == "add":
        cmd_add(args, repository, deductions, DriverNameMemory(cache))
        return

    handlers = {
        "period": cmd_period,
        "year": cmd_year,
        "slip": cmd_slip,
        "deduct": cmd_deduct,
        "delete": cmd_delete,
        "presets": cmd_presets,
    }
    handlers[args.command](args, repository, deductions)


if __name__ == "__main__":
    main()
