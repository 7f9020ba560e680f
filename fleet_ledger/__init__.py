from fleet_ledger.core import (
    BasketTier,
    Trip,
    as_float,
    compute_profit,
    format_money,
    normalize_trip,
    normalize_trips,
    parse_amount,
    parse_count,
    suggest_basket,
)
from fleet_ledger.periods import (
    BillingWindow,
    advance,
    classify,
    current_period,
    period_label,
    trips_for_period,
    trips_for_year,
    window_for,
)
from fleet_ledger.aggregate import (
    BASE_ALLOWANCE,
    UNSPECIFIED_DRIVER,
    DaySummary,
    DriverLedger,
    PeriodStats,
    aggregate_period,
    aggregate_year,
    calculate_stats,
    day_data,
    driver_ledgers,
    period_table,
    table_totals,
)
from fleet_ledger.payroll import PayrollSlip, SlipLine, build_slip, slip_to_markdown, slips_for_period
from fleet_ledger.store import (
    LocalTripStore,
    PayloadRejectedError,
    RestTripStore,
    StoreError,
    StoreUnavailableError,
    TripRepository,
    WriteResult,
)

__all__ = [
    "BASE_ALLOWANCE",
    "BasketTier",
    "BillingWindow",
    "DaySummary",
    "DriverLedger",
    "LocalTripStore",
    "PayloadRejectedError",
    "PayrollSlip",
    "PeriodStats",
    "RestTripStore",
    "SlipLine",
    "StoreError",
    "StoreUnavailableError",
    "Trip",
    "TripRepository",
    "UNSPECIFIED_DRIVER",
    "WriteResult",
    "advance",
    "aggregate_period",
    "aggregate_year",
    "as_float",
    "build_slip",
    "calculate_stats",
    "classify",
    "compute_profit",
    "current_period",
    "day_data",
    "driver_ledgers",
    "format_money",
    "normalize_trip",
    "normalize_trips",
    "parse_amount",
    "parse_count",
    "period_label",
    "period_table",
    "slip_to_markdown",
    "slips_for_period",
    "suggest_basket",
    "table_totals",
    "trips_for_period",
    "trips_for_year",
    "window_for",
]
