from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, NamedTuple

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
# Leading numeric prefix, the same way a lenient float parse reads "12.5abc" as 12.5.
AMOUNT_PREFIX_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
COUNT_PREFIX_RE = re.compile(r"^[+-]?\d+")
AMOUNT_NOISE_RE = re.compile(r"[,\s$฿]")
DATE_SPLIT_RE = re.compile(r"[T ]")
LOOSE_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
# Amounts beyond 10**15 in either direction are data-entry noise, not money.
MAX_AMOUNT_EXPONENT = 15

DRIVER_NAME_KEYS = ("driverName", "driver_name", "driver", "staff", "name")
STAFF_SHARE_KEYS = ("staffShare", "advance", "staff_advance")
BASKET_SHARE_KEYS = ("basketShare", "basket_share")
BASKET_COUNT_KEYS = ("basket_count", "basketCount")


class BasketTier(NamedTuple):
    basket: Decimal
    basket_share: Decimal


# (minimum basket count, basket revenue, driver share), highest tier first.
BASKET_TIERS: tuple[tuple[int, Decimal, Decimal], ...] = (
    (101, Decimal("1000"), Decimal("700")),
    (91, Decimal("600"), Decimal("400")),
    (86, Decimal("300"), Decimal("200")),
)


@dataclass(frozen=True)
class Trip:
    id: Any
    date: date
    driver_name: str
    route: str
    price: Decimal
    fuel: Decimal
    wage: Decimal
    maintenance: Decimal
    basket: Decimal
    basket_count: int
    basket_share: Decimal
    staff_share: Decimal
    profit: Decimal
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def revenue(self) -> Decimal:
        return self.price + self.basket

    def to_record(self) -> dict[str, Any]:
        """Canonical record form; normalizes back to an equal Trip."""
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "driverName": self.driver_name,
            "route": self.route,
            "price": self.price,
            "fuel": self.fuel,
            "wage": self.wage,
            "maintenance": self.maintenance,
            "basket": self.basket,
            "basketCount": self.basket_count,
            "basketShare": self.basket_share,
            "staffShare": self.staff_share,
            "profit": self.profit,
        }


def usable_amount(parsed: Decimal) -> Decimal:
    if not parsed.is_finite() or parsed.is_zero():
        return ZERO
    if abs(parsed.adjusted()) > MAX_AMOUNT_EXPONENT:
        logger.warning("Ignoring out-of-range amount %s", parsed)
        return ZERO
    return parsed


def parse_amount(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return usable_amount(value)
    if isinstance(value, (int, float)):
        try:
            parsed = Decimal(str(value))
        except InvalidOperation:
            return ZERO
        return usable_amount(parsed)

    text = AMOUNT_NOISE_RE.sub("", str(value))
    match = AMOUNT_PREFIX_RE.match(text)
    if not match:
        return ZERO
    try:
        parsed = Decimal(match.group(0))
    except InvalidOperation:
        return ZERO
    return usable_amount(parsed)


def parse_count(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        amount = parse_amount(value)
        return int(amount)

    match = COUNT_PREFIX_RE.match(str(value).strip())
    if not match:
        return 0
    return int(match.group(0))


def first_nonzero_amount(raw: Mapping[str, Any], keys: tuple[str, ...]) -> Decimal:
    for key in keys:
        amount = parse_amount(raw.get(key))
        if amount != ZERO:
            return amount
    return ZERO


def first_present_count(raw: Mapping[str, Any], keys: tuple[str, ...]) -> int:
    for key in keys:
        value = raw.get(key)
        if value not in (None, "", 0):
            return parse_count(value)
    return 0


def normalize_driver_name(value: Any) -> str:
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value).strip())


def resolve_driver_name(raw: Mapping[str, Any]) -> str:
    for key in DRIVER_NAME_KEYS:
        value = raw.get(key)
        if value is None or value == "":
            continue
        name = normalize_driver_name(value)
        if name:
            return name
    return ""


def local_today() -> date:
    return date.today()


def resolve_date(value: Any, today: date | None = None) -> date:
    fallback = today or local_today()
    if value is None or value == "":
        return fallback
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Numeric timestamps are epoch milliseconds, the format locally generated ids use too.
        try:
            return datetime.fromtimestamp(value / 1000).date()
        except (OverflowError, OSError, ValueError):
            logger.warning("Unusable trip timestamp %r; using %s", value, fallback.isoformat())
            return fallback

    head = DATE_SPLIT_RE.split(str(value).strip(), maxsplit=1)[0]
    match = LOOSE_DATE_RE.match(head)
    try:
        if match:
            return date(*(int(part) for part in match.groups()))
        return date.fromisoformat(head)
    except ValueError:
        logger.warning("Unparseable trip date %r; using %s", value, fallback.isoformat())
        return fallback


def compute_profit(
    price: Decimal,
    basket: Decimal,
    fuel: Decimal,
    wage: Decimal,
    maintenance: Decimal,
    basket_share: Decimal,
) -> Decimal:
    return (price + basket) - (fuel + wage + maintenance + basket_share)


def suggest_basket(count: Any) -> BasketTier:
    n = parse_count(count)
    for minimum, basket, share in BASKET_TIERS:
        if n >= minimum:
            return BasketTier(basket, share)
    return BasketTier(ZERO, ZERO)


def normalize_trip(raw: Mapping[str, Any] | Trip, today: date | None = None) -> Trip:
    if isinstance(raw, Trip):
        source = raw.raw or raw.to_record()
        record: Mapping[str, Any] = raw.to_record()
    elif isinstance(raw, Mapping):
        source = dict(raw)
        record = raw
    else:
        logger.warning("Ignoring non-mapping trip record of type %s", type(raw).__name__)
        source = {}
        record = {}

    price = parse_amount(record.get("price"))
    fuel = parse_amount(record.get("fuel"))
    wage = parse_amount(record.get("wage"))
    maintenance = parse_amount(record.get("maintenance"))
    basket = parse_amount(record.get("basket"))
    staff_share = first_nonzero_amount(record, STAFF_SHARE_KEYS)
    basket_share = first_nonzero_amount(record, BASKET_SHARE_KEYS)

    route = record.get("route")
    return Trip(
        id=record.get("id"),
        date=resolve_date(record.get("date"), today=today),
        driver_name=resolve_driver_name(record),
        route=str(route).strip() if route is not None else "",
        price=price,
        fuel=fuel,
        wage=wage,
        maintenance=maintenance,
        basket=basket,
        basket_count=first_present_count(record, BASKET_COUNT_KEYS),
        basket_share=basket_share,
        staff_share=staff_share,
        profit=compute_profit(price, basket, fuel, wage, maintenance, basket_share),
        raw=dict(source),
    )


def normalize_trips(records: list[Mapping[str, Any]], today: date | None = None) -> list[Trip]:
    trips = [normalize_trip(record, today=today) for record in records]
    trips.sort(key=trip_sort_key, reverse=True)
    return trips


def trip_sort_key(trip: Trip) -> tuple[date, str]:
    return (trip.date, str(trip.id or ""))


def to_cents(value: Decimal) -> Decimal:
    # Cents need adjusted() + 3 significant digits.
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        return value.quantize(Decimal("0.01"))


def as_float(value: Decimal | None) -> float | None:
    if value is None:
        return None
    return float(to_cents(value))


def format_money(value: Decimal | None) -> str:
    if value is None:
        return "n/a"
    quantized = to_cents(value)
    if quantized < 0:
        return f"-฿{quantized.copy_abs():,.2f}"
    return f"฿{quantized:,.2f}"
