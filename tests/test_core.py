import unittest
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from fleet_ledger.core import (
    BasketTier,
    as_float,
    compute_profit,
    format_money,
    normalize_trip,
    normalize_trips,
    parse_amount,
    parse_count,
    resolve_date,
    suggest_basket,
)
from fleet_ledger.testing.fixtures import make_raw_trip, sample_period_records

TODAY = date(2024, 4, 10)


@pytest.mark.unit
class NumericParsingTests(unittest.TestCase):
    def test_parse_amount_variants(self) -> None:
        cases = [
            ("2500", Decimal("2500")),
            ("650.50", Decimal("650.50")),
            ("2,500", Decimal("2500")),
            ("฿1,200.25", Decimal("1200.25")),
            ("12.5abc", Decimal("12.5")),
            (" 42 ", Decimal("42")),
            (300, Decimal("300")),
            (12.75, Decimal("12.75")),
            (Decimal("9.99"), Decimal("9.99")),
        ]
        for raw, expected in cases:
            with self.subTest(raw=raw):
                self.assertEqual(parse_amount(raw), expected)

    def test_parse_amount_defaults_to_zero(self) -> None:
        for raw in [None, "", "abc", "NaN", float("nan"), float("inf"), Decimal("NaN"), True, [], {}]:
            with self.subTest(raw=raw):
                self.assertEqual(parse_amount(raw), Decimal("0"))

    def test_out_of_range_amounts_are_dropped(self) -> None:
        for raw in ["1e9999999", "-1e9999999", "1e-9999999", Decimal("1E+30"), 1e300]:
            with self.subTest(raw=raw):
                self.assertEqual(parse_amount(raw), Decimal("0"))

        trip = normalize_trip({"price": "1e9999999", "fuel": "100"}, today=TODAY)
        self.assertEqual(trip.price, Decimal("0"))
        self.assertEqual(trip.profit, Decimal("-100"))

    def test_parse_count_truncates(self) -> None:
        self.assertEqual(parse_count("95.7"), 95)
        self.assertEqual(parse_count(12.9), 12)
        self.assertEqual(parse_count(7), 7)
        self.assertEqual(parse_count("x"), 0)
        self.assertEqual(parse_count(None), 0)


@pytest.mark.unit
class DateResolutionTests(unittest.TestCase):
    def test_missing_date_uses_today(self) -> None:
        self.assertEqual(resolve_date(None, today=TODAY), TODAY)
        self.assertEqual(resolve_date("", today=TODAY), TODAY)

    def test_datetime_string_is_truncated(self) -> None:
        self.assertEqual(resolve_date("2024-03-20T23:59:59Z", today=TODAY), date(2024, 3, 20))
        self.assertEqual(resolve_date("2024-03-20 08:00:00", today=TODAY), date(2024, 3, 20))

    def test_structured_values(self) -> None:
        self.assertEqual(resolve_date(date(2024, 1, 2), today=TODAY), date(2024, 1, 2))
        self.assertEqual(resolve_date(datetime(2024, 1, 2, 22, 30), today=TODAY), date(2024, 1, 2))

        aware = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc)
        self.assertEqual(resolve_date(aware, today=TODAY), aware.astimezone().date())

    def test_epoch_milliseconds(self) -> None:
        stamp = datetime(2024, 3, 20, 12, 0).timestamp() * 1000
        self.assertEqual(resolve_date(stamp, today=TODAY), date(2024, 3, 20))

    def test_unpadded_date_parts(self) -> None:
        self.assertEqual(resolve_date("2024-3-5", today=TODAY), date(2024, 3, 5))
        self.assertEqual(resolve_date("2024-3-5T10:00:00", today=TODAY), date(2024, 3, 5))
        self.assertEqual(resolve_date("2024-2-30", today=TODAY), TODAY)

    def test_unparseable_string_falls_back_to_today(self) -> None:
        self.assertEqual(resolve_date("20/03/2024", today=TODAY), TODAY)


@pytest.mark.unit
class NormalizeTripTests(unittest.TestCase):
    def test_driver_name_priority_and_whitespace(self) -> None:
        trip = normalize_trip({"driver_name": "", "driver": "  Ann   Lee ", "name": "Other"}, today=TODAY)
        self.assertEqual(trip.driver_name, "Ann Lee")

        trip = normalize_trip({"driverName": "First", "driver_name": "Second"}, today=TODAY)
        self.assertEqual(trip.driver_name, "First")

        trip = normalize_trip({"staff": "Staff\tName"}, today=TODAY)
        self.assertEqual(trip.driver_name, "Staff Name")

    def test_empty_record_gets_safe_defaults(self) -> None:
        trip = normalize_trip({}, today=TODAY)
        self.assertIsNone(trip.id)
        self.assertEqual(trip.date, TODAY)
        self.assertEqual(trip.driver_name, "")
        self.assertEqual(trip.route, "")
        self.assertEqual(trip.basket_count, 0)
        for name in ["price", "fuel", "wage", "maintenance", "basket", "basket_share", "staff_share", "profit"]:
            self.assertEqual(getattr(trip, name), Decimal("0"), name)

    def test_staff_share_aliases_fall_through_zero(self) -> None:
        trip = normalize_trip({"staffShare": "0", "advance": "150", "staff_advance": "90"}, today=TODAY)
        self.assertEqual(trip.staff_share, Decimal("150"))

        trip = normalize_trip({"staffShare": "abc", "staff_advance": "90"}, today=TODAY)
        self.assertEqual(trip.staff_share, Decimal("90"))

    def test_basket_share_aliases(self) -> None:
        trip = normalize_trip({"basketShare": None, "basket_share": "200"}, today=TODAY)
        self.assertEqual(trip.basket_share, Decimal("200"))

    def test_basket_count_aliases(self) -> None:
        self.assertEqual(normalize_trip({"basket_count": "95"}, today=TODAY).basket_count, 95)
        self.assertEqual(normalize_trip({"basketCount": 12}, today=TODAY).basket_count, 12)
        self.assertEqual(normalize_trip({"basket_count": "x"}, today=TODAY).basket_count, 0)

    def test_profit_is_recomputed_not_trusted(self) -> None:
        trip = normalize_trip(
            {
                "price": 1000,
                "basket": 300,
                "fuel": 100,
                "wage": 200,
                "maintenance": 50,
                "basketShare": 200,
                "profit": 99999,
            },
            today=TODAY,
        )
        self.assertEqual(trip.profit, Decimal("750"))
        self.assertEqual(
            trip.profit,
            compute_profit(trip.price, trip.basket, trip.fuel, trip.wage, trip.maintenance, trip.basket_share),
        )

    def test_basket_tier_not_applied_during_normalization(self) -> None:
        trip = normalize_trip({"basket_count": 120}, today=TODAY)
        self.assertEqual(trip.basket, Decimal("0"))
        self.assertEqual(trip.basket_share, Decimal("0"))

    def test_normalization_is_idempotent(self) -> None:
        records = sample_period_records() + [{}, {"date": "garbage", "price": "x"}, make_raw_trip(staffShare="75")]
        for record in records:
            with self.subTest(record=record):
                once = normalize_trip(record, today=TODAY)
                self.assertEqual(normalize_trip(once, today=TODAY), once)
                self.assertEqual(normalize_trip(once.to_record(), today=TODAY), once)

    def test_raw_record_is_kept_but_not_compared(self) -> None:
        record = make_raw_trip(extra_column="kept")
        trip = normalize_trip(record, today=TODAY)
        self.assertEqual(trip.raw["extra_column"], "kept")

        other = normalize_trip(make_raw_trip(extra_column="different"), today=TODAY)
        self.assertEqual(trip, other)

    def test_normalize_trips_sorts_newest_first(self) -> None:
        trips = normalize_trips(sample_period_records(), today=TODAY)
        dates = [trip.date for trip in trips]
        self.assertEqual(dates, sorted(dates, reverse=True))


@pytest.mark.unit
class BasketTierTests(unittest.TestCase):
    def test_tier_boundaries(self) -> None:
        cases = [
            (0, (0, 0)),
            (85, (0, 0)),
            (86, (300, 200)),
            (90, (300, 200)),
            (91, (600, 400)),
            (100, (600, 400)),
            (101, (1000, 700)),
            (250, (1000, 700)),
        ]
        for count, (basket, share) in cases:
            with self.subTest(count=count):
                self.assertEqual(suggest_basket(count), BasketTier(Decimal(basket), Decimal(share)))

    def test_unparseable_count_suggests_nothing(self) -> None:
        self.assertEqual(suggest_basket("lots"), BasketTier(Decimal("0"), Decimal("0")))
        self.assertEqual(suggest_basket("95"), BasketTier(Decimal("600"), Decimal("400")))


def test_format_money():
    assert format_money(Decimal("1234.5")) == "฿1,234.50"
    assert format_money(Decimal("-20")) == "-฿20.00"
    assert format_money(None) == "n/a"


def test_money_views_handle_large_totals():
    total = sum([Decimal("9e14")] * 3, Decimal("1e26"))
    assert as_float(Decimal("1e27")) == 1e27
    assert as_float(total) == float(total)
    assert format_money(Decimal("1e27")) == "฿1,000,000,000,000,000,000,000,000,000.00"
    assert format_money(Decimal("-1e27")).startswith("-฿1,000,000,000")
