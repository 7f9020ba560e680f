import unittest
from datetime import date
from decimal import Decimal

import pytest

from fleet_ledger.aggregate import UNSPECIFIED_DRIVER, driver_ledgers
from fleet_ledger.core import normalize_trip
from fleet_ledger.payroll import build_slip, slip_for_driver, slip_to_dict, slip_to_markdown, slips_for_period
from fleet_ledger.periods import trips_for_period
from fleet_ledger.testing.fixtures import make_raw_trip
from fleet_ledger.utils.contracts import validate_output

TODAY = date(2024, 4, 10)


@pytest.mark.unit
class BuildSlipTests(unittest.TestCase):
    def setUp(self) -> None:
        self.trips = [
            normalize_trip(make_raw_trip(id=1, driverName="A", wage=500, basketShare=200, staffShare=100), today=TODAY),
            normalize_trip(make_raw_trip(id=2, driverName="A", wage=300, basketShare=0, staffShare=50), today=TODAY),
        ]

    def test_net_pay(self) -> None:
        slip = build_slip("A", self.trips, "50", period_label="20 March - 19 April 2024")
        self.assertEqual(slip.net_pay, Decimal("1800"))
        self.assertEqual(slip.total_wage, Decimal("800"))
        self.assertEqual(slip.total_basket_share, Decimal("200"))
        self.assertEqual(slip.total_advance, Decimal("150"))
        self.assertEqual([line.amount for line in slip.lines], [Decimal("600"), Decimal("250")])

    def test_missing_or_bad_deduction_is_zero(self) -> None:
        for cn in [None, "", "abc"]:
            with self.subTest(cn=cn):
                self.assertEqual(build_slip("A", self.trips, cn).net_pay, Decimal("1850"))

    def test_slip_without_trips_still_pays_allowance(self) -> None:
        slip = build_slip("Nobody", [], "0")
        self.assertEqual(slip.lines, [])
        self.assertEqual(slip.net_pay, Decimal("1000"))


def test_slips_match_ledger_net_pay(sample_trips):
    deductions = {"Somchai": "100", UNSPECIFIED_DRIVER: 25}
    ledgers = driver_ledgers(trips_for_period(sample_trips, 3, 2024), deductions)
    slips = slips_for_period(sample_trips, 3, 2024, deductions)

    assert {slip.driver_name for slip in slips} == set(ledgers)
    for slip in slips:
        assert slip.net_pay == ledgers[slip.driver_name].net_pay
        assert slip.period_label == "20 March - 19 April 2024"


def test_slip_for_driver_limits_to_period_and_driver(sample_trips):
    slip = slip_for_driver(sample_trips, "Somchai", 3, 2024, {"Somchai": "100"})
    assert [line.trip_id for line in slip.lines] == [101, 103]
    assert slip.net_pay == Decimal("1700")

    unnamed = slip_for_driver(sample_trips, UNSPECIFIED_DRIVER, 3, 2024)
    assert [line.trip_id for line in unnamed.lines] == [104]
    assert unnamed.net_pay == Decimal("1300")


def test_slip_dict_passes_contract(sample_trips):
    payload = slip_to_dict(slip_for_driver(sample_trips, "Anan Boonmee", 3, 2024))
    validate_output(payload, "payroll_slip", mode="STRICT")
    assert payload["net_pay"] == 1900.0
    assert payload["lines"][0]["trip_id"] == "102"


def test_slip_markdown(sample_trips):
    text = slip_to_markdown(slip_for_driver(sample_trips, "Somchai", 3, 2024, {"Somchai": 100}))
    assert text.startswith("# Payroll Slip: Somchai")
    assert "- Period: 20 March - 19 April 2024" in text
    assert "| 2024-04-05 | BKK-AYA | ฿500.00 | ฿0.00 | ฿200.00 | ฿300.00 |" in text
    assert "- CN Deduction: -฿100.00" in text
    assert "**Net Pay: ฿1,700.00**" in text
