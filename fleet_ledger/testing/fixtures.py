"""
Sample trip records for tests and demos.

The records deliberately mix the field spellings found in older data
(``driver_name`` vs ``driverName``, ``advance`` vs ``staffShare``) so the
normalizer is exercised the way real stored data exercises it.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any


def make_raw_trip(**overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": 1,
        "date": "2024-04-01",
        "driverName": "Somchai",
        "route": "BKK-AYA",
        "price": "2500",
        "fuel": "600",
        "wage": "500",
        "maintenance": "0",
        "basket": "0",
        "basketCount": "0",
        "basketShare": "0",
        "staffShare": "0",
    }
    record.update(overrides)
    return record


def sample_period_records() -> list[dict[str, Any]]:
    """Trips around the March 20 - April 19 2024 billing period."""
    return [
        # Day before the window opens.
        make_raw_trip(id=100, date="2024-03-19", driverName="Somchai", price=1800, wage=400),
        make_raw_trip(id=101, date="2024-03-20T08:15:00", driverName="  Somchai  ", price=2500, wage=500),
        {
            "id": 102,
            "date": "2024-03-20",
            "driver_name": "Anan   Boonmee",
            "route": "BKK-CNX",
            "price": 4200,
            "fuel": 1500,
            "wage": 800,
            "maintenance": 250,
            "basket": 600,
            "basket_count": 95,
            "basket_share": 400,
            "advance": 300,
        },
        {
            "id": 103,
            "date": "2024-04-05",
            "staff": "Somchai",
            "route": "BKK-AYA",
            "price": "2,500",
            "fuel": "650.50",
            "wage": "500",
            "staff_advance": "200",
        },
        make_raw_trip(id=104, date="2024-04-19", driverName="", route="BKK-SRI", price=1500, wage=300, fuel=400),
        # Day after the window closes.
        make_raw_trip(id=105, date="2024-04-20", driverName="Anan Boonmee", price=3000, wage=600),
    ]


def write_sample_cache(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "fleet_management_trips": sample_period_records(),
        "fleet_route_presets": {
            "BKK-AYA": {"price": 2500, "wage": 500},
            "BKK-CNX": {"price": 4200, "wage": 800},
        },
    }
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    print(f"Generated sample cache: {path}")


if __name__ == "__main__":
    if len(sys.argv) > 1:
        out = Path(sys.argv[1])
    else:
        out = Path("sample_cache.json")
    write_sample_cache(out)
