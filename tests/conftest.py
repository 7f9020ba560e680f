import pytest
from datetime import date
from typing import Any

from fleet_ledger.core import Trip, normalize_trips
from fleet_ledger.testing.fixtures import sample_period_records
from fleet_ledger.utils.kv import MemoryKeyValueStore

FIXED_TODAY = date(2024, 4, 10)


@pytest.fixture
def sample_records() -> list[dict[str, Any]]:
    """Raw records with mixed field spellings around the Mar 20 - Apr 19 2024 period."""
    return sample_period_records()


@pytest.fixture
def sample_trips(sample_records: list[dict[str, Any]]) -> list[Trip]:
    return normalize_trips(sample_records, today=FIXED_TODAY)


@pytest.fixture
def memory_cache() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()
