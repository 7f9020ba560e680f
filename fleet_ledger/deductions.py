from __future__ import annotations

from decimal import Decimal
from typing import Any

from fleet_ledger.core import normalize_driver_name, parse_amount
from fleet_ledger.utils.kv import CN_DEDUCTIONS_KEY, LAST_DRIVER_KEY, KeyValueStore


class DeductionBook:
    """Operator-entered CN deductions keyed by driver name.

    Entries persist across billing periods until cleared or overwritten; they are
    applied to whichever period is being displayed.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv
        stored = kv.get(CN_DEDUCTIONS_KEY, {})
        self._entries: dict[str, Any] = dict(stored) if isinstance(stored, dict) else {}

    def get(self, driver_name: str) -> Decimal:
        return parse_amount(self._entries.get(driver_name))

    def set(self, driver_name: str, value: Any) -> None:
        # Keep the value as entered; it is parsed when applied.
        self._entries[driver_name] = value if isinstance(value, (str, int, float)) else str(value)
        self._kv.set(CN_DEDUCTIONS_KEY, self._entries)

    def clear(self, driver_name: str) -> None:
        if self._entries.pop(driver_name, None) is not None:
            self._kv.set(CN_DEDUCTIONS_KEY, self._entries)

    def as_dict(self) -> dict[str, Any]:
        return dict(self._entries)

    def __contains__(self, driver_name: object) -> bool:
        return driver_name in self._entries


class DriverNameMemory:
    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv
        self._name = normalize_driver_name(kv.get(LAST_DRIVER_KEY, ""))

    @property
    def last(self) -> str:
        return self._name

    def remember(self, name: str) -> None:
        self._name = normalize_driver_name(name)
        self._kv.set(LAST_DRIVER_KEY, self._name)
