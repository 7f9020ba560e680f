"""
Trip persistence.

``RestTripStore`` talks to a PostgREST-style backend (the hosted Supabase
tables ``trips`` and ``route_presets``). ``LocalTripStore`` keeps the same
records in the local key-value cache and is what the repository falls back to
when the remote store cannot be reached.

``TripRepository`` owns the in-memory trip collection the aggregation code
reads. Remote schemas have drifted over time (``driver_name`` vs
``driverName``, optional basket columns), so writes walk an ordered list of
payload shapes until one is accepted.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from typing import Any, Callable, NamedTuple, Protocol

import requests

from fleet_ledger.core import Trip, normalize_trip, normalize_trips
from fleet_ledger.periods import trips_for_period
from fleet_ledger.utils.kv import PRESETS_KEY, TRIPS_KEY, KeyValueStore

logger = logging.getLogger(__name__)

TRIPS_TABLE = "trips"
PRESETS_TABLE = "route_presets"

PayloadBuilder = Callable[[Trip], dict[str, Any]]
ChangeListener = Callable[[list[Trip]], None]


class StoreError(Exception):
    """Raised when the trip store cannot complete an operation."""

    pass


class StoreUnavailableError(StoreError):
    """Raised when the store cannot be reached at all."""

    pass


class PayloadRejectedError(StoreError):
    """Raised when the store refuses a payload, typically an unknown column."""

    pass


class TripStore(Protocol):
    def ping(self) -> None: ...

    def fetch_all(self) -> list[dict[str, Any]]: ...

    def fetch_presets(self) -> dict[str, dict[str, Any]]: ...

    def insert(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    def update(self, trip_id: Any, payload: dict[str, Any]) -> None: ...

    def delete(self, trip_id: Any) -> None: ...

    def delete_preset(self, route: str) -> None: ...


class WriteResult(NamedTuple):
    ok: bool
    trip: Trip | None
    attempt: str | None
    errors: list[str]


def json_number(value: Decimal) -> int | float:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def presets_from_rows(rows: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    presets: dict[str, dict[str, Any]] = {}
    for row in rows:
        route = row.get("route")
        if not route:
            continue
        presets[str(route)] = {"price": row.get("price"), "wage": row.get("wage")}
    return presets


class RestTripStore:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: requests.Session | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "accept": "application/json",
                "content-type": "application/json",
            }
        )

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _request(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None = None,
        payload: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        try:
            resp = self.session.request(
                method,
                self._url(table),
                params=params,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StoreUnavailableError(f"{method} {table} failed: {e}") from e

        if resp.status_code // 100 != 2:
            message = f"{method} {table} returned {resp.status_code}: {resp.text[:200]}"
            if resp.status_code // 100 == 4:
                raise PayloadRejectedError(message)
            raise StoreUnavailableError(message)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise StoreError(f"{method} {table} returned invalid JSON") from e

    def ping(self) -> None:
        self._request("GET", TRIPS_TABLE, params={"select": "id", "limit": "1"})

    def fetch_all(self) -> list[dict[str, Any]]:
        rows = self._request("GET", TRIPS_TABLE, params={"select": "*", "order": "date.desc"})
        return list(rows or [])

    def fetch_presets(self) -> dict[str, dict[str, Any]]:
        rows = self._request("GET", PRESETS_TABLE, params={"select": "*"})
        return presets_from_rows(list(rows or []))

    def insert(self, payload: dict[str, Any]) -> dict[str, Any]:
        rows = self._request("POST", TRIPS_TABLE, payload=[payload], prefer="return=representation")
        if not rows:
            raise PayloadRejectedError("insert returned no stored record")
        return dict(rows[0])

    def update(self, trip_id: Any, payload: dict[str, Any]) -> None:
        self._request("PATCH", TRIPS_TABLE, params={"id": f"eq.{trip_id}"}, payload=payload)

    def delete(self, trip_id: Any) -> None:
        self._request("DELETE", TRIPS_TABLE, params={"id": f"eq.{trip_id}"})

    def delete_preset(self, route: str) -> None:
        self._request("DELETE", PRESETS_TABLE, params={"route": f"eq.{route}"})


class LocalTripStore:
    """Trip records kept in the local key-value cache. Writes always succeed."""

    def __init__(self, kv: KeyValueStore, clock: Callable[[], float] = time.time) -> None:
        self._kv = kv
        self._clock = clock
        self._last_id = 0

    def next_id(self) -> int:
        # Millisecond timestamps, bumped when two writes land in the same millisecond.
        candidate = int(self._clock() * 1000)
        existing = [record.get("id") for record in self.fetch_all()]
        floor = max([self._last_id] + [value for value in existing if isinstance(value, int)])
        if candidate <= floor:
            candidate = floor + 1
        self._last_id = candidate
        return candidate

    def ping(self) -> None:
        return None

    def fetch_all(self) -> list[dict[str, Any]]:
        records = self._kv.get(TRIPS_KEY, [])
        return [dict(record) for record in records if isinstance(record, dict)]

    def fetch_presets(self) -> dict[str, dict[str, Any]]:
        presets = self._kv.get(PRESETS_KEY, {})
        return dict(presets) if isinstance(presets, dict) else {}

    def replace_all(self, records: list[dict[str, Any]]) -> None:
        self._kv.set(TRIPS_KEY, records)

    def replace_presets(self, presets: dict[str, dict[str, Any]]) -> None:
        self._kv.set(PRESETS_KEY, presets)

    def insert(self, payload: dict[str, Any]) -> dict[str, Any]:
        record = dict(payload)
        record["id"] = self.next_id()
        self._kv.set(TRIPS_KEY, [record] + self.fetch_all())
        return dict(record)

    def update(self, trip_id: Any, payload: dict[str, Any]) -> None:
        records = self.fetch_all()
        for index, record in enumerate(records):
            if record.get("id") == trip_id:
                records[index] = {**payload, "id": trip_id}
                self._kv.set(TRIPS_KEY, records)
                return
        raise StoreError(f"Trip {trip_id!r} not found in local cache")

    def delete(self, trip_id: Any) -> None:
        records = self.fetch_all()
        self._kv.set(TRIPS_KEY, [record for record in records if record.get("id") != trip_id])

    def delete_preset(self, route: str) -> None:
        presets = self.fetch_presets()
        if presets.pop(route, None) is not None:
            self._kv.set(PRESETS_KEY, presets)


def base_payload(trip: Trip) -> dict[str, Any]:
    return {
        "date": trip.date.isoformat(),
        "route": trip.route,
        "price": json_number(trip.price),
        "fuel": json_number(trip.fuel),
        "wage": json_number(trip.wage),
        "profit": json_number(trip.profit),
    }


def financial_payload(trip: Trip) -> dict[str, Any]:
    return {
        **base_payload(trip),
        "basket": json_number(trip.basket),
        "maintenance": json_number(trip.maintenance),
        "basket_share": json_number(trip.basket_share),
        "advance": json_number(trip.staff_share),
    }


def full_snake_payload(trip: Trip) -> dict[str, Any]:
    return {**financial_payload(trip), "driver_name": trip.driver_name, "basket_count": trip.basket_count}


def full_camel_payload(trip: Trip) -> dict[str, Any]:
    return {**financial_payload(trip), "driverName": trip.driver_name, "basket_count": trip.basket_count}


def name_key_payload(trip: Trip) -> dict[str, Any]:
    return {**financial_payload(trip), "name": trip.driver_name}


def driver_key_payload(trip: Trip) -> dict[str, Any]:
    return {**financial_payload(trip), "driver": trip.driver_name}


def canonical_payload(trip: Trip) -> dict[str, Any]:
    record = trip.to_record()
    record.pop("id", None)
    return {key: json_number(value) if isinstance(value, Decimal) else value for key, value in record.items()}


def without_basket_share(builder: PayloadBuilder) -> PayloadBuilder:
    """Same payload minus the ``basket_share`` column, which older trip tables lack."""

    def build(trip: Trip) -> dict[str, Any]:
        payload = builder(trip)
        payload.pop("basket_share", None)
        return payload

    return build


INSERT_ATTEMPTS: list[tuple[str, PayloadBuilder]] = [
    ("full_snake", full_snake_payload),
    ("full_camel", full_camel_payload),
    ("name_key", name_key_payload),
    ("driver_key", driver_key_payload),
    ("full_snake_no_share", without_basket_share(full_snake_payload)),
    ("full_camel_no_share", without_basket_share(full_camel_payload)),
    ("name_key_no_share", without_basket_share(name_key_payload)),
    ("driver_key_no_share", without_basket_share(driver_key_payload)),
    ("financial", financial_payload),
    ("financial_no_share", without_basket_share(financial_payload)),
    ("minimal", base_payload),
]

UPDATE_ATTEMPTS: list[tuple[str, PayloadBuilder]] = [
    ("full_camel", full_camel_payload),
    ("full_snake", full_snake_payload),
    ("full_camel_no_share", without_basket_share(full_camel_payload)),
    ("full_snake_no_share", without_basket_share(full_snake_payload)),
    ("financial", financial_payload),
    ("financial_no_share", without_basket_share(financial_payload)),
    ("minimal", base_payload),
]


def records_fingerprint(records: list[dict[str, Any]]) -> str:
    encoded = json.dumps(records, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


class TripRepository:
    def __init__(
        self,
        remote: TripStore | None,
        cache: KeyValueStore,
        today: date | None = None,
    ) -> None:
        self.remote = remote
        self.local = LocalTripStore(cache)
        self.degraded = remote is None
        self._today = today
        self._records: list[dict[str, Any]] = []
        self._trips: list[Trip] = []
        self._presets: dict[str, dict[str, Any]] = {}
        self._fingerprint: str | None = None
        self._listeners: list[ChangeListener] = []

    @property
    def trips(self) -> list[Trip]:
        return list(self._trips)

    @property
    def presets(self) -> dict[str, dict[str, Any]]:
        return dict(self._presets)

    def connect(self) -> bool:
        """Probe the remote store; returns False when running on the local cache."""
        if self.remote is None:
            self._enter_degraded("no remote store configured")
            return False
        try:
            self.remote.ping()
        except StoreError as e:
            self._enter_degraded(str(e))
            return False

        self.degraded = False
        self.refresh()
        self.refresh_presets()
        return True

    def _enter_degraded(self, reason: str) -> None:
        logger.warning("Trip store unavailable (%s); working from local cache.", reason)
        self.degraded = True
        self._set_records(self.local.fetch_all())
        self._presets = self.local.fetch_presets()

    def _set_records(self, records: list[dict[str, Any]]) -> None:
        self._records = records
        self._trips = normalize_trips(records, today=self._today)
        self._fingerprint = records_fingerprint(records)

    def _store_records(self, records: list[dict[str, Any]]) -> None:
        self.local.replace_all(records)
        self._set_records(records)

    def refresh(self) -> list[Trip]:
        if self.degraded or self.remote is None:
            self._set_records(self.local.fetch_all())
            return self.trips
        try:
            records = self.remote.fetch_all()
        except StoreError as e:
            logger.warning("Trip fetch failed (%s); keeping last-known local cache.", e)
            self._set_records(self.local.fetch_all())
            return self.trips
        self._store_records(records)
        return self.trips

    def refresh_presets(self) -> dict[str, dict[str, Any]]:
        if self.degraded or self.remote is None:
            self._presets = self.local.fetch_presets()
            return self.presets
        try:
            presets = self.remote.fetch_presets()
        except StoreError as e:
            logger.warning("Route preset fetch failed (%s); keeping cached presets.", e)
            self._presets = self.local.fetch_presets()
            return self.presets
        self.local.replace_presets(presets)
        self._presets = presets
        return self.presets

    def subscribe_to_changes(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        trips = self.trips
        for listener in list(self._listeners):
            listener(trips)

    def poll(self) -> bool:
        """Re-fetch from the remote store and notify subscribers if anything changed."""
        if self.degraded or self.remote is None:
            return False
        previous = self._fingerprint
        self.refresh()
        if self._fingerprint == previous:
            return False
        self._notify()
        return True

    def _run_attempts(
        self,
        attempts: list[tuple[str, PayloadBuilder]],
        trip: Trip,
        write: Callable[[dict[str, Any]], Any],
        action: str,
    ) -> tuple[str | None, Any, list[str]]:
        errors: list[str] = []
        for name, builder in attempts:
            try:
                result = write(builder(trip))
            except StoreError as e:
                logger.debug("%s attempt %s rejected: %s", action, name, e)
                errors.append(f"{name}: {e}")
                continue
            if errors:
                logger.warning("%s saved with reduced payload shape %s after %d rejections", action, name, len(errors))
            else:
                logger.info("%s succeeded with payload shape %s", action, name)
            return name, result, errors

        logger.error("All %d %s attempts failed; the change was not saved.", len(attempts), action)
        return None, None, errors

    def add_trip(self, entry: Mapping[str, Any] | Trip) -> WriteResult:
        trip = normalize_trip(entry, today=self._today)

        if self.degraded or self.remote is None:
            stored = self.local.insert(canonical_payload(trip))
            saved = normalize_trip(stored, today=self._today)
            self._set_records(self.local.fetch_all())
            self._notify()
            return WriteResult(True, saved, "local", [])

        remote = self.remote
        attempt, stored, errors = self._run_attempts(INSERT_ATTEMPTS, trip, remote.insert, "insert")
        if attempt is None:
            return WriteResult(False, None, None, errors)

        saved = normalize_trip(stored, today=self._today)
        self._store_records([stored] + self._records)
        self._notify()
        return WriteResult(True, saved, attempt, errors)

    def update_trip(self, trip_id: Any, entry: Mapping[str, Any] | Trip) -> WriteResult:
        trip = normalize_trip(entry, today=self._today)
        record = {**canonical_payload(trip), "id": trip_id}

        if self.degraded or self.remote is None:
            try:
                self.local.update(trip_id, canonical_payload(trip))
            except StoreError as e:
                logger.warning("Local update failed: %s", e)
                return WriteResult(False, None, None, [str(e)])
            self._set_records(self.local.fetch_all())
            self._notify()
            return WriteResult(True, normalize_trip(record, today=self._today), "local", [])

        remote = self.remote
        attempt, _, errors = self._run_attempts(
            UPDATE_ATTEMPTS,
            trip,
            lambda payload: remote.update(trip_id, payload),
            "update",
        )
        if attempt is None:
            return WriteResult(False, None, None, errors)

        records = [record if existing.get("id") == trip_id else existing for existing in self._records]
        self._store_records(records)
        self._notify()
        return WriteResult(True, normalize_trip(record, today=self._today), attempt, errors)

    def delete_trip(self, trip_id: Any) -> bool:
        if not self.degraded and self.remote is not None:
            try:
                self.remote.delete(trip_id)
            except StoreError as e:
                logger.warning("Could not delete trip %r: %s", trip_id, e)
                return False
            self._store_records([record for record in self._records if record.get("id") != trip_id])
        else:
            self.local.delete(trip_id)
            self._set_records(self.local.fetch_all())
        self._notify()
        return True

    def delete_preset(self, route: str) -> bool:
        if not self.degraded and self.remote is not None:
            try:
                self.remote.delete_preset(route)
            except StoreError as e:
                logger.warning("Could not delete route preset %r: %s", route, e)
                return False
        self.local.delete_preset(route)
        self._presets.pop(route, None)
        return True

    def preset_for(self, route: str) -> dict[str, Any] | None:
        return self._presets.get(route)

    def trips_for_period(self, month: int, year: int) -> list[Trip]:
        return trips_for_period(self._trips, month, year)
