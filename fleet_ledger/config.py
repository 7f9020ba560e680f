from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from fleet_ledger.store import RestTripStore, TripRepository
from fleet_ledger.utils.contracts import validate_output
from fleet_ledger.utils.kv import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = Path.home() / ".fleet_ledger" / "cache.json"
DEFAULT_TIMEOUT_SECONDS = 10.0

ENV_STORE_URL = "FLEET_STORE_URL"
ENV_STORE_KEY = "FLEET_STORE_KEY"
ENV_CACHE_PATH = "FLEET_CACHE_PATH"


@dataclass(frozen=True)
class FleetConfig:
    store_url: str | None = None
    api_key: str | None = None
    cache_path: Path | None = DEFAULT_CACHE_PATH
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @property
    def remote_configured(self) -> bool:
        return bool(self.store_url and self.api_key)


def load_config(path: Path | None = None, environ: Mapping[str, str] | None = None) -> FleetConfig:
    """
    Build configuration from an optional JSON file plus environment overrides.

    The file is checked against the ``fleet_config`` contract; environment
    variables win over file values.
    """
    environ = os.environ if environ is None else environ
    data: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        validate_output(data, "fleet_config", mode="STRICT")

    store_url = environ.get(ENV_STORE_URL) or data.get("store_url")
    api_key = environ.get(ENV_STORE_KEY) or data.get("api_key")
    cache_value = environ.get(ENV_CACHE_PATH) or data.get("cache_path")

    return FleetConfig(
        store_url=store_url,
        api_key=api_key,
        cache_path=Path(cache_value).expanduser() if cache_value else DEFAULT_CACHE_PATH,
        timeout_seconds=float(data.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)),
    )


def open_cache(config: FleetConfig) -> KeyValueStore:
    if config.cache_path is None:
        return MemoryKeyValueStore()
    return JsonFileKeyValueStore(config.cache_path)


def open_repository(
    config: FleetConfig,
    cache: KeyValueStore | None = None,
    offline: bool = False,
) -> TripRepository:
    cache = cache if cache is not None else open_cache(config)
    remote = None
    if config.remote_configured and not offline:
        remote = RestTripStore(
            base_url=str(config.store_url),
            api_key=str(config.api_key),
            timeout=config.timeout_seconds,
        )
    elif not offline:
        logger.info("No trip store configured; using local cache only.")

    repository = TripRepository(remote, cache)
    repository.connect()
    return repository
