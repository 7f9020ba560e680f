import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

from jsonschema import Draft7Validator

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).parent.parent / "schemas"


class ContractError(Exception):
    """Raised when a payload violates its data contract."""

    def __init__(self, schema_name: str, problems: List[str]) -> None:
        self.schema_name = schema_name
        self.problems = problems
        super().__init__(f"Data Contract Violation ({schema_name}): {'; '.join(problems)}")


@lru_cache(maxsize=None)
def _validator(schema_name: str) -> Draft7Validator:
    return Draft7Validator(load_schema(schema_name))


def load_schema(schema_name: str) -> Dict[str, Any]:
    """Load a JSON schema shipped in ``fleet_ledger/schemas``."""
    schema_path = SCHEMA_DIR / f"{schema_name}.json"
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_name}")

    with open(schema_path, "r", encoding="utf-8") as f:
        return dict(json.load(f))


def contract_problems(data: Any, schema_name: str) -> List[str]:
    """Every violation of ``schema_name`` in ``data``, as ``path: message`` strings."""
    problems = []
    for error in sorted(_validator(schema_name).iter_errors(data), key=lambda e: list(map(str, e.absolute_path))):
        location = "/".join(str(part) for part in error.absolute_path) or "<root>"
        problems.append(f"{location}: {error.message}")
    return problems


def validate_output(data: Dict[str, Any], schema_name: str, mode: str = "STRICT") -> None:
    """
    Validate data against a JSON schema.

    Args:
        data: The dictionary to validate.
        schema_name: Name of the schema file (without .json extension).
        mode: 'STRICT' (raises error) or 'REVIEW' (logs warning).

    Raises:
        ContractError: If validation fails, or the schema is missing, and mode is STRICT.
    """
    try:
        problems = contract_problems(data, schema_name)
    except FileNotFoundError as e:
        problems = [str(e)]

    if not problems:
        return
    error = ContractError(schema_name, problems)
    if mode == "STRICT":
        raise error
    logger.warning(str(error))
