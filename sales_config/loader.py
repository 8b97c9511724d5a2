"""
Configuration Loader (``sales_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into a frozen ``EngineSettings``.
Runtime code should go through ``sales_config.get_active_settings()``.

Invariants enforced
-------------------
* Money, rates and tolerances are parsed into Decimal from their string
  form; YAML floats are rejected so no binary rounding leaks in.
* Unknown sections or keys raise ``ValueError``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  settings for identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from sales_config.schema import EngineSettings

# (section, key) in YAML -> EngineSettings field
_FIELD_MAP: dict[tuple[str, str], str] = {
    ("present_value", "monthly_discount_rate"): "monthly_discount_rate",
    ("present_value", "days_per_month"): "days_per_month",
    ("present_value", "epsilon_months"): "present_value_epsilon",
    ("tolerances", "money"): "money_tolerance",
    ("tolerances", "commission"): "commission_tolerance",
    ("tolerances", "participation"): "participation_tolerance",
    ("tolerances", "template"): "template_tolerance",
    ("proposal", "validity_days"): "proposal_validity_days",
}

_DECIMAL_FIELDS = frozenset({
    "monthly_discount_rate",
    "present_value_epsilon",
    "money_tolerance",
    "commission_tolerance",
    "participation_tolerance",
    "template_tolerance",
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_decimal(field: str, value: Any) -> Decimal:
    if isinstance(value, (float, bool)):
        raise ValueError(
            f"{field} must be quoted in YAML to load as an exact decimal, got {value!r}"
        )
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{field} is not a number: {value!r}") from e


def _parse_int(field: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"{field} must be an integer, got {value!r}")
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{field} must be an integer, got {value!r}") from e


def parse_settings(data: dict[str, Any]) -> EngineSettings:
    """Parse the sectioned YAML structure into EngineSettings."""
    flat: dict[str, Any] = {}
    for section, values in data.items():
        if not isinstance(values, dict):
            raise ValueError(f"Settings section {section!r} must be a mapping")
        for key, value in values.items():
            field = _FIELD_MAP.get((section, key))
            if field is None:
                raise ValueError(f"Unknown setting: {section}.{key}")
            if field in _DECIMAL_FIELDS:
                flat[field] = _parse_decimal(field, value)
            else:
                flat[field] = _parse_int(field, value)
    return EngineSettings.from_dict(flat)


def load_settings(path: Path) -> EngineSettings:
    """Load and parse a settings file."""
    return parse_settings(load_yaml_file(path))


def compute_checksum(settings: EngineSettings) -> str:
    """
    SHA-256 checksum of the canonical JSON form of the settings.

    Identical settings always produce identical checksums.
    """
    canonical = json.dumps(settings.to_dict(), sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
