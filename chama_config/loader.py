"""
Configuration Loader (``chama_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``chama_config.schema``.  Runtime callers go through
``chama_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields have no silent defaults.
* Parameter values are parsed as ``Decimal`` from their string form, never
  through ``float``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  content.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Non-numeric or negative parameter value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from chama_config.schema import ChamaConfiguration, ParameterDef


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level, got {type(data).__name__}")
    return data


def parse_parameter(key: str, raw: Any) -> ParameterDef:
    """Parse one entry of the ``parameters`` mapping.

    Accepts either a bare number or a mapping with ``value`` and an
    optional ``description``.
    """
    if isinstance(raw, dict):
        value = raw["value"]
        description = raw.get("description")
    else:
        value = raw
        description = None

    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"parameter {key!r}: {value!r} is not a number") from exc
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"parameter {key!r}: {value!r} must be a non-negative number")
    return ParameterDef(key=key, value=amount, description=description)


def parse_configuration(data: dict[str, Any]) -> ChamaConfiguration:
    """Parse a loaded YAML dict into a ChamaConfiguration (checksum filled in)."""
    raw_parameters = data.get("parameters") or {}
    if not isinstance(raw_parameters, dict):
        raise ValueError("'parameters' must be a mapping of key to value")

    parameters = tuple(
        parse_parameter(key, raw) for key, raw in sorted(raw_parameters.items())
    )
    database = data.get("database") or {}
    logging_section = data.get("logging") or {}

    config = ChamaConfiguration(
        name=data["name"],
        group_name=data["group_name"],
        currency=data.get("currency", "KES"),
        database_url=database.get("url", "sqlite:///chama.db"),
        log_level=str(logging_section.get("level", "INFO")).upper(),
        parameters=parameters,
    )
    return replace(config, checksum=compute_checksum(config))


def compute_checksum(config: ChamaConfiguration) -> str:
    """SHA-256 over the parsed content, excluding the checksum itself."""
    content = {
        "name": config.name,
        "group_name": config.group_name,
        "currency": config.currency,
        "database_url": config.database_url,
        "log_level": config.log_level,
        "parameters": [
            {"key": p.key, "value": str(p.value), "description": p.description}
            for p in config.parameters
        ],
    }
    canonical = json.dumps(content, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_configuration(path: Path) -> ChamaConfiguration:
    return parse_configuration(load_yaml_file(path))
