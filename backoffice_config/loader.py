"""
Configuration Loader (``backoffice_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``backoffice_config.schema``.  The runtime entry point is
``backoffice_config.get_active_config()``.

Invariants enforced
-------------------
* Unknown keys are rejected, so a typo never silently falls back to a
  default.
* Decimal-valued settings are parsed from their string form.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed configuration.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad or unknown values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from backoffice_config.schema import (
    BackofficeConfig,
    CompliancePolicy,
    ConfigurationError,
    DatabaseSettings,
    InventoryPolicy,
)

_DECIMAL_FIELDS = frozenset({
    "low_stock_high_severity_ratio",
    "price_change_threshold_percent",
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


def _section(data: dict[str, Any], name: str, cls: type) -> Any:
    raw = data.get(name) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(name, "must be a mapping")

    allowed = {f.name for f in fields(cls)}
    unknown = set(raw) - allowed
    if unknown:
        raise ConfigurationError(f"{name}.{sorted(unknown)[0]}", "unknown key")

    kwargs: dict[str, Any] = {}
    for key, value in raw.items():
        if key in _DECIMAL_FIELDS:
            try:
                value = Decimal(str(value))
            except InvalidOperation:
                raise ConfigurationError(f"{name}.{key}", f"not a number: {value!r}") from None
        elif key == "required_document_types":
            value = tuple(value or ())
        kwargs[key] = value
    return cls(**kwargs)


def parse_config(data: dict[str, Any]) -> BackofficeConfig:
    """Parse a loaded YAML mapping into a BackofficeConfig."""
    config = BackofficeConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        database=_section(data, "database", DatabaseSettings),
        inventory=_section(data, "inventory", InventoryPolicy),
        compliance=_section(data, "compliance", CompliancePolicy),
    )
    return BackofficeConfig(
        config_id=config.config_id,
        version=config.version,
        database=config.database,
        inventory=config.inventory,
        compliance=config.compliance,
        checksum=compute_checksum(asdict(config)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
