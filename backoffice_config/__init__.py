"""
backoffice_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the only way to obtain configuration at
    runtime.  It loads a YAML file (the packaged ``sets/default.yaml`` when
    no path is given) and returns a validated, frozen ``BackofficeConfig``.

Architecture position:
    Sits beside ``backoffice_kernel`` and below ``backoffice_modules``.
    The kernel MUST NEVER import from ``backoffice_config``; module
    facades pass policies into kernel services explicitly.

Audit relevance:
    Every successful load emits a ``backoffice_config_loaded`` log record
    carrying the config id, version and checksum.
"""

from __future__ import annotations

from pathlib import Path

from backoffice_config.loader import load_yaml_file, parse_config
from backoffice_config.schema import (
    BackofficeConfig,
    CompliancePolicy,
    ConfigurationError,
    DatabaseSettings,
    InventoryPolicy,
)
from backoffice_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> BackofficeConfig:
    """
    Load and validate the active configuration.

    Raises:
        FileNotFoundError: the configuration file does not exist.
        yaml.YAMLError: the file is not valid YAML.
        ConfigurationError: a value is unknown or out of range.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(path))

    _logger.info(
        "backoffice_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "path": str(path),
        },
    )
    return config


__all__ = [
    "BackofficeConfig",
    "CompliancePolicy",
    "ConfigurationError",
    "DatabaseSettings",
    "InventoryPolicy",
    "get_active_config",
]
