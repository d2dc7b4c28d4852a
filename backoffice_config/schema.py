"""
Back-office configuration schema.

Frozen dataclasses that the YAML configuration is parsed into.  Every
dataclass validates itself in ``__post_init__`` so an invalid value is
rejected at load time, naming the offending key.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from backoffice_kernel.domain.alerts import AlertThresholds
from backoffice_kernel.domain.compliance import DocumentType


class ConfigurationError(ValueError):
    """A configuration value is missing or out of range."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for {key}: {reason}")


def _require_positive_int(key: str, value: int, allow_zero: bool = False) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(key, f"expected an integer, got {value!r}")
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigurationError(key, f"must be {'>= 0' if allow_zero else '> 0'}, got {value}")


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///backoffice.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigurationError("database.url", "must not be empty")
        _require_positive_int("database.pool_size", self.pool_size)
        _require_positive_int("database.max_overflow", self.max_overflow, allow_zero=True)
        _require_positive_int("database.pool_timeout", self.pool_timeout)


@dataclass(frozen=True)
class InventoryPolicy:
    """
    Inventory alerting and listing policy.

    alert_expiry_window_days drives the deriver's expiring_soon window and
    the "expiring" list filter; stats_expiry_window_days drives the
    dashboard count.  The two windows are independent.
    """

    alert_expiry_window_days: int = 30
    stats_expiry_window_days: int = 7
    low_stock_high_severity_ratio: Decimal = Decimal("0.5")
    expiring_soon_high_severity_days: int = 3
    price_change_threshold_percent: Decimal = Decimal("10")
    deduplicate_alerts: bool = True
    scan_alerts_on_transaction: bool = True
    max_stock_update_retries: int = 5
    default_page_size: int = 10

    def __post_init__(self) -> None:
        _require_positive_int("inventory.alert_expiry_window_days", self.alert_expiry_window_days, allow_zero=True)
        _require_positive_int("inventory.stats_expiry_window_days", self.stats_expiry_window_days, allow_zero=True)
        _require_positive_int(
            "inventory.expiring_soon_high_severity_days",
            self.expiring_soon_high_severity_days,
            allow_zero=True,
        )
        _require_positive_int("inventory.max_stock_update_retries", self.max_stock_update_retries)
        _require_positive_int("inventory.default_page_size", self.default_page_size)
        if not (Decimal("0") < self.low_stock_high_severity_ratio <= Decimal("1")):
            raise ConfigurationError(
                "inventory.low_stock_high_severity_ratio",
                f"must be in (0, 1], got {self.low_stock_high_severity_ratio}",
            )
        if self.price_change_threshold_percent <= 0:
            raise ConfigurationError(
                "inventory.price_change_threshold_percent",
                f"must be > 0, got {self.price_change_threshold_percent}",
            )

    def alert_thresholds(self) -> AlertThresholds:
        return AlertThresholds(
            expiring_soon_days=self.alert_expiry_window_days,
            low_stock_high_severity_ratio=self.low_stock_high_severity_ratio,
            expiring_soon_high_severity_days=self.expiring_soon_high_severity_days,
            price_change_threshold_percent=self.price_change_threshold_percent,
        )


@dataclass(frozen=True)
class CompliancePolicy:
    required_document_types: tuple[str, ...] = ("contract", "id_document")
    expiring_soon_days: int = 30
    storage_root: str = "staff-documents"

    @property
    def required_types(self) -> tuple[DocumentType, ...]:
        return tuple(DocumentType(t) for t in self.required_document_types)

    def __post_init__(self) -> None:
        known = {t.value for t in DocumentType}
        for document_type in self.required_document_types:
            if document_type not in known:
                raise ConfigurationError(
                    "compliance.required_document_types",
                    f"unknown document type {document_type!r}",
                )
        _require_positive_int("compliance.expiring_soon_days", self.expiring_soon_days, allow_zero=True)
        if not self.storage_root or "/" in self.storage_root or ".." in self.storage_root:
            raise ConfigurationError(
                "compliance.storage_root",
                f"must be a single path segment, got {self.storage_root!r}",
            )


@dataclass(frozen=True)
class BackofficeConfig:
    """The complete runtime configuration."""

    config_id: str
    version: int
    database: DatabaseSettings
    inventory: InventoryPolicy
    compliance: CompliancePolicy
    checksum: str = ""
