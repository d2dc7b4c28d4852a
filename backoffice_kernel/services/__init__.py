"""Kernel services -- flush-only writers used by the module facades."""

from backoffice_kernel.services.alert_service import AlertService
from backoffice_kernel.services.base import BaseService
from backoffice_kernel.services.ledger_entry_validator import LedgerEntryValidator
from backoffice_kernel.services.stock_projector import StockProjector

__all__ = [
    "AlertService",
    "BaseService",
    "LedgerEntryValidator",
    "StockProjector",
]
