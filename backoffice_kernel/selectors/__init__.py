"""Selectors for the back-office kernel (read side)."""

from backoffice_kernel.selectors.document_selector import DocumentSelector
from backoffice_kernel.selectors.inventory_selector import InventorySelector, paginate

__all__ = [
    "DocumentSelector",
    "InventorySelector",
    "paginate",
]
