"""Domain models for the back-office kernel."""

from backoffice_kernel.models.inventory import (
    InventoryAlert,
    InventoryCategory,
    InventoryItem,
    InventoryTransaction,
    Supplier,
)
from backoffice_kernel.models.staff import StaffDocument, StaffMember


def import_all_models() -> None:
    """Ensure every model is registered on Base.metadata.

    Importing this package already does that; the function gives
    create_tables() an explicit hook to call.
    """


__all__ = [
    "InventoryAlert",
    "InventoryCategory",
    "InventoryItem",
    "InventoryTransaction",
    "Supplier",
    "StaffDocument",
    "StaffMember",
    "import_all_models",
]
