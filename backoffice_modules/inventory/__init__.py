"""
Inventory Module (``backoffice_modules.inventory``).

Responsibility
--------------
Stock movements, item/category/supplier master data, alerts and the
dashboard reads for a restaurant back office.  All stock arithmetic and
alert derivation is delegated to ``backoffice_kernel``.

Architecture
------------
Layer: **Modules**.  Imports from ``backoffice_kernel`` and
``backoffice_config`` but never the reverse.
"""

from backoffice_modules.inventory.helpers import CategoryType, UnitOfMeasure
from backoffice_modules.inventory.service import InventoryService

__all__ = [
    "CategoryType",
    "InventoryService",
    "UnitOfMeasure",
]
