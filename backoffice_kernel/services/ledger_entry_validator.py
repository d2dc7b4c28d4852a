"""
LedgerEntryValidator -- gate in front of the Stock Projector.

Responsibility:
    Runs the pure checks from domain/ledger_entry.py and then confirms that
    the referenced item exists and belongs to the caller's business.  Has
    no side effects; nothing is written.

Architecture position:
    Kernel > Services.  Called by InventoryService before StockProjector.

Failure modes:
    - ValidationError subclasses from the pure checks (type, quantity,
      unit cost, adjustment delta).
    - ItemNotFoundError if the item id does not resolve.
    - BusinessMismatchError if the item belongs to another business.
"""

from uuid import UUID

from backoffice_kernel.domain.ledger_entry import (
    LedgerEntryRequest,
    ValidatedLedgerEntry,
    validate_ledger_entry,
)
from backoffice_kernel.exceptions import (
    BusinessMismatchError,
    ItemNotFoundError,
    ValidationError,
)
from backoffice_kernel.logging_config import get_logger
from backoffice_kernel.models.inventory import InventoryItem
from backoffice_kernel.services.base import BaseService

logger = get_logger("services.ledger_entry_validator")


class LedgerEntryValidator(BaseService):
    """
    Validates a proposed stock movement.

    Contract:
        ``validate`` either returns a ValidatedLedgerEntry or raises; it
        never flushes or writes.
    """

    def validate(self, business_id: UUID, request: LedgerEntryRequest) -> ValidatedLedgerEntry:
        """
        Preconditions:
            business_id identifies the acting business.

        Postconditions:
            The returned entry refers to an item owned by ``business_id``.

        Raises:
            ValidationError, ItemNotFoundError, BusinessMismatchError.
        """
        try:
            entry = validate_ledger_entry(request)
        except ValidationError as exc:
            logger.info(
                "ledger_entry_rejected",
                extra={
                    "item_id": str(request.item_id),
                    "transaction_type": str(request.transaction_type),
                    "reason": exc.code,
                },
            )
            raise

        item = self.session.get(InventoryItem, entry.item_id)
        if item is None:
            raise ItemNotFoundError(str(entry.item_id))
        if item.business_id != business_id:
            logger.warning(
                "ledger_entry_business_mismatch",
                extra={
                    "item_id": str(entry.item_id),
                    "owner_business_id": str(item.business_id),
                },
            )
            raise BusinessMismatchError("InventoryItem", str(entry.item_id), str(business_id))

        return entry
