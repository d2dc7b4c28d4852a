"""
StockProjector -- apply one validated ledger entry to an item's stock.

Responsibility:
    Reads the item's current stock, computes the new stock with the sign
    rule, writes the immutable InventoryTransaction row and moves the
    item's projection forward -- as one unit inside the caller's database
    transaction.

Architecture position:
    Kernel > Services -- imperative shell around domain/ledger_entry.py.

Invariants enforced:
    - Per-item serialization.  The read of previous_stock and the write of
      new_stock cannot interleave with another writer on the same item:
        * PostgreSQL: SELECT ... FOR UPDATE holds the item row until the
          caller commits.
        * SQLite: every transaction starts with BEGIN IMMEDIATE
          (db/engine.py), so writers are already serialized.
        * Everywhere: the UPDATE is a compare-and-set on stock_version and
          is retried on a miss, so a lost update is impossible even on a
          backend with neither mechanism.
    - new_stock == previous_stock + stock_delta on every ledger row.
    - The ledger row and the item update are flushed together; the caller
      commits or rolls back both.

Failure modes:
    - ItemNotFoundError if the item vanished between validation and apply.
    - StockUpdateConflictError after ``max_retries`` compare-and-set misses.

Audit relevance:
    item_version on the ledger row equals the item's stock_version after
    the apply, giving a gap-free per-item order for replay.
"""

from uuid import UUID

from sqlalchemy import select, update

from backoffice_kernel.domain.clock import Clock
from backoffice_kernel.domain.ledger_entry import ValidatedLedgerEntry, project_stock
from backoffice_kernel.exceptions import ItemNotFoundError, StockUpdateConflictError
from backoffice_kernel.logging_config import get_logger
from backoffice_kernel.models.inventory import InventoryItem, InventoryTransaction
from backoffice_kernel.services.base import BaseService

logger = get_logger("services.stock_projector")

DEFAULT_MAX_RETRIES = 5


class StockProjector(BaseService):
    """
    Applies ledger entries against item stock.

    Contract:
        Flushes, never commits.  One ``apply`` call produces exactly one
        ledger row and exactly one stock_version increment.

    Non-goals:
        - Does not validate type/quantity/ownership (LedgerEntryValidator).
        - Does not raise alerts (AlertService).
    """

    def __init__(self, session, clock: Clock | None = None, max_retries: int = DEFAULT_MAX_RETRIES):
        super().__init__(session, clock)
        self.max_retries = max_retries

    def _read_locked(self, item_id: UUID):
        stmt = (
            select(
                InventoryItem.business_id,
                InventoryItem.current_stock,
                InventoryItem.stock_version,
                InventoryItem.unit_cost,
            )
            .where(InventoryItem.id == item_id)
            .with_for_update()
        )
        return self.session.execute(stmt).one_or_none()

    def _expire_cached_item(self, item_id: UUID) -> None:
        for obj in list(self.session.identity_map.values()):
            if isinstance(obj, InventoryItem) and obj.id == item_id:
                self.session.expire(obj)

    def apply(
        self,
        entry: ValidatedLedgerEntry,
        actor_id: UUID | None = None,
    ) -> InventoryTransaction:
        """
        Apply ``entry`` and return the persisted ledger row.

        Preconditions:
            ``entry`` passed LedgerEntryValidator for the item's business.

        Postconditions:
            item.current_stock == row.new_stock and
            item.stock_version == row.item_version, both flushed.

        Raises:
            ItemNotFoundError, StockUpdateConflictError.
        """
        now = self.clock.now()

        for attempt in range(1, self.max_retries + 1):
            row = self._read_locked(entry.item_id)
            if row is None:
                raise ItemNotFoundError(str(entry.item_id))

            previous_stock = row.current_stock
            read_version = row.stock_version
            new_stock = project_stock(previous_stock, entry.signed_delta)

            result = self.session.execute(
                update(InventoryItem)
                .where(
                    InventoryItem.id == entry.item_id,
                    InventoryItem.stock_version == read_version,
                )
                .values(
                    current_stock=new_stock,
                    stock_version=read_version + 1,
                    updated_at=now,
                    updated_by_id=actor_id,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                break

            logger.warning(
                "stock_update_conflict_retry",
                extra={
                    "item_id": str(entry.item_id),
                    "attempt": attempt,
                    "read_version": read_version,
                },
            )
        else:
            logger.error(
                "stock_update_conflict_exhausted",
                extra={"item_id": str(entry.item_id), "attempts": self.max_retries},
            )
            raise StockUpdateConflictError(str(entry.item_id), self.max_retries)

        self._expire_cached_item(entry.item_id)

        unit_cost = entry.unit_cost if entry.unit_cost is not None else row.unit_cost
        transaction = InventoryTransaction(
            business_id=row.business_id,
            item_id=entry.item_id,
            transaction_type=entry.transaction_type.value,
            quantity=entry.quantity,
            unit_cost=unit_cost,
            total_cost=entry.quantity * unit_cost,
            previous_stock=previous_stock,
            new_stock=new_stock,
            stock_delta=entry.signed_delta,
            item_version=read_version + 1,
            reference_number=entry.reference_number,
            supplier_id=entry.supplier_id,
            order_id=entry.order_id,
            staff_id=entry.staff_id,
            notes=entry.notes,
            transaction_date=entry.transaction_date or now,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self.session.add(transaction)
        self.session.flush()

        logger.info(
            "stock_transaction_applied",
            extra={
                "item_id": str(entry.item_id),
                "transaction_id": str(transaction.id),
                "transaction_type": entry.transaction_type.value,
                "quantity": entry.quantity,
                "previous_stock": previous_stock,
                "new_stock": new_stock,
                "item_version": read_version + 1,
            },
        )
        return transaction

