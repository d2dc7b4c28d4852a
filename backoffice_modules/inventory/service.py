"""
Inventory Module Service (``backoffice_modules.inventory.service``).

Responsibility
--------------
Orchestrates inventory operations by composing the kernel's
``LedgerEntryValidator``, ``StockProjector``, ``AlertService`` and
``InventorySelector``.  This is a thin glue layer: the sign rule, the
alert thresholds and the aggregates all live in the kernel.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

1. ``LedgerEntryValidator`` checks type, quantity, cost and ownership.
2. ``StockProjector`` writes the ledger row and moves the item's stock.
3. ``AlertService`` derives and persists newly holding alert conditions.
4. ``InventorySelector`` serves every read.

Invariants
----------
- Each public write method owns its transaction boundary: kernel services
  only flush; this service calls ``session.commit()`` on success and
  ``session.rollback()`` on failure.  A ledger row is never committed
  without its stock update, nor the reverse.
- Every operation is scoped by an explicit ``business_id``.

Failure Modes
-------------
- Kernel ``ValidationError`` / ``NotFoundError`` / ``AuthorizationError`` /
  ``ConcurrencyError`` propagate after rollback.
- ``SQLAlchemyError`` during a write is rolled back and re-raised as
  ``PersistenceError`` with the original chained.

Audit Relevance
---------------
Every stock movement is an immutable ``InventoryTransaction`` carrying the
previous and new stock, the signed delta and the per-item version, so the
stored stock can be re-derived (``replay_stock``) and checked
(``verify_stock``) at any time.

Usage::

    service = InventoryService(session, clock, policy=config.inventory)
    record = service.record_transaction(
        business_id, item_id, "sale", quantity=Decimal("3"), actor_id=actor_id,
    )
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Iterator
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backoffice_config.schema import InventoryPolicy
from backoffice_kernel.domain.alerts import derive_price_change
from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.domain.dtos import (
    AlertRecord,
    CategoryRecord,
    InventoryStats,
    InventoryValuation,
    ItemRecord,
    Page,
    StockVerification,
    SupplierRecord,
    TransactionRecord,
)
from backoffice_kernel.domain.ledger_entry import (
    LedgerEntryRequest,
    TransactionType,
    validate_ledger_entry,
    validate_unit_cost,
)
from backoffice_kernel.exceptions import (
    BusinessMismatchError,
    CategoryNotFoundError,
    InvalidUnitCostError,
    ItemNotFoundError,
    PersistenceError,
    SupplierNotFoundError,
)
from backoffice_kernel.logging_config import LogContext, get_logger
from backoffice_kernel.models.inventory import (
    InventoryCategory,
    InventoryItem,
    Supplier,
)
from backoffice_kernel.selectors.inventory_selector import InventorySelector
from backoffice_kernel.services.alert_service import AlertService
from backoffice_kernel.services.ledger_entry_validator import LedgerEntryValidator
from backoffice_kernel.services.stock_projector import StockProjector
from backoffice_modules.inventory.helpers import (
    check_rating,
    check_stock_bounds,
    non_negative,
    parse_category_type,
    parse_unit_of_measure,
    require_name,
)

logger = get_logger("modules.inventory.service")


class InventoryService:
    """
    Orchestrates inventory operations through the kernel.

    Contract
    --------
    Write methods commit on success and roll back on failure.  Read methods
    never write and return frozen DTOs.

    Guarantees
    ----------
    - Atomicity: the ledger row, the stock update and any alerts raised by
      the movement share one database transaction.
    - Per-item serialization of stock movements (see ``StockProjector``).

    Non-goals
    ---------
    - Does NOT resolve "current business" from ambient state; callers pass
      ``business_id`` explicitly.
    - Does NOT auto-resolve alerts whose condition has cleared.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: InventoryPolicy | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._policy = policy or InventoryPolicy()

        self._validator = LedgerEntryValidator(session, self._clock)
        self._projector = StockProjector(
            session, self._clock, max_retries=self._policy.max_stock_update_retries,
        )
        self._alerts = AlertService(
            session,
            self._clock,
            thresholds=self._policy.alert_thresholds(),
            deduplicate=self._policy.deduplicate_alerts,
        )
        self._selector = InventorySelector(session, self._clock)

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[None]:
        try:
            yield
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.error(
                "inventory_persistence_failed",
                extra={"operation": operation, "error": str(exc)},
            )
            raise PersistenceError(operation, str(exc)) from exc
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Ownership helpers
    # =========================================================================

    def _owned_item(self, business_id: UUID, item_id: UUID, lock: bool = False) -> InventoryItem:
        stmt = select(InventoryItem).where(InventoryItem.id == item_id)
        if lock:
            stmt = stmt.with_for_update()
        item = self._session.execute(stmt).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(str(item_id))
        if item.business_id != business_id:
            raise BusinessMismatchError("InventoryItem", str(item_id), str(business_id))
        return item

    def _check_category(self, business_id: UUID, category_id: UUID | None) -> None:
        if category_id is None:
            return
        category = self._session.get(InventoryCategory, category_id)
        if category is None:
            raise CategoryNotFoundError(str(category_id))
        if category.business_id != business_id:
            raise BusinessMismatchError("InventoryCategory", str(category_id), str(business_id))

    def _check_supplier(self, business_id: UUID, supplier_id: UUID | None) -> None:
        if supplier_id is None:
            return
        supplier = self._session.get(Supplier, supplier_id)
        if supplier is None:
            raise SupplierNotFoundError(str(supplier_id))
        if supplier.business_id != business_id:
            raise BusinessMismatchError("Supplier", str(supplier_id), str(business_id))

    # =========================================================================
    # Stock movements
    # =========================================================================

    def record_transaction(
        self,
        business_id: UUID,
        item_id: UUID,
        transaction_type: TransactionType | str,
        quantity: object = None,
        unit_cost: object = None,
        notes: str | None = None,
        actor_id: UUID | None = None,
        adjustment_delta: object = None,
        reference_number: str | None = None,
        supplier_id: UUID | None = None,
        order_id: str | None = None,
        staff_id: UUID | None = None,
        transaction_date: datetime | None = None,
    ) -> TransactionRecord:
        """
        Record one stock movement against an item.

        Preconditions:
            - ``quantity`` > 0 for every type except ``adjustment``.
            - ``adjustment`` carries a signed, non-zero ``adjustment_delta``.

        Postconditions:
            - One ledger row with previous_stock, new_stock and stock_delta.
            - item.current_stock == new_stock; stock_version incremented.
            - Newly holding alert conditions persisted (when enabled).
            - Session committed; on any failure nothing is persisted.

        Raises:
            ValidationError, ItemNotFoundError, SupplierNotFoundError,
            BusinessMismatchError, StockUpdateConflictError, PersistenceError.
        """
        request = LedgerEntryRequest(
            item_id=item_id,
            transaction_type=transaction_type,
            quantity=quantity,
            unit_cost=unit_cost,
            adjustment_delta=adjustment_delta,
            notes=notes,
            reference_number=reference_number,
            supplier_id=supplier_id,
            order_id=order_id,
            staff_id=staff_id,
            transaction_date=transaction_date,
        )

        with LogContext.bind(business_id=business_id, actor_id=actor_id, item_id=item_id):
            with self._unit_of_work("record_transaction"):
                entry = self._validator.validate(business_id, request)
                self._check_supplier(business_id, entry.supplier_id)
                transaction = self._projector.apply(entry, actor_id=actor_id)

                item = self._session.get(InventoryItem, item_id)
                if self._policy.scan_alerts_on_transaction and item.is_available:
                    self._alerts.scan_item(item, actor_id=actor_id)

                record = TransactionRecord.from_model(transaction)

        return record

    # =========================================================================
    # Master data
    # =========================================================================

    def add_category(
        self,
        business_id: UUID,
        name: str,
        category_type: str = "other",
        description: str | None = None,
        parent_category_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> CategoryRecord:
        name = require_name("name", name)
        category_type = parse_category_type(category_type)

        with self._unit_of_work("add_category"):
            self._check_category(business_id, parent_category_id)
            now = self._clock.now()
            category = InventoryCategory(
                business_id=business_id,
                name=name,
                description=description,
                parent_category_id=parent_category_id,
                category_type=category_type.value,
                is_active=True,
                created_at=now,
                updated_at=now,
                created_by_id=actor_id,
            )
            self._session.add(category)
            self._session.flush()
            record = CategoryRecord.from_model(category)

        logger.info("inventory_category_added", extra={
            "category_id": str(record.id),
            "business_id": str(business_id),
        })
        return record

    def add_supplier(
        self,
        business_id: UUID,
        name: str,
        contact_person: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        address: str | None = None,
        tax_id: str | None = None,
        payment_terms: str | None = None,
        credit_limit: object = None,
        rating: int | None = None,
        notes: str | None = None,
        actor_id: UUID | None = None,
    ) -> SupplierRecord:
        name = require_name("name", name)
        credit_limit = non_negative("credit_limit", credit_limit)
        rating = check_rating(rating)

        with self._unit_of_work("add_supplier"):
            now = self._clock.now()
            supplier = Supplier(
                business_id=business_id,
                name=name,
                contact_person=contact_person,
                email=email,
                phone=phone,
                address=address,
                tax_id=tax_id,
                payment_terms=payment_terms,
                credit_limit=credit_limit,
                current_balance=Decimal("0"),
                rating=rating,
                notes=notes,
                is_active=True,
                created_at=now,
                updated_at=now,
                created_by_id=actor_id,
            )
            self._session.add(supplier)
            self._session.flush()
            record = SupplierRecord.from_model(supplier)

        logger.info("supplier_added", extra={
            "supplier_id": str(record.id),
            "business_id": str(business_id),
        })
        return record

    def add_item(
        self,
        business_id: UUID,
        name: str,
        unit_of_measure: str,
        minimum_stock: object = None,
        unit_cost: object = None,
        *,
        maximum_stock: object = None,
        reorder_point: object = None,
        reorder_quantity: object = None,
        selling_price: object = None,
        category_id: UUID | None = None,
        supplier_id: UUID | None = None,
        description: str | None = None,
        sku: str | None = None,
        barcode: str | None = None,
        expiry_date: date | None = None,
        location: str | None = None,
        is_perishable: bool = False,
        is_alcoholic: bool = False,
        is_ingredient: bool = False,
        notes: str | None = None,
        opening_stock: object = None,
        actor_id: UUID | None = None,
    ) -> ItemRecord:
        """
        Create an inventory item.

        A positive ``opening_stock`` is recorded as an ``adjustment`` ledger
        entry in the same transaction, so the item's stock always equals the
        sum of its ledger deltas.  The item row itself starts at zero.

        Raises:
            InvalidItemDataError, CategoryNotFoundError,
            SupplierNotFoundError, BusinessMismatchError, PersistenceError.
        """
        name = require_name("name", name)
        unit = parse_unit_of_measure(unit_of_measure)
        minimum = non_negative("minimum_stock", minimum_stock)
        maximum = non_negative("maximum_stock", maximum_stock)
        check_stock_bounds(minimum, maximum)
        cost = non_negative("unit_cost", unit_cost)
        opening = non_negative("opening_stock", opening_stock)

        with self._unit_of_work("add_item"):
            self._check_category(business_id, category_id)
            self._check_supplier(business_id, supplier_id)

            now = self._clock.now()
            item = InventoryItem(
                business_id=business_id,
                category_id=category_id,
                supplier_id=supplier_id,
                name=name,
                description=description,
                sku=sku,
                barcode=barcode,
                unit_of_measure=unit.value,
                current_stock=Decimal("0"),
                stock_version=0,
                minimum_stock=minimum,
                maximum_stock=maximum,
                reorder_point=non_negative("reorder_point", reorder_point),
                reorder_quantity=non_negative("reorder_quantity", reorder_quantity),
                unit_cost=cost,
                selling_price=non_negative("selling_price", selling_price),
                expiry_date=expiry_date,
                location=location,
                is_perishable=is_perishable,
                is_alcoholic=is_alcoholic,
                is_ingredient=is_ingredient,
                is_available=True,
                notes=notes,
                created_at=now,
                updated_at=now,
                created_by_id=actor_id,
            )
            self._session.add(item)
            self._session.flush()

            if opening > 0:
                entry = validate_ledger_entry(LedgerEntryRequest(
                    item_id=item.id,
                    transaction_type=TransactionType.ADJUSTMENT,
                    adjustment_delta=opening,
                    unit_cost=cost,
                    notes="Opening stock",
                ))
                self._projector.apply(entry, actor_id=actor_id)
                self._session.refresh(item)
                if self._policy.scan_alerts_on_transaction:
                    self._alerts.scan_item(item, actor_id=actor_id)

            record = ItemRecord.from_model(item)

        logger.info("inventory_item_added", extra={
            "item_id": str(record.id),
            "business_id": str(business_id),
            "opening_stock": opening,
        })
        return record

    def update_item_cost(
        self,
        business_id: UUID,
        item_id: UUID,
        new_unit_cost: object,
        actor_id: UUID | None = None,
    ) -> tuple[ItemRecord, AlertRecord | None]:
        """
        Change an item's unit cost.

        Postconditions:
            - item.unit_cost == new_unit_cost.
            - A ``price_change`` alert is recorded when the relative change
              reaches the configured threshold.

        Returns:
            The updated item and the alert, or None if no alert was raised.
        """
        if new_unit_cost is None:
            raise InvalidUnitCostError(None, "unit cost is required")
        new_cost = validate_unit_cost(new_unit_cost)

        with LogContext.bind(business_id=business_id, actor_id=actor_id, item_id=item_id):
            with self._unit_of_work("update_item_cost"):
                item = self._owned_item(business_id, item_id, lock=True)
                old_cost = item.unit_cost

                item.unit_cost = new_cost
                item.updated_at = self._clock.now()
                item.updated_by_id = actor_id
                self._session.flush()

                alert = None
                condition = derive_price_change(
                    item.id, item.name, old_cost, new_cost, self._alerts.thresholds,
                )
                if condition is not None:
                    alert = self._alerts.raise_condition(business_id, condition, actor_id)

                item_record = ItemRecord.from_model(item)
                alert_record = AlertRecord.from_model(alert) if alert is not None else None

            logger.info("inventory_item_cost_updated", extra={
                "old_unit_cost": old_cost,
                "new_unit_cost": new_cost,
                "price_change_alert": alert_record is not None,
            })
        return item_record, alert_record

    def set_item_availability(
        self,
        business_id: UUID,
        item_id: UUID,
        is_available: bool,
        actor_id: UUID | None = None,
    ) -> ItemRecord:
        """Soft enable/disable.  Items are never deleted."""
        with self._unit_of_work("set_item_availability"):
            item = self._owned_item(business_id, item_id)
            item.is_available = is_available
            item.updated_at = self._clock.now()
            item.updated_by_id = actor_id
            self._session.flush()
            record = ItemRecord.from_model(item)

        logger.info("inventory_item_availability_changed", extra={
            "item_id": str(item_id),
            "is_available": is_available,
        })
        return record

    # =========================================================================
    # Alerts
    # =========================================================================

    def scan_item_alerts(
        self, business_id: UUID, item_id: UUID, actor_id: UUID | None = None,
    ) -> list[AlertRecord]:
        """Disabled items are never scanned."""
        with self._unit_of_work("scan_item_alerts"):
            item = self._owned_item(business_id, item_id)
            raised = self._alerts.scan_item(item, actor_id=actor_id) if item.is_available else []
            records = [AlertRecord.from_model(a) for a in raised]
        return records

    def scan_alerts(self, business_id: UUID, actor_id: UUID | None = None) -> list[AlertRecord]:
        """Run the deriver over every available item of the business."""
        with self._unit_of_work("scan_alerts"):
            items = self._session.scalars(
                select(InventoryItem)
                .where(
                    InventoryItem.business_id == business_id,
                    InventoryItem.is_available.is_(True),
                )
                .order_by(InventoryItem.name, InventoryItem.id)
            ).all()
            records = []
            for item in items:
                records.extend(
                    AlertRecord.from_model(a)
                    for a in self._alerts.scan_item(item, actor_id=actor_id)
                )

        logger.info("inventory_alert_scan_completed", extra={
            "business_id": str(business_id),
            "items_scanned": len(items),
            "alerts_raised": len(records),
        })
        return records

    def resolve_alert(self, business_id: UUID, alert_id: UUID, resolved_by: UUID) -> AlertRecord:
        """
        Resolve an alert.  Resolution is one-way and does not re-check the
        condition.

        Raises:
            AlertNotFoundError, BusinessMismatchError,
            AlertAlreadyResolvedError, PersistenceError.
        """
        with LogContext.bind(business_id=business_id, actor_id=resolved_by):
            with self._unit_of_work("resolve_alert"):
                alert = self._alerts.resolve(business_id, alert_id, resolved_by)
                record = AlertRecord.from_model(alert)
        return record

    def list_alerts(
        self,
        business_id: UUID,
        resolved: bool | None = None,
        page: int = 1,
        per_page: int | None = None,
        alert_type: str | None = None,
    ) -> Page[AlertRecord]:
        return self._selector.list_alerts(
            business_id,
            resolved=resolved,
            page=page,
            per_page=per_page or self._policy.default_page_size,
            alert_type=alert_type,
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def get_item(self, business_id: UUID, item_id: UUID) -> ItemRecord:
        return self._selector.get_item(business_id, item_id)

    def list_items(
        self,
        business_id: UUID,
        page: int = 1,
        per_page: int | None = None,
        category_id: UUID | None = None,
        search: str | None = None,
        low_stock: bool = False,
        expiring: bool = False,
    ) -> Page[ItemRecord]:
        """``expiring`` uses the alert expiry window."""
        return self._selector.list_items(
            business_id,
            page=page,
            per_page=per_page or self._policy.default_page_size,
            category_id=category_id,
            search=search,
            low_stock=low_stock,
            expiring_within_days=self._policy.alert_expiry_window_days if expiring else None,
        )

    def list_categories(
        self, business_id: UUID, page: int = 1, per_page: int | None = None,
    ) -> Page[CategoryRecord]:
        return self._selector.list_categories(
            business_id, page, per_page or self._policy.default_page_size,
        )

    def list_suppliers(
        self, business_id: UUID, page: int = 1, per_page: int | None = None,
    ) -> Page[SupplierRecord]:
        return self._selector.list_suppliers(
            business_id, page, per_page or self._policy.default_page_size,
        )

    def list_transactions(
        self,
        business_id: UUID,
        page: int = 1,
        per_page: int | None = None,
        item_id: UUID | None = None,
        transaction_type: TransactionType | str | None = None,
    ) -> Page[TransactionRecord]:
        if isinstance(transaction_type, TransactionType):
            transaction_type = transaction_type.value
        return self._selector.list_transactions(
            business_id,
            page=page,
            per_page=per_page or self._policy.default_page_size,
            item_id=item_id,
            transaction_type=transaction_type,
        )

    def get_inventory_stats(self, business_id: UUID) -> InventoryStats:
        return self._selector.get_inventory_stats(
            business_id, expiring_within_days=self._policy.stats_expiry_window_days,
        )

    def get_low_stock_items(self, business_id: UUID) -> list[ItemRecord]:
        return self._selector.get_low_stock_items(business_id)

    def get_expiring_items(self, business_id: UUID, within_days: int | None = None) -> list[ItemRecord]:
        if within_days is None:
            within_days = self._policy.alert_expiry_window_days
        return self._selector.get_expiring_items(business_id, within_days)

    def get_inventory_valuation(self, business_id: UUID) -> InventoryValuation:
        return self._selector.get_inventory_valuation(business_id)

    def replay_stock(
        self, business_id: UUID, item_id: UUID, as_of: datetime | None = None,
    ) -> Decimal:
        return self._selector.replay_stock(business_id, item_id, as_of)

    def verify_stock(self, business_id: UUID, item_id: UUID) -> StockVerification:
        result = self._selector.verify_stock(business_id, item_id)
        if not result.is_consistent:
            logger.error("inventory_stock_drift_detected", extra={
                "item_id": str(item_id),
                "stored_stock": result.stored_stock,
                "ledger_stock": result.ledger_stock,
            })
        return result
