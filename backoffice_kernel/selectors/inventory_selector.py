"""
Module: backoffice_kernel.selectors.inventory_selector
Responsibility: Read-only queries over inventory: paginated listings with
    filter predicates, dashboard statistics, valuation, and ledger replay.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: nothing is added, flushed or committed.
    - Every aggregate is recomputed from persisted state on each call.
    - Decimal sums are computed in Python, never in SQL, so backends that
      store Numeric as floating point cannot skew totals.
    - Listings are scoped to one business and return frozen DTOs.

Failure modes:
    - ItemNotFoundError / AlertNotFoundError for unknown ids.
    - BusinessMismatchError when an id belongs to another business.
    - InvalidPaginationError for page or per_page below 1.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, TypeVar
from uuid import UUID

from sqlalchemy import Select, func, or_, select

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
    ValuationLine,
)
from backoffice_kernel.domain.ledger_entry import replay_deltas
from backoffice_kernel.exceptions import (
    AlertNotFoundError,
    BusinessMismatchError,
    InvalidPaginationError,
    ItemNotFoundError,
)
from backoffice_kernel.models.inventory import (
    InventoryAlert,
    InventoryCategory,
    InventoryItem,
    InventoryTransaction,
    Supplier,
)
from backoffice_kernel.selectors.base import BaseSelector

T = TypeVar("T")


def paginate(session, stmt: Select, page: int, per_page: int, to_dto: Callable[..., T]) -> Page[T]:
    """Run ``stmt`` for one 1-based page and count the full result."""
    if page < 1:
        raise InvalidPaginationError("page", page)
    if per_page < 1:
        raise InvalidPaginationError("per_page", per_page)

    count = session.scalar(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ) or 0
    rows = session.scalars(stmt.offset((page - 1) * per_page).limit(per_page)).all()
    return Page(
        data=tuple(to_dto(row) for row in rows),
        count=count,
        page=page,
        per_page=per_page,
    )


def _contains_pattern(text: str) -> str:
    """LIKE pattern matching ``text`` literally anywhere, escaped with a backslash."""
    for special in ("\\", "%", "_"):
        text = text.replace(special, "\\" + special)
    return f"%{text}%"


class InventorySelector(BaseSelector):
    """
    Selector for inventory queries.

    Guarantees:
        - Item listings include only available items (soft-disabled items
          are hidden), ordered by name.
        - Transaction listings are newest first; alert listings are newest
          first.
    """

    # ------------------------------------------------------------------
    # Single rows
    # ------------------------------------------------------------------

    def _owned_item(self, business_id: UUID, item_id: UUID) -> InventoryItem:
        item = self.session.get(InventoryItem, item_id)
        if item is None:
            raise ItemNotFoundError(str(item_id))
        if item.business_id != business_id:
            raise BusinessMismatchError("InventoryItem", str(item_id), str(business_id))
        return item

    def get_item(self, business_id: UUID, item_id: UUID) -> ItemRecord:
        return ItemRecord.from_model(self._owned_item(business_id, item_id))

    def get_alert(self, business_id: UUID, alert_id: UUID) -> AlertRecord:
        alert = self.session.get(InventoryAlert, alert_id)
        if alert is None:
            raise AlertNotFoundError(str(alert_id))
        if alert.business_id != business_id:
            raise BusinessMismatchError("InventoryAlert", str(alert_id), str(business_id))
        return AlertRecord.from_model(alert)

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def list_items(
        self,
        business_id: UUID,
        page: int = 1,
        per_page: int = 10,
        category_id: UUID | None = None,
        search: str | None = None,
        low_stock: bool = False,
        expiring_within_days: int | None = None,
    ) -> Page[ItemRecord]:
        """
        Paginated item listing.

        Args:
            category_id: Only items in this category.
            search: Case-insensitive substring over name, description, SKU.
            low_stock: Only items with current_stock <= minimum_stock.
            expiring_within_days: Only items whose expiry date is on or
                before today + N days (already expired items included).
        """
        stmt = (
            select(InventoryItem)
            .where(
                InventoryItem.business_id == business_id,
                InventoryItem.is_available.is_(True),
            )
            .order_by(InventoryItem.name, InventoryItem.id)
        )
        if category_id is not None:
            stmt = stmt.where(InventoryItem.category_id == category_id)
        if search:
            pattern = _contains_pattern(search.strip())
            stmt = stmt.where(or_(
                InventoryItem.name.ilike(pattern, escape="\\"),
                InventoryItem.description.ilike(pattern, escape="\\"),
                InventoryItem.sku.ilike(pattern, escape="\\"),
            ))
        if low_stock:
            stmt = stmt.where(InventoryItem.current_stock <= InventoryItem.minimum_stock)
        if expiring_within_days is not None:
            cutoff = self.clock.today() + timedelta(days=expiring_within_days)
            stmt = stmt.where(
                InventoryItem.expiry_date.is_not(None),
                InventoryItem.expiry_date <= cutoff,
            )
        return paginate(self.session, stmt, page, per_page, ItemRecord.from_model)

    def list_categories(
        self, business_id: UUID, page: int = 1, per_page: int = 10,
    ) -> Page[CategoryRecord]:
        stmt = (
            select(InventoryCategory)
            .where(
                InventoryCategory.business_id == business_id,
                InventoryCategory.is_active.is_(True),
            )
            .order_by(InventoryCategory.name, InventoryCategory.id)
        )
        return paginate(self.session, stmt, page, per_page, CategoryRecord.from_model)

    def list_suppliers(
        self, business_id: UUID, page: int = 1, per_page: int = 10,
    ) -> Page[SupplierRecord]:
        stmt = (
            select(Supplier)
            .where(Supplier.business_id == business_id, Supplier.is_active.is_(True))
            .order_by(Supplier.name, Supplier.id)
        )
        return paginate(self.session, stmt, page, per_page, SupplierRecord.from_model)

    def list_transactions(
        self,
        business_id: UUID,
        page: int = 1,
        per_page: int = 10,
        item_id: UUID | None = None,
        transaction_type: str | None = None,
    ) -> Page[TransactionRecord]:
        stmt = (
            select(InventoryTransaction)
            .where(InventoryTransaction.business_id == business_id)
            .order_by(
                InventoryTransaction.transaction_date.desc(),
                InventoryTransaction.item_version.desc(),
            )
        )
        if item_id is not None:
            stmt = stmt.where(InventoryTransaction.item_id == item_id)
        if transaction_type is not None:
            stmt = stmt.where(InventoryTransaction.transaction_type == str(transaction_type))
        return paginate(self.session, stmt, page, per_page, TransactionRecord.from_model)

    def list_alerts(
        self,
        business_id: UUID,
        resolved: bool | None = None,
        page: int = 1,
        per_page: int = 10,
        alert_type: str | None = None,
    ) -> Page[AlertRecord]:
        stmt = (
            select(InventoryAlert)
            .where(InventoryAlert.business_id == business_id)
            .order_by(InventoryAlert.created_at.desc(), InventoryAlert.id)
        )
        if resolved is not None:
            stmt = stmt.where(InventoryAlert.is_resolved.is_(resolved))
        if alert_type is not None:
            stmt = stmt.where(InventoryAlert.alert_type == str(alert_type))
        return paginate(self.session, stmt, page, per_page, AlertRecord.from_model)

    # ------------------------------------------------------------------
    # Dashboard aggregates
    # ------------------------------------------------------------------

    def _available_items(self, business_id: UUID):
        return select(InventoryItem).where(
            InventoryItem.business_id == business_id,
            InventoryItem.is_available.is_(True),
        )

    def get_inventory_stats(self, business_id: UUID, expiring_within_days: int = 7) -> InventoryStats:
        """
        Dashboard statistics over available items.

        lowStockItems counts current_stock <= minimum_stock (zero stock
        included); expiringItems counts expiry_date <= today + window.
        """
        items = self.session.scalars(self._available_items(business_id)).all()
        cutoff = self.clock.today() + timedelta(days=expiring_within_days)

        active_alerts = self.session.scalar(
            select(func.count(InventoryAlert.id)).where(
                InventoryAlert.business_id == business_id,
                InventoryAlert.is_resolved.is_(False),
            )
        ) or 0

        return InventoryStats(
            total_items=len(items),
            low_stock_items=sum(1 for i in items if i.current_stock <= i.minimum_stock),
            expiring_items=sum(
                1 for i in items if i.expiry_date is not None and i.expiry_date <= cutoff
            ),
            active_alerts=active_alerts,
            total_value=sum(
                (i.current_stock * i.unit_cost for i in items), Decimal("0"),
            ),
        )

    def get_low_stock_items(self, business_id: UUID) -> list[ItemRecord]:
        stmt = (
            self._available_items(business_id)
            .where(InventoryItem.current_stock <= InventoryItem.minimum_stock)
            .order_by(InventoryItem.name)
        )
        return [ItemRecord.from_model(i) for i in self.session.scalars(stmt)]

    def get_expiring_items(self, business_id: UUID, within_days: int = 30) -> list[ItemRecord]:
        cutoff: date = self.clock.today() + timedelta(days=within_days)
        stmt = (
            self._available_items(business_id)
            .where(
                InventoryItem.expiry_date.is_not(None),
                InventoryItem.expiry_date <= cutoff,
            )
            .order_by(InventoryItem.expiry_date, InventoryItem.name)
        )
        return [ItemRecord.from_model(i) for i in self.session.scalars(stmt)]

    def get_inventory_valuation(self, business_id: UUID) -> InventoryValuation:
        stmt = (
            self._available_items(business_id)
            .where(InventoryItem.current_stock > 0)
            .order_by(InventoryItem.name)
        )
        lines = tuple(
            ValuationLine(
                item_id=i.id,
                name=i.name,
                current_stock=i.current_stock,
                unit_cost=i.unit_cost,
                value=i.current_stock * i.unit_cost,
            )
            for i in self.session.scalars(stmt)
        )
        return InventoryValuation(
            lines=lines,
            total_value=sum((line.value for line in lines), Decimal("0")),
        )

    # ------------------------------------------------------------------
    # Ledger replay
    # ------------------------------------------------------------------

    def _ledger_deltas(self, item_id: UUID, as_of: datetime | None = None) -> list[Decimal]:
        stmt = (
            select(InventoryTransaction.stock_delta)
            .where(InventoryTransaction.item_id == item_id)
            .order_by(InventoryTransaction.item_version)
        )
        if as_of is not None:
            stmt = stmt.where(InventoryTransaction.transaction_date <= as_of)
        return list(self.session.scalars(stmt))

    def replay_stock(
        self, business_id: UUID, item_id: UUID, as_of: datetime | None = None,
    ) -> Decimal:
        """Stock implied by the ledger, optionally as of a point in time."""
        self._owned_item(business_id, item_id)
        return replay_deltas(self._ledger_deltas(item_id, as_of))

    def verify_stock(self, business_id: UUID, item_id: UUID) -> StockVerification:
        """Compare the stored projection against a full ledger replay."""
        item = self._owned_item(business_id, item_id)
        deltas = self._ledger_deltas(item_id)
        return StockVerification(
            item_id=item_id,
            stored_stock=item.current_stock,
            ledger_stock=replay_deltas(deltas),
            transaction_count=len(deltas),
        )
