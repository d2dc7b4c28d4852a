"""
Module: backoffice_kernel.models.inventory
Responsibility: SQLAlchemy ORM persistence models for inventory: categories,
    suppliers, items, the append-only transaction ledger, and alerts.

Architecture position: Kernel > Models.  Inherits from TrackedBase
    (backoffice_kernel.db.base).  The owning business is referenced by UUID
    with NO foreign key; businesses live in the external identity store.

Invariants enforced:
    - All quantities and costs use Decimal (Numeric(38,9)) -- NEVER float.
    - Enum fields stored as String(50) for portability and readability.
    - InventoryItem.stock_version increases by exactly one per applied
      transaction; (item_id, item_version) is unique on the ledger, so two
      transactions can never both claim the same previous_stock.
    - InventoryTransaction rows are never updated or deleted, items and
      alerts are never deleted (db/immutability.py).

Failure modes:
    - IntegrityError on a duplicate (item_id, item_version) ledger row.

Audit relevance:
    - current_stock is a projection; the ledger is the authoritative record.
      replay_stock recomputes the projection from stock_delta values.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice_kernel.db.base import TrackedBase


# =============================================================================
# InventoryCategory
# =============================================================================

class InventoryCategory(TrackedBase):
    """Grouping for inventory items; may nest under a parent category."""

    __tablename__ = "inventory_categories"

    __table_args__ = (
        Index("idx_inv_category_business", "business_id"),
    )

    business_id: Mapped[UUID] = mapped_column()
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("inventory_categories.id"), nullable=True,
    )
    category_type: Mapped[str] = mapped_column(String(50), default="other")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<InventoryCategory {self.id} {self.name!r}>"


# =============================================================================
# Supplier
# =============================================================================

class Supplier(TrackedBase):
    """A vendor items are purchased from."""

    __tablename__ = "suppliers"

    __table_args__ = (
        Index("idx_supplier_business", "business_id"),
    )

    business_id: Mapped[UUID] = mapped_column()
    name: Mapped[str] = mapped_column(String(200))
    contact_person: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    tax_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_terms: Mapped[str | None] = mapped_column(String(100), nullable=True)
    credit_limit: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    current_balance: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    rating: Mapped[int | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<Supplier {self.id} {self.name!r}>"


# =============================================================================
# InventoryItem
# =============================================================================

class InventoryItem(TrackedBase):
    """
    A stocked good and its projected stock level.

    Guarantees:
        - current_stock changes only through the Stock Projector, which
          bumps stock_version in the same UPDATE.
        - Never physically deleted; is_available=False soft-disables it.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        Index("idx_inv_item_business", "business_id"),
        Index("idx_inv_item_category", "category_id"),
        Index("idx_inv_item_sku", "business_id", "sku"),
        Index("idx_inv_item_expiry", "expiry_date"),
    )

    business_id: Mapped[UUID] = mapped_column()
    category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("inventory_categories.id"), nullable=True,
    )
    supplier_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("suppliers.id"), nullable=True,
    )

    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True)
    barcode: Mapped[str | None] = mapped_column(String(100), nullable=True)
    unit_of_measure: Mapped[str] = mapped_column(String(20))

    # Stock projection
    current_stock: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    stock_version: Mapped[int] = mapped_column(default=0)

    # Thresholds
    minimum_stock: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    maximum_stock: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    reorder_point: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    reorder_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    # Pricing
    unit_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    selling_price: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_perishable: Mapped[bool] = mapped_column(Boolean, default=False)
    is_alcoholic: Mapped[bool] = mapped_column(Boolean, default=False)
    is_ingredient: Mapped[bool] = mapped_column(Boolean, default=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    category: Mapped[InventoryCategory | None] = relationship()
    supplier: Mapped[Supplier | None] = relationship()

    def __repr__(self) -> str:
        return (
            f"<InventoryItem {self.id} {self.name!r} "
            f"stock={self.current_stock} v{self.stock_version}>"
        )


# =============================================================================
# InventoryTransaction
# =============================================================================

class InventoryTransaction(TrackedBase):
    """
    One immutable ledger entry.

    Guarantees:
        - new_stock == previous_stock + stock_delta.
        - quantity == abs(stock_delta) and quantity > 0.
        - total_cost == quantity * unit_cost.
        - item_version is the item's stock_version after this entry, so
          ordering by it replays the ledger in application order.
    """

    __tablename__ = "inventory_transactions"

    __table_args__ = (
        UniqueConstraint("item_id", "item_version", name="uq_inv_txn_item_version"),
        Index("idx_inv_txn_business", "business_id"),
        Index("idx_inv_txn_item", "item_id"),
        Index("idx_inv_txn_type", "transaction_type"),
        Index("idx_inv_txn_date", "transaction_date"),
    )

    business_id: Mapped[UUID] = mapped_column()
    item_id: Mapped[UUID] = mapped_column(ForeignKey("inventory_items.id"))
    transaction_type: Mapped[str] = mapped_column(String(50))

    quantity: Mapped[Decimal] = mapped_column()
    unit_cost: Mapped[Decimal] = mapped_column()
    total_cost: Mapped[Decimal] = mapped_column()

    previous_stock: Mapped[Decimal] = mapped_column()
    new_stock: Mapped[Decimal] = mapped_column()
    stock_delta: Mapped[Decimal] = mapped_column()
    item_version: Mapped[int] = mapped_column()

    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    supplier_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("suppliers.id"), nullable=True,
    )
    order_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    staff_id: Mapped[UUID | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    transaction_date: Mapped[datetime] = mapped_column()

    item: Mapped[InventoryItem] = relationship()

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction {self.id} {self.transaction_type} "
            f"{self.previous_stock}->{self.new_stock}>"
        )


# =============================================================================
# InventoryAlert
# =============================================================================

class InventoryAlert(TrackedBase):
    """
    A derived alert fact about an item.

    Guarantees:
        - trigger_key names the item state that raised the alert.
        - Resolution is one-way: once is_resolved is True, no field except
          audit metadata may change.
    """

    __tablename__ = "inventory_alerts"

    __table_args__ = (
        Index("idx_inv_alert_business", "business_id"),
        Index("idx_inv_alert_item_type", "item_id", "alert_type"),
        Index("idx_inv_alert_resolved", "is_resolved"),
    )

    business_id: Mapped[UUID] = mapped_column()
    item_id: Mapped[UUID] = mapped_column(ForeignKey("inventory_items.id"))
    alert_type: Mapped[str] = mapped_column(String(50))
    severity: Mapped[str] = mapped_column(String(20))
    message: Mapped[str] = mapped_column(Text)
    trigger_key: Mapped[str] = mapped_column(String(100))

    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False)
    resolved_by: Mapped[UUID | None] = mapped_column(nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    item: Mapped[InventoryItem] = relationship()

    def __repr__(self) -> str:
        return (
            f"<InventoryAlert {self.id} {self.alert_type}/{self.severity} "
            f"resolved={self.is_resolved}>"
        )
