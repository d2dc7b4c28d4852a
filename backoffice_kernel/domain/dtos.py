"""
DTOs -- immutable records that cross the kernel boundary.

Responsibility:
    Frozen dataclasses returned by services and selectors: categories,
    suppliers, items, ledger entries, alerts, staff and documents, plus the
    generic ``Page`` and the dashboard aggregates.

Architecture position:
    Kernel > Domain.  Free of database access.  ``from_model()`` class
    methods are boundary converters called only from services/selectors.

Invariants enforced:
    - Callers never receive ORM instances, so nothing outside the kernel
      can mutate a row by accident.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Generic, TypeVar
from uuid import UUID

if TYPE_CHECKING:
    from backoffice_kernel.models.inventory import (
        InventoryAlert,
        InventoryCategory,
        InventoryItem,
        InventoryTransaction,
        Supplier,
    )
    from backoffice_kernel.models.staff import StaffDocument, StaffMember

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a listing.  ``page`` is 1-based."""

    data: tuple[T, ...]
    count: int
    page: int
    per_page: int

    @property
    def total_pages(self) -> int:
        if self.per_page <= 0:
            return 0
        return math.ceil(self.count / self.per_page)


@dataclass(frozen=True)
class CategoryRecord:
    id: UUID
    business_id: UUID
    name: str
    description: str | None
    parent_category_id: UUID | None
    category_type: str
    is_active: bool

    @classmethod
    def from_model(cls, model: InventoryCategory) -> CategoryRecord:
        return cls(
            id=model.id,
            business_id=model.business_id,
            name=model.name,
            description=model.description,
            parent_category_id=model.parent_category_id,
            category_type=model.category_type,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class SupplierRecord:
    id: UUID
    business_id: UUID
    name: str
    contact_person: str | None
    email: str | None
    phone: str | None
    address: str | None
    tax_id: str | None
    payment_terms: str | None
    credit_limit: Decimal
    current_balance: Decimal
    rating: int | None
    notes: str | None
    is_active: bool

    @classmethod
    def from_model(cls, model: Supplier) -> SupplierRecord:
        return cls(
            id=model.id,
            business_id=model.business_id,
            name=model.name,
            contact_person=model.contact_person,
            email=model.email,
            phone=model.phone,
            address=model.address,
            tax_id=model.tax_id,
            payment_terms=model.payment_terms,
            credit_limit=model.credit_limit,
            current_balance=model.current_balance,
            rating=model.rating,
            notes=model.notes,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class ItemRecord:
    id: UUID
    business_id: UUID
    category_id: UUID | None
    supplier_id: UUID | None
    name: str
    description: str | None
    sku: str | None
    barcode: str | None
    unit_of_measure: str
    current_stock: Decimal
    stock_version: int
    minimum_stock: Decimal
    maximum_stock: Decimal
    reorder_point: Decimal
    reorder_quantity: Decimal
    unit_cost: Decimal
    selling_price: Decimal
    expiry_date: date | None
    location: str | None
    is_perishable: bool
    is_alcoholic: bool
    is_ingredient: bool
    is_available: bool
    notes: str | None

    @classmethod
    def from_model(cls, model: InventoryItem) -> ItemRecord:
        return cls(
            id=model.id,
            business_id=model.business_id,
            category_id=model.category_id,
            supplier_id=model.supplier_id,
            name=model.name,
            description=model.description,
            sku=model.sku,
            barcode=model.barcode,
            unit_of_measure=model.unit_of_measure,
            current_stock=model.current_stock,
            stock_version=model.stock_version,
            minimum_stock=model.minimum_stock,
            maximum_stock=model.maximum_stock,
            reorder_point=model.reorder_point,
            reorder_quantity=model.reorder_quantity,
            unit_cost=model.unit_cost,
            selling_price=model.selling_price,
            expiry_date=model.expiry_date,
            location=model.location,
            is_perishable=model.is_perishable,
            is_alcoholic=model.is_alcoholic,
            is_ingredient=model.is_ingredient,
            is_available=model.is_available,
            notes=model.notes,
        )


@dataclass(frozen=True)
class TransactionRecord:
    id: UUID
    business_id: UUID
    item_id: UUID
    transaction_type: str
    quantity: Decimal
    unit_cost: Decimal
    total_cost: Decimal
    previous_stock: Decimal
    new_stock: Decimal
    stock_delta: Decimal
    item_version: int
    reference_number: str | None
    supplier_id: UUID | None
    order_id: str | None
    staff_id: UUID | None
    notes: str | None
    transaction_date: datetime
    created_by_id: UUID | None

    @classmethod
    def from_model(cls, model: InventoryTransaction) -> TransactionRecord:
        return cls(
            id=model.id,
            business_id=model.business_id,
            item_id=model.item_id,
            transaction_type=model.transaction_type,
            quantity=model.quantity,
            unit_cost=model.unit_cost,
            total_cost=model.total_cost,
            previous_stock=model.previous_stock,
            new_stock=model.new_stock,
            stock_delta=model.stock_delta,
            item_version=model.item_version,
            reference_number=model.reference_number,
            supplier_id=model.supplier_id,
            order_id=model.order_id,
            staff_id=model.staff_id,
            notes=model.notes,
            transaction_date=model.transaction_date,
            created_by_id=model.created_by_id,
        )


@dataclass(frozen=True)
class AlertRecord:
    id: UUID
    business_id: UUID
    item_id: UUID
    alert_type: str
    severity: str
    message: str
    trigger_key: str
    is_resolved: bool
    resolved_by: UUID | None
    resolved_at: datetime | None
    created_at: datetime

    @classmethod
    def from_model(cls, model: InventoryAlert) -> AlertRecord:
        return cls(
            id=model.id,
            business_id=model.business_id,
            item_id=model.item_id,
            alert_type=model.alert_type,
            severity=model.severity,
            message=model.message,
            trigger_key=model.trigger_key,
            is_resolved=model.is_resolved,
            resolved_by=model.resolved_by,
            resolved_at=model.resolved_at,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class InventoryStats:
    """Dashboard summary for one business."""

    total_items: int
    low_stock_items: int
    expiring_items: int
    active_alerts: int
    total_value: Decimal


@dataclass(frozen=True)
class ValuationLine:
    item_id: UUID
    name: str
    current_stock: Decimal
    unit_cost: Decimal
    value: Decimal


@dataclass(frozen=True)
class InventoryValuation:
    lines: tuple[ValuationLine, ...]
    total_value: Decimal


@dataclass(frozen=True)
class StockVerification:
    """Stored projection versus the stock implied by the ledger."""

    item_id: UUID
    stored_stock: Decimal
    ledger_stock: Decimal
    transaction_count: int

    @property
    def is_consistent(self) -> bool:
        return self.stored_stock == self.ledger_stock


@dataclass(frozen=True)
class StaffMemberRecord:
    id: UUID
    business_id: UUID
    first_name: str
    last_name: str
    email: str | None
    role: str | None
    is_active: bool

    @classmethod
    def from_model(cls, model: StaffMember) -> StaffMemberRecord:
        return cls(
            id=model.id,
            business_id=model.business_id,
            first_name=model.first_name,
            last_name=model.last_name,
            email=model.email,
            role=model.role,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class StaffDocumentRecord:
    id: UUID
    staff_id: UUID
    business_id: UUID
    uploaded_by: UUID | None
    document_type: str
    document_name: str
    file_path: str
    file_size: int | None
    mime_type: str | None
    expiration_date: date | None
    is_required: bool
    notes: str | None
    created_at: datetime

    @classmethod
    def from_model(cls, model: StaffDocument) -> StaffDocumentRecord:
        return cls(
            id=model.id,
            staff_id=model.staff_id,
            business_id=model.business_id,
            uploaded_by=model.uploaded_by,
            document_type=model.document_type,
            document_name=model.document_name,
            file_path=model.file_path,
            file_size=model.file_size,
            mime_type=model.mime_type,
            expiration_date=model.expiration_date,
            is_required=model.is_required,
            notes=model.notes,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class DocumentTypeStatistics:
    total: int
    expired: int
    expiring_soon: int
