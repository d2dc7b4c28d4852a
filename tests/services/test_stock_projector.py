"""
Tests for LedgerEntryValidator and StockProjector.

Verifies:
- previous_stock/new_stock bookkeeping on every ledger row
- stock_version and item_version advance together
- validation failures write nothing
- cross-business access is rejected
- the stock_version compare-and-set retries, then gives up
"""

from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy import select

from backoffice_kernel.domain.ledger_entry import LedgerEntryRequest, TransactionType
from backoffice_kernel.exceptions import (
    AdjustmentDeltaRequiredError,
    BusinessMismatchError,
    InvalidQuantityError,
    ItemNotFoundError,
    StockUpdateConflictError,
)
from backoffice_kernel.models.inventory import InventoryItem, InventoryTransaction
from backoffice_kernel.services.ledger_entry_validator import LedgerEntryValidator
from backoffice_kernel.services.stock_projector import StockProjector


@pytest.fixture
def item(session, business_id, deterministic_clock):
    now = deterministic_clock.now()
    row = InventoryItem(
        business_id=business_id,
        name="Flour",
        unit_of_measure="kg",
        current_stock=Decimal("10"),
        stock_version=0,
        minimum_stock=Decimal("2"),
        unit_cost=Decimal("0.80"),
        created_at=now,
        updated_at=now,
    )
    session.add(row)
    session.commit()
    return row


@pytest.fixture
def validator(session, deterministic_clock):
    return LedgerEntryValidator(session, deterministic_clock)


@pytest.fixture
def projector(session, deterministic_clock):
    return StockProjector(session, deterministic_clock)


def _apply(validator, projector, business_id, item_id, transaction_type, quantity=None, **kwargs):
    entry = validator.validate(
        business_id,
        LedgerEntryRequest(
            item_id=item_id, transaction_type=transaction_type, quantity=quantity, **kwargs,
        ),
    )
    return projector.apply(entry)


class TestStockProjector:

    def test_purchase_then_sale(self, session, validator, projector, business_id, item):
        purchase = _apply(validator, projector, business_id, item.id, "purchase", 5)
        session.commit()
        assert purchase.previous_stock == Decimal("10")
        assert purchase.new_stock == Decimal("15")
        assert purchase.stock_delta == Decimal("5")

        sale = _apply(validator, projector, business_id, item.id, "sale", 3)
        session.commit()
        assert sale.previous_stock == Decimal("15")
        assert sale.new_stock == Decimal("12")
        assert sale.stock_delta == Decimal("-3")

        session.refresh(item)
        assert item.current_stock == Decimal("12")
        assert item.stock_version == 2
        assert [purchase.item_version, sale.item_version] == [1, 2]

    def test_unit_cost_defaults_to_item_cost(self, session, validator, projector, business_id, item):
        txn = _apply(validator, projector, business_id, item.id, "waste", 2)
        assert txn.unit_cost == Decimal("0.80")
        assert txn.total_cost == Decimal("1.60")

    def test_explicit_unit_cost(self, session, validator, projector, business_id, item):
        txn = _apply(validator, projector, business_id, item.id, "purchase", 4, unit_cost="1.25")
        assert txn.unit_cost == Decimal("1.25")
        assert txn.total_cost == Decimal("5.00")

    def test_stock_may_go_negative(self, session, validator, projector, business_id, item):
        txn = _apply(validator, projector, business_id, item.id, "sale", 12)
        assert txn.new_stock == Decimal("-2")

    def test_adjustment_uses_signed_delta(self, session, validator, projector, business_id, item):
        txn = _apply(
            validator, projector, business_id, item.id, "adjustment", adjustment_delta="-1.5",
        )
        assert txn.transaction_type == TransactionType.ADJUSTMENT.value
        assert txn.quantity == Decimal("1.5")
        assert txn.new_stock == Decimal("8.5")

    def test_cached_item_sees_new_stock(self, session, validator, projector, business_id, item):
        _apply(validator, projector, business_id, item.id, "purchase", 1)
        assert session.get(InventoryItem, item.id).current_stock == Decimal("11")

    def test_logs_applied_transaction(self, session, validator, projector, business_id, item, captured_logs):
        _apply(validator, projector, business_id, item.id, "sale", 1)
        applied = [r for r in captured_logs() if r["message"] == "stock_transaction_applied"]
        assert len(applied) == 1
        assert Decimal(applied[0]["previous_stock"]) == Decimal("10")
        assert Decimal(applied[0]["new_stock"]) == Decimal("9")


def _stale_reads(projector, monkeypatch, times):
    """Make the first ``times`` locked reads report the previous stock_version."""
    read = projector._read_locked
    versions = []

    def stale_read(item_id):
        row = read(item_id)
        versions.append(row.stock_version)
        if len(versions) > times:
            return row
        values = row._asdict()
        values["stock_version"] -= 1
        return SimpleNamespace(**values)

    monkeypatch.setattr(projector, "_read_locked", stale_read)
    return versions


class TestCompareAndSetRetry:

    def test_retries_after_a_stale_read(
        self, session, validator, projector, business_id, item, monkeypatch, captured_logs,
    ):
        versions = _stale_reads(projector, monkeypatch, times=1)

        txn = _apply(validator, projector, business_id, item.id, "sale", 4)
        session.commit()

        assert len(versions) == 2
        assert txn.previous_stock == Decimal("10")
        assert txn.new_stock == Decimal("6")
        assert txn.item_version == 1
        session.refresh(item)
        assert item.current_stock == Decimal("6")
        assert item.stock_version == 1

        retries = [r for r in captured_logs() if r["message"] == "stock_update_conflict_retry"]
        assert len(retries) == 1
        assert retries[0]["attempt"] == 1

    def test_gives_up_after_max_retries(
        self, session, validator, deterministic_clock, business_id, item, monkeypatch, captured_logs,
    ):
        projector = StockProjector(session, deterministic_clock, max_retries=3)
        versions = _stale_reads(projector, monkeypatch, times=100)

        with pytest.raises(StockUpdateConflictError) as exc_info:
            _apply(validator, projector, business_id, item.id, "sale", 4)
        session.rollback()

        assert exc_info.value.attempts == 3
        assert exc_info.value.code == "STOCK_UPDATE_CONFLICT"
        assert len(versions) == 3
        assert session.scalars(select(InventoryTransaction)).all() == []
        session.refresh(item)
        assert item.current_stock == Decimal("10")
        assert item.stock_version == 0
        assert "stock_update_conflict_exhausted" in [r["message"] for r in captured_logs()]


class TestLedgerEntryValidator:

    def test_invalid_quantity_writes_nothing(self, session, validator, business_id, item, captured_logs):
        with pytest.raises(InvalidQuantityError):
            validator.validate(
                business_id,
                LedgerEntryRequest(item_id=item.id, transaction_type="sale", quantity=0),
            )
        assert session.scalars(select(InventoryTransaction)).all() == []
        rejected = [r for r in captured_logs() if r["message"] == "ledger_entry_rejected"]
        assert rejected[0]["reason"] == "INVALID_QUANTITY"

    def test_adjustment_without_delta(self, validator, business_id, item):
        with pytest.raises(AdjustmentDeltaRequiredError):
            validator.validate(
                business_id,
                LedgerEntryRequest(item_id=item.id, transaction_type="adjustment", quantity=2),
            )

    def test_unknown_item(self, validator, business_id):
        with pytest.raises(ItemNotFoundError):
            validator.validate(
                business_id,
                LedgerEntryRequest(item_id=uuid4(), transaction_type="sale", quantity=1),
            )

    def test_other_business_item(self, validator, other_business_id, item):
        with pytest.raises(BusinessMismatchError) as exc_info:
            validator.validate(
                other_business_id,
                LedgerEntryRequest(item_id=item.id, transaction_type="sale", quantity=1),
            )
        assert exc_info.value.code == "BUSINESS_MISMATCH"
