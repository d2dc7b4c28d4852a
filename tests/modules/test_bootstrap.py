"""
Tests for the composition root: configuration in, guarded engine and
configured facades out.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from backoffice_config.schema import (
    BackofficeConfig,
    CompliancePolicy,
    DatabaseSettings,
    InventoryPolicy,
)
from backoffice_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from backoffice_kernel.db.immutability import unregister_immutability_listeners
from backoffice_kernel.exceptions import ImmutabilityViolationError
from backoffice_kernel.models.inventory import InventoryItem, InventoryTransaction
from backoffice_modules.bootstrap import build_backoffice
from backoffice_modules.inventory import InventoryService


@pytest.fixture
def backoffice(tmp_path, deterministic_clock):
    reset_engine()
    config = BackofficeConfig(
        config_id="bootstrap-test",
        version=1,
        database=DatabaseSettings(url=f"sqlite:///{tmp_path / 'bootstrap.db'}"),
        inventory=InventoryPolicy(default_page_size=2),
        compliance=CompliancePolicy(storage_root="vault"),
    )
    backoffice = build_backoffice(
        config, document_root=tmp_path / "files", clock=deterministic_clock,
    )
    yield backoffice
    unregister_immutability_listeners()
    drop_tables()
    reset_engine()


@pytest.fixture
def flour(backoffice, business_id):
    with backoffice.session() as session:
        return backoffice.inventory(session).add_item(
            business_id, "Flour", "kg", minimum_stock=1, unit_cost="0.90", opening_stock=5,
        )


class TestBuildBackoffice:

    def test_uses_configured_database(self, backoffice):
        assert get_engine() is backoffice.engine
        assert backoffice.engine.dialect.name == "sqlite"
        assert backoffice.engine.url.database.endswith("bootstrap.db")

    def test_ledger_rows_cannot_be_deleted(self, backoffice, flour, business_id):
        with pytest.raises(ImmutabilityViolationError):
            with session_scope() as session:
                session.delete(session.scalars(select(InventoryTransaction)).one())

        with backoffice.session() as session:
            verification = backoffice.inventory(session).verify_stock(business_id, flour.id)
        assert verification.is_consistent
        assert verification.transaction_count == 1

    def test_ledger_rows_cannot_be_edited(self, backoffice, flour):
        with pytest.raises(ImmutabilityViolationError):
            with session_scope() as session:
                row = session.scalars(select(InventoryTransaction)).one()
                row.new_stock = Decimal("500")

    def test_items_cannot_be_deleted(self, backoffice, flour):
        with pytest.raises(ImmutabilityViolationError):
            with session_scope() as session:
                session.delete(session.get(InventoryItem, flour.id))

    def test_inventory_uses_configured_policy(self, backoffice, business_id):
        with backoffice.session() as session:
            inventory = backoffice.inventory(session)
            for name in ("A", "B", "C"):
                inventory.add_item(business_id, name, "kg", opening_stock=5)
            page = inventory.list_items(business_id)
        assert page.per_page == 2
        assert [i.name for i in page.data] == ["A", "B"]

    def test_staff_documents_use_configured_storage(
        self, backoffice, business_id, test_actor_id, tmp_path,
    ):
        with backoffice.session() as session:
            staff_documents = backoffice.staff_documents(session)
            staff = staff_documents.add_staff_member(business_id, "Ana", "Lopez")
            document = staff_documents.upload_document(
                staff.id, business_id, test_actor_id, "contract", "contract.pdf", b"%PDF",
            )
        assert document.file_path.startswith(f"vault/{business_id}/")
        assert (tmp_path / "files" / document.file_path).read_bytes() == b"%PDF"

    def test_logs_readiness(self, tmp_path, captured_logs):
        reset_engine()
        config = BackofficeConfig(
            config_id="logged",
            version=1,
            database=DatabaseSettings(url=f"sqlite:///{tmp_path / 'logged.db'}"),
            inventory=InventoryPolicy(),
            compliance=CompliancePolicy(),
        )
        build_backoffice(config, document_root=tmp_path)
        try:
            ready = [r for r in captured_logs() if r["message"] == "backoffice_ready"]
            assert ready[0]["config_id"] == "logged"
        finally:
            unregister_immutability_listeners()
            reset_engine()


class TestInitEngineGuards:

    def test_init_engine_registers_append_only_guards(self, tmp_path, business_id, deterministic_clock):
        reset_engine()
        init_engine_from_url(f"sqlite:///{tmp_path / 'guarded.db'}")
        try:
            create_tables()
            with session_scope() as session:
                InventoryService(session, deterministic_clock).add_item(
                    business_id, "Salt", "kg", opening_stock=2,
                )
            with pytest.raises(ImmutabilityViolationError):
                with session_scope() as session:
                    session.delete(session.scalars(select(InventoryTransaction)).one())
        finally:
            unregister_immutability_listeners()
            drop_tables()
            reset_engine()


class TestSessions:

    def test_read_session_releases_the_sqlite_lock(self, backoffice, flour, business_id):
        with backoffice.session() as session:
            assert backoffice.inventory(session).get_inventory_stats(business_id).total_items == 1

        with session_scope() as writer:
            writer.get(InventoryItem, flour.id).location = "Pantry"

        with backoffice.session() as session:
            assert backoffice.inventory(session).get_item(business_id, flour.id).location == "Pantry"
