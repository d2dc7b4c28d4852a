"""
Tests for StaffDocumentService: uploads, document metadata, expiry reads
and compliance status.
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from backoffice_config.schema import CompliancePolicy
from backoffice_kernel.domain.compliance import ComplianceStatus, DocumentType
from backoffice_kernel.exceptions import (
    BusinessMismatchError,
    DocumentNotFoundError,
    DocumentStorageError,
    FilePathOwnershipError,
    InvalidDocumentDataError,
    PersistenceError,
    StaffNotFoundError,
    ValidationError,
)
from backoffice_modules.staff import StaffDocumentService


@pytest.fixture
def upload(staff_documents, business_id, test_actor_id, deterministic_clock):
    """Upload a small PDF; the clock moves one second per upload."""

    def _upload(staff, document_type="contract", expires_in_days=None, **kwargs):
        deterministic_clock.advance(1)
        expiration = None
        if expires_in_days is not None:
            expiration = deterministic_clock.today() + timedelta(days=expires_in_days)
        return staff_documents.upload_document(
            staff.id,
            business_id,
            test_actor_id,
            document_type,
            kwargs.pop("filename", "scan.pdf"),
            kwargs.pop("content", b"%PDF-1.4"),
            expiration_date=expiration,
            **kwargs,
        )

    return _upload


class TestStaffDirectory:

    def test_add_and_get(self, staff_documents, make_staff, business_id):
        staff = make_staff()
        assert staff_documents.get_staff_member(business_id, staff.id).first_name == "Ana"

    def test_blank_name(self, make_staff):
        with pytest.raises(InvalidDocumentDataError):
            make_staff(first_name=" ")

    def test_other_business(self, staff_documents, make_staff, other_business_id):
        staff = make_staff()
        with pytest.raises(BusinessMismatchError):
            staff_documents.get_staff_member(other_business_id, staff.id)


class TestUpload:

    def test_stores_file_and_record(self, upload, make_staff, document_storage, business_id):
        staff = make_staff()
        document = upload(staff, filename="../../contract.pdf", mime_type="application/pdf")

        assert document.document_name == "contract.pdf"
        assert document.file_path.startswith(f"staff-documents/{business_id}/{staff.id}_contract_")
        assert document.file_path.endswith(".pdf")
        assert document.file_size == len(b"%PDF-1.4")
        assert document.is_required is True
        assert document_storage.exists(document.file_path)

    def test_optional_type_not_required_by_default(self, upload, make_staff):
        document = upload(make_staff(), document_type="certification")
        assert document.is_required is False

    def test_rejects_unknown_type(self, upload, make_staff):
        with pytest.raises(InvalidDocumentDataError):
            upload(make_staff(), document_type="passport")

    def test_rejects_empty_content(self, upload, make_staff):
        with pytest.raises(InvalidDocumentDataError):
            upload(make_staff(), content=b"")

    def test_rejects_name_that_sanitizes_to_nothing(self, upload, make_staff):
        with pytest.raises(InvalidDocumentDataError):
            upload(make_staff(), filename="../..//")

    def test_unknown_staff_stores_nothing(
        self, staff_documents, business_id, test_actor_id, tmp_path,
    ):
        with pytest.raises(StaffNotFoundError):
            staff_documents.upload_document(
                uuid4(), business_id, test_actor_id, "contract", "a.pdf", b"x",
            )
        assert not (tmp_path / "files").exists()

    def test_failed_insert_removes_file(
        self, session, deterministic_clock, document_storage, make_staff,
        business_id, test_actor_id, monkeypatch,
    ):
        staff = make_staff()
        service = StaffDocumentService(session, document_storage, deterministic_clock)

        def _fail(**kwargs):
            raise RuntimeError("insert failed")

        monkeypatch.setattr(service, "_insert_document", _fail)
        with pytest.raises(RuntimeError):
            service.upload_document(staff.id, business_id, test_actor_id, "contract", "a.pdf", b"x")

        saved = list((document_storage.base_dir).rglob("*.pdf"))
        assert saved == []

    @pytest.mark.parametrize("operation", ["upload_document", "create_document"])
    def test_staff_lookup_failure_is_a_persistence_error(
        self, staff_documents, make_staff, document_storage, business_id, test_actor_id,
        monkeypatch, operation,
    ):
        staff = make_staff()

        def _unavailable(*args):
            raise OperationalError("SELECT staff_members", {}, Exception("database is locked"))

        monkeypatch.setattr(staff_documents._selector, "owned_staff", _unavailable)
        with pytest.raises(PersistenceError) as exc_info:
            if operation == "upload_document":
                staff_documents.upload_document(
                    staff.id, business_id, test_actor_id, "contract", "a.pdf", b"x",
                )
            else:
                staff_documents.create_document(
                    staff.id, business_id, test_actor_id, "contract", "a.pdf",
                    f"staff-documents/{business_id}/{staff.id}_contract_1.pdf",
                )
        assert exc_info.value.operation == operation
        assert list(document_storage.base_dir.rglob("*.pdf")) == []

    def test_custom_storage_root(self, session, deterministic_clock, document_storage, business_id, test_actor_id):
        service = StaffDocumentService(
            session, document_storage, deterministic_clock,
            policy=CompliancePolicy(storage_root="vault"),
        )
        staff = service.add_staff_member(business_id, "Li", "Wei")
        document = service.upload_document(staff.id, business_id, test_actor_id, "contract", "a.pdf", b"x")
        assert document.file_path.startswith(f"vault/{business_id}/")


class TestCreateDocument:

    def test_requires_own_path(self, staff_documents, make_staff, business_id, other_business_id, test_actor_id):
        staff = make_staff()
        with pytest.raises(FilePathOwnershipError):
            staff_documents.create_document(
                staff.id, business_id, test_actor_id, "contract", "Contract",
                f"staff-documents/{other_business_id}/x_contract_1.pdf",
            )

    def test_creates_record(self, staff_documents, make_staff, business_id, test_actor_id):
        staff = make_staff()
        document = staff_documents.create_document(
            staff.id, business_id, test_actor_id, "id_document", "Passport",
            f"staff-documents/{business_id}/{staff.id}_id_document_1.jpg",
            file_size=2048, is_required=True,
        )
        assert staff_documents.get_document(business_id, document.id).document_name == "Passport"

    def test_negative_size(self, staff_documents, make_staff, business_id, test_actor_id):
        staff = make_staff()
        with pytest.raises(InvalidDocumentDataError):
            staff_documents.create_document(
                staff.id, business_id, test_actor_id, "contract", "Contract",
                f"staff-documents/{business_id}/a.pdf", file_size=-1,
            )


class TestUpdateAndDelete:

    def test_update_metadata(self, staff_documents, upload, make_staff, business_id, deterministic_clock):
        document = upload(make_staff(), expires_in_days=10, notes="first")
        new_date = deterministic_clock.today() + timedelta(days=400)

        updated = staff_documents.update_document(
            business_id, document.id, document_name="Signed contract", expiration_date=new_date,
        )
        assert updated.document_name == "Signed contract"
        assert updated.expiration_date == new_date
        assert updated.notes == "first"

        cleared = staff_documents.update_document(business_id, document.id, expiration_date=None)
        assert cleared.expiration_date is None

    def test_update_other_business(self, staff_documents, upload, make_staff, other_business_id):
        document = upload(make_staff())
        with pytest.raises(BusinessMismatchError):
            staff_documents.update_document(other_business_id, document.id, notes="x")

    def test_delete_removes_record_and_file(
        self, staff_documents, upload, make_staff, business_id, document_storage,
    ):
        document = upload(make_staff())
        staff_documents.delete_document(business_id, document.id)

        assert not document_storage.exists(document.file_path)
        with pytest.raises(DocumentNotFoundError):
            staff_documents.get_document(business_id, document.id)

    def test_delete_survives_storage_failure(
        self, staff_documents, upload, make_staff, business_id, document_storage,
        monkeypatch, captured_logs,
    ):
        document = upload(make_staff())

        def _broken(file_path):
            raise DocumentStorageError(file_path, "disk unavailable")

        monkeypatch.setattr(document_storage, "delete", _broken)
        staff_documents.delete_document(business_id, document.id)

        with pytest.raises(DocumentNotFoundError):
            staff_documents.get_document(business_id, document.id)
        assert any(r["message"] == "document_file_delete_failed" for r in captured_logs())

    def test_bulk_update_skips_foreign_and_unknown(
        self, staff_documents, upload, make_staff, business_id, other_business_id,
        test_actor_id, deterministic_clock, captured_logs,
    ):
        ours = make_staff()
        first = upload(ours)
        second = upload(ours, document_type="id_document")
        theirs = make_staff(business=other_business_id)
        foreign = staff_documents.upload_document(
            theirs.id, other_business_id, test_actor_id, "contract", "b.pdf", b"x",
        )
        new_date = deterministic_clock.today() + timedelta(days=90)

        updated = staff_documents.bulk_update_document_expirations(
            business_id,
            {first.id: new_date, second.id: None, foreign.id: new_date, uuid4(): new_date},
        )
        assert updated == 2
        assert staff_documents.get_document(business_id, first.id).expiration_date == new_date
        assert staff_documents.get_document(other_business_id, foreign.id).expiration_date is None
        skipped = [r for r in captured_logs() if r["message"] == "document_expiration_update_skipped"]
        assert sorted(r["reason"] for r in skipped) == ["BUSINESS_MISMATCH", "DOCUMENT_NOT_FOUND"]


class TestExpiryReads:

    def test_expired_and_expiring_lists(self, staff_documents, upload, make_staff, business_id):
        staff = make_staff()
        upload(staff, "contract", expires_in_days=-5)
        upload(staff, "id_document", expires_in_days=0)
        upload(staff, "certification", expires_in_days=25)
        upload(staff, "training_record", expires_in_days=45)
        upload(staff, "other")

        expired = staff_documents.get_expired_documents(business_id, staff.id)
        soon = staff_documents.get_documents_expiring_soon(business_id, staff.id)
        assert [d.document_type for d in expired] == ["contract"]
        assert [d.document_type for d in soon] == ["id_document", "certification"]
        assert len(staff_documents.get_documents_expiring_soon(business_id, staff.id, days_ahead=60)) == 3

    def test_statistics_by_type(self, staff_documents, upload, make_staff, business_id):
        first, second = make_staff(), make_staff("Bo", "Chen")
        upload(first, "contract", expires_in_days=-1)
        upload(second, "contract", expires_in_days=12)
        upload(second, "id_document")

        stats = staff_documents.get_document_statistics_by_type(business_id)
        assert set(stats) == set(DocumentType)
        assert (stats[DocumentType.CONTRACT].total, stats[DocumentType.CONTRACT].expired,
                stats[DocumentType.CONTRACT].expiring_soon) == (2, 1, 1)
        assert stats[DocumentType.ID_DOCUMENT].total == 1
        assert stats[DocumentType.TAX_FORM].total == 0

    def test_list_filters_by_type(self, staff_documents, upload, make_staff, business_id):
        staff = make_staff()
        upload(staff, "contract")
        upload(staff, "tax_form")

        assert len(staff_documents.list_staff_documents(business_id, staff.id)) == 2
        tax = staff_documents.list_staff_documents(business_id, staff.id, "tax_form")
        assert [d.document_type for d in tax] == ["tax_form"]
        assert len(staff_documents.list_business_documents(business_id, "contract")) == 1

    def test_unknown_type_filter(self, staff_documents, make_staff, business_id):
        staff = make_staff()
        with pytest.raises(ValidationError) as exc_info:
            staff_documents.list_staff_documents(business_id, staff.id, "passport")
        assert exc_info.value.field == "document_type"
        with pytest.raises(InvalidDocumentDataError):
            staff_documents.list_business_documents(business_id, "passport")


class TestCompliance:

    def test_staff_status(self, staff_documents, upload, make_staff, business_id):
        staff = make_staff()
        upload(staff, "contract", expires_in_days=10)

        status = staff_documents.get_staff_compliance_status(staff.id, business_id)
        assert status.status is ComplianceStatus.NON_COMPLIANT
        assert status.missing_required_types == (DocumentType.ID_DOCUMENT,)

        upload(staff, "id_document")
        status = staff_documents.get_staff_compliance_status(staff.id, business_id)
        assert status.status is ComplianceStatus.NEEDS_ATTENTION

    def test_status_follows_the_clock(
        self, staff_documents, upload, make_staff, business_id, deterministic_clock,
    ):
        staff = make_staff()
        upload(staff, "contract", expires_in_days=60)
        upload(staff, "id_document")
        assert staff_documents.get_staff_compliance_status(staff.id, business_id).status is (
            ComplianceStatus.COMPLIANT
        )

        deterministic_clock.advance_days(61)
        assert staff_documents.get_staff_compliance_status(staff.id, business_id).status is (
            ComplianceStatus.NON_COMPLIANT
        )

    def test_overview_without_staff(self, staff_documents, business_id, captured_logs):
        overview = staff_documents.get_business_compliance_overview(business_id)
        assert overview.total_staff == 0
        assert overview.compliance_percentage == Decimal("100.00")
        assert any(r["message"] == "compliance_overview_computed" for r in captured_logs())

    def test_overview_counts_active_staff(self, staff_documents, upload, make_staff, business_id):
        good, missing, gone = make_staff("A", "A"), make_staff("B", "B"), make_staff("C", "C")
        upload(good, "contract")
        upload(good, "id_document")
        upload(missing, "contract")
        staff_documents.deactivate_staff_member(business_id, gone.id)

        overview = staff_documents.get_business_compliance_overview(business_id)
        assert overview.total_staff == 2
        assert overview.compliant_staff == 1
        assert overview.non_compliant_staff == 1
        assert overview.compliance_percentage == Decimal("50.00")
