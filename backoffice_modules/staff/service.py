"""
Staff Document Module Service (``backoffice_modules.staff.service``).

Responsibility
--------------
Staff directory, staff document records and their files, and the
compliance reads.  Compliance status itself is computed by
``backoffice_kernel.domain.compliance`` through ``DocumentSelector``.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

1. ``DocumentStorage`` holds the file bytes.
2. ``StaffDocument`` rows hold the metadata and the storage path.
3. ``DocumentSelector`` serves every read, including compliance.

Invariants
----------
- Each public write method owns its transaction boundary.
- Every storage path lives under ``{storage_root}/{business_id}/``.
- The database record is authoritative: a document is deleted once its
  row is deleted, whether or not the file delete succeeds.

Failure Modes
-------------
- ``StaffNotFoundError`` / ``DocumentNotFoundError`` for unknown ids.
- ``BusinessMismatchError`` / ``FilePathOwnershipError`` across businesses.
- ``InvalidDocumentDataError`` for bad metadata.
- ``DocumentStorageError`` when an upload's bytes cannot be written; no
  record is created.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Iterator, Mapping
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backoffice_config.schema import CompliancePolicy
from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.domain.compliance import (
    BusinessComplianceOverview,
    DocumentType,
    StaffComplianceResult,
)
from backoffice_kernel.domain.dtos import (
    DocumentTypeStatistics,
    StaffDocumentRecord,
    StaffMemberRecord,
)
from backoffice_kernel.exceptions import (
    BusinessMismatchError,
    DocumentNotFoundError,
    DocumentStorageError,
    InvalidDocumentDataError,
    PersistenceError,
)
from backoffice_kernel.logging_config import LogContext, get_logger
from backoffice_kernel.models.staff import StaffDocument, StaffMember
from backoffice_kernel.selectors.document_selector import DocumentSelector
from backoffice_modules.staff.storage import (
    DocumentStorage,
    LocalDocumentStorage,
    generate_secure_file_path,
    require_file_path_ownership,
    sanitize_filename,
)

logger = get_logger("modules.staff.service")

_UNSET = object()


def _parse_document_type(value: DocumentType | str) -> DocumentType:
    try:
        return DocumentType(value)
    except ValueError:
        raise InvalidDocumentDataError("document_type", f"unknown type {value!r}") from None


def _parse_type_filter(value: DocumentType | str | None) -> DocumentType | None:
    return None if value is None else _parse_document_type(value)


def _require_text(field: str, value: str | None) -> str:
    if value is None or not value.strip():
        raise InvalidDocumentDataError(field, "is required")
    return value.strip()


class StaffDocumentService:
    """
    Staff documents and compliance.

    Contract
    --------
    Write methods commit on success and roll back on failure.  Read methods
    return frozen DTOs and compliance results.

    Non-goals
    ---------
    - Does NOT serve file downloads; callers read through their storage.
    - Does NOT cache compliance status; it is recomputed on every read.
    """

    def __init__(
        self,
        session: Session,
        storage: DocumentStorage | None = None,
        clock: Clock | None = None,
        policy: CompliancePolicy | None = None,
    ):
        self._session = session
        self._storage = storage or LocalDocumentStorage(Path.cwd())
        self._clock = clock or SystemClock()
        self._policy = policy or CompliancePolicy()
        self._selector = DocumentSelector(
            session,
            self._clock,
            expiring_soon_days=self._policy.expiring_soon_days,
            required_types=self._policy.required_types,
        )

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[None]:
        try:
            yield
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.error(
                "staff_persistence_failed",
                extra={"operation": operation, "error": str(exc)},
            )
            raise PersistenceError(operation, str(exc)) from exc
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Staff directory
    # =========================================================================

    def add_staff_member(
        self,
        business_id: UUID,
        first_name: str,
        last_name: str,
        email: str | None = None,
        role: str | None = None,
        actor_id: UUID | None = None,
    ) -> StaffMemberRecord:
        first_name = _require_text("first_name", first_name)
        last_name = _require_text("last_name", last_name)

        with self._unit_of_work("add_staff_member"):
            now = self._clock.now()
            staff = StaffMember(
                business_id=business_id,
                first_name=first_name,
                last_name=last_name,
                email=email,
                role=role,
                is_active=True,
                created_at=now,
                updated_at=now,
                created_by_id=actor_id,
            )
            self._session.add(staff)
            self._session.flush()
            record = StaffMemberRecord.from_model(staff)

        logger.info("staff_member_added", extra={
            "staff_id": str(record.id),
            "business_id": str(business_id),
        })
        return record

    def deactivate_staff_member(
        self, business_id: UUID, staff_id: UUID, actor_id: UUID | None = None,
    ) -> StaffMemberRecord:
        """Inactive staff keep their documents but drop out of the overview."""
        with self._unit_of_work("deactivate_staff_member"):
            staff = self._selector.owned_staff(business_id, staff_id)
            staff.is_active = False
            staff.updated_at = self._clock.now()
            staff.updated_by_id = actor_id
            self._session.flush()
            record = StaffMemberRecord.from_model(staff)

        logger.info("staff_member_deactivated", extra={"staff_id": str(staff_id)})
        return record

    def get_staff_member(self, business_id: UUID, staff_id: UUID) -> StaffMemberRecord:
        return self._selector.get_staff_member(business_id, staff_id)

    # =========================================================================
    # Documents
    # =========================================================================

    def upload_document(
        self,
        staff_id: UUID,
        business_id: UUID,
        uploaded_by: UUID,
        document_type: DocumentType | str,
        filename: str,
        content: bytes,
        expiration_date: date | None = None,
        is_required: bool | None = None,
        mime_type: str | None = None,
        notes: str | None = None,
    ) -> StaffDocumentRecord:
        """
        Store a file and create its document record.

        ``is_required`` defaults to whether the type is one of the
        configured required document types.

        Postconditions:
            - Bytes stored at a path under the business's storage root.
            - One StaffDocument row; session committed.
            - If the row cannot be committed, the stored file is removed.

        Raises:
            InvalidDocumentDataError, StaffNotFoundError,
            BusinessMismatchError, DocumentStorageError, PersistenceError.
        """
        doc_type = _parse_document_type(document_type)
        document_name = sanitize_filename(filename or "")
        if not document_name:
            raise InvalidDocumentDataError("filename", "is empty after sanitizing")
        if not content:
            raise InvalidDocumentDataError("content", "file is empty")
        if is_required is None:
            is_required = doc_type in self._policy.required_types

        with LogContext.bind(business_id=business_id, actor_id=uploaded_by, staff_id=staff_id):
            with self._unit_of_work("upload_document"):
                self._selector.owned_staff(business_id, staff_id)
            file_path = generate_secure_file_path(
                business_id,
                staff_id,
                doc_type.value,
                document_name,
                self._clock.now(),
                root=self._policy.storage_root,
            )
            self._storage.save(file_path, content)

            try:
                record = self._insert_document(
                    staff_id=staff_id,
                    business_id=business_id,
                    uploaded_by=uploaded_by,
                    document_type=doc_type,
                    document_name=document_name,
                    file_path=file_path,
                    file_size=len(content),
                    mime_type=mime_type,
                    expiration_date=expiration_date,
                    is_required=is_required,
                    notes=notes,
                    operation="upload_document",
                )
            except Exception:
                self._delete_file(file_path)
                raise

        return record

    def create_document(
        self,
        staff_id: UUID,
        business_id: UUID,
        uploaded_by: UUID | None,
        document_type: DocumentType | str,
        document_name: str,
        file_path: str,
        file_size: int | None = None,
        mime_type: str | None = None,
        expiration_date: date | None = None,
        is_required: bool = False,
        notes: str | None = None,
    ) -> StaffDocumentRecord:
        """Create a document record for a file that is already stored."""
        doc_type = _parse_document_type(document_type)
        document_name = _require_text("document_name", document_name)
        require_file_path_ownership(file_path, business_id, self._policy.storage_root)
        if file_size is not None and file_size < 0:
            raise InvalidDocumentDataError("file_size", "cannot be negative")

        return self._insert_document(
            staff_id=staff_id,
            business_id=business_id,
            uploaded_by=uploaded_by,
            document_type=doc_type,
            document_name=document_name,
            file_path=file_path,
            file_size=file_size,
            mime_type=mime_type,
            expiration_date=expiration_date,
            is_required=is_required,
            notes=notes,
            operation="create_document",
        )

    def _insert_document(self, *, document_type: DocumentType, operation: str, **fields) -> StaffDocumentRecord:
        with self._unit_of_work(operation):
            self._selector.owned_staff(fields["business_id"], fields["staff_id"])
            now = self._clock.now()
            document = StaffDocument(
                document_type=document_type.value,
                created_at=now,
                updated_at=now,
                created_by_id=fields["uploaded_by"],
                **fields,
            )
            self._session.add(document)
            self._session.flush()
            record = StaffDocumentRecord.from_model(document)

        logger.info("document_created", extra={
            "document_id": str(record.id),
            "document_type": record.document_type,
            "file_size": record.file_size,
        })
        return record

    def get_document(self, business_id: UUID, document_id: UUID) -> StaffDocumentRecord:
        return self._selector.get_document(business_id, document_id)

    def list_staff_documents(
        self,
        business_id: UUID,
        staff_id: UUID,
        document_type: DocumentType | str | None = None,
    ) -> list[StaffDocumentRecord]:
        return self._selector.list_staff_documents(
            business_id, staff_id, _parse_type_filter(document_type),
        )

    def list_business_documents(
        self,
        business_id: UUID,
        document_type: DocumentType | str | None = None,
        limit: int = 100,
    ) -> list[StaffDocumentRecord]:
        return self._selector.list_business_documents(
            business_id, _parse_type_filter(document_type), limit,
        )

    def update_document(
        self,
        business_id: UUID,
        document_id: UUID,
        *,
        document_name: str | None = None,
        expiration_date: date | None | object = _UNSET,
        is_required: bool | None = None,
        mime_type: str | None = None,
        notes: str | None | object = _UNSET,
        actor_id: UUID | None = None,
    ) -> StaffDocumentRecord:
        """
        Update document metadata.  Omitted fields are left alone;
        ``expiration_date=None`` clears the expiry.  The file path and type
        are fixed once created.
        """
        if document_name is not None:
            document_name = _require_text("document_name", document_name)

        with self._unit_of_work("update_document"):
            document = self._selector.owned_document(business_id, document_id)
            if document_name is not None:
                document.document_name = document_name
            if expiration_date is not _UNSET:
                document.expiration_date = expiration_date
            if is_required is not None:
                document.is_required = is_required
            if mime_type is not None:
                document.mime_type = mime_type
            if notes is not _UNSET:
                document.notes = notes
            document.updated_at = self._clock.now()
            document.updated_by_id = actor_id
            self._session.flush()
            record = StaffDocumentRecord.from_model(document)

        logger.info("document_updated", extra={"document_id": str(document_id)})
        return record

    def delete_document(
        self, business_id: UUID, document_id: UUID, actor_id: UUID | None = None,
    ) -> StaffDocumentRecord:
        """
        Delete a document record, then its file.

        The file delete is best-effort: a storage failure is logged as
        ``document_file_delete_failed`` and does not undo the delete.
        """
        with self._unit_of_work("delete_document"):
            document = self._selector.owned_document(business_id, document_id)
            record = StaffDocumentRecord.from_model(document)
            self._session.delete(document)
            self._session.flush()

        logger.info("document_deleted", extra={
            "document_id": str(document_id),
            "deleted_by": str(actor_id) if actor_id else None,
        })
        self._delete_file(record.file_path)
        return record

    def _delete_file(self, file_path: str) -> None:
        try:
            self._storage.delete(file_path)
        except DocumentStorageError as exc:
            logger.warning("document_file_delete_failed", extra={
                "file_path": file_path,
                "error": str(exc),
            })

    def bulk_update_document_expirations(
        self,
        business_id: UUID,
        updates: Mapping[UUID, date | None],
        actor_id: UUID | None = None,
    ) -> int:
        """
        Set expiration dates for many documents in one transaction.

        Ids that do not resolve to a document of ``business_id`` are skipped
        and logged.

        Returns:
            Number of documents updated.
        """
        updated = 0
        with self._unit_of_work("bulk_update_document_expirations"):
            now = self._clock.now()
            for document_id, expiration_date in updates.items():
                try:
                    document = self._selector.owned_document(business_id, document_id)
                except (DocumentNotFoundError, BusinessMismatchError) as exc:
                    logger.warning("document_expiration_update_skipped", extra={
                        "document_id": str(document_id),
                        "reason": exc.code,
                    })
                    continue
                document.expiration_date = expiration_date
                document.updated_at = now
                document.updated_by_id = actor_id
                updated += 1
            self._session.flush()

        logger.info("document_expirations_updated", extra={
            "business_id": str(business_id),
            "requested": len(updates),
            "updated": updated,
        })
        return updated

    # =========================================================================
    # Expiry and statistics
    # =========================================================================

    def get_expired_documents(self, business_id: UUID, staff_id: UUID) -> list[StaffDocumentRecord]:
        return self._selector.get_expired_documents(business_id, staff_id)

    def get_documents_expiring_soon(
        self, business_id: UUID, staff_id: UUID, days_ahead: int | None = None,
    ) -> list[StaffDocumentRecord]:
        return self._selector.get_documents_expiring_soon(business_id, staff_id, days_ahead)

    def get_document_statistics_by_type(
        self, business_id: UUID,
    ) -> dict[DocumentType, DocumentTypeStatistics]:
        return self._selector.get_document_statistics_by_type(business_id)

    # =========================================================================
    # Compliance
    # =========================================================================

    def get_staff_compliance_status(self, staff_id: UUID, business_id: UUID) -> StaffComplianceResult:
        return self._selector.get_staff_compliance_status(business_id, staff_id)

    def get_business_compliance_overview(self, business_id: UUID) -> BusinessComplianceOverview:
        overview = self._selector.get_business_compliance_overview(business_id)
        logger.info("compliance_overview_computed", extra={
            "business_id": str(business_id),
            "total_staff": overview.total_staff,
            "compliance_percentage": overview.compliance_percentage,
        })
        return overview
