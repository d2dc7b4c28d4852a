"""
Module: backoffice_kernel.selectors.document_selector
Responsibility: Read-only queries over staff and staff documents, and the
    compliance read models derived from them.
Architecture position: Kernel > Selectors.  Delegates every status
    decision to domain/compliance.py.

Invariants enforced:
    - Compliance status is computed on read from the live document set;
      nothing is cached or stored.
    - The business overview counts active staff only.
"""

from datetime import timedelta
from uuid import UUID

from sqlalchemy import select

from backoffice_kernel.domain.compliance import (
    REQUIRED_DOCUMENT_TYPES,
    BusinessComplianceOverview,
    DocumentSnapshot,
    DocumentType,
    StaffComplianceResult,
    compute_staff_compliance,
    is_expired,
    is_expiring_soon,
    summarize_compliance,
)
from backoffice_kernel.domain.dtos import (
    DocumentTypeStatistics,
    StaffDocumentRecord,
    StaffMemberRecord,
)
from backoffice_kernel.exceptions import (
    BusinessMismatchError,
    DocumentNotFoundError,
    StaffNotFoundError,
)
from backoffice_kernel.models.staff import StaffDocument, StaffMember
from backoffice_kernel.selectors.base import BaseSelector


def _snapshot(document: StaffDocument) -> DocumentSnapshot:
    return DocumentSnapshot(
        document_id=document.id,
        document_type=DocumentType(document.document_type),
        expiration_date=document.expiration_date,
        is_required=document.is_required,
    )


class DocumentSelector(BaseSelector):
    """
    Selector for staff documents and compliance.

    Guarantees:
        - Per-staff document lists are newest first.
        - Expiry lists are ordered by expiration date, soonest first.
    """

    def __init__(
        self,
        session,
        clock=None,
        expiring_soon_days: int = 30,
        required_types: tuple[DocumentType, ...] = REQUIRED_DOCUMENT_TYPES,
    ):
        super().__init__(session, clock)
        self.expiring_soon_days = expiring_soon_days
        self.required_types = required_types

    def get_staff_member(self, business_id: UUID, staff_id: UUID) -> StaffMemberRecord:
        return StaffMemberRecord.from_model(self.owned_staff(business_id, staff_id))

    def owned_staff(self, business_id: UUID, staff_id: UUID) -> StaffMember:
        staff = self.session.get(StaffMember, staff_id)
        if staff is None:
            raise StaffNotFoundError(str(staff_id))
        if staff.business_id != business_id:
            raise BusinessMismatchError("StaffMember", str(staff_id), str(business_id))
        return staff

    def owned_document(self, business_id: UUID, document_id: UUID) -> StaffDocument:
        document = self.session.get(StaffDocument, document_id)
        if document is None:
            raise DocumentNotFoundError(str(document_id))
        if document.business_id != business_id:
            raise BusinessMismatchError("StaffDocument", str(document_id), str(business_id))
        return document

    def get_document(self, business_id: UUID, document_id: UUID) -> StaffDocumentRecord:
        return StaffDocumentRecord.from_model(self.owned_document(business_id, document_id))

    def _staff_documents(self, business_id: UUID, staff_id: UUID) -> list[StaffDocument]:
        stmt = (
            select(StaffDocument)
            .where(
                StaffDocument.staff_id == staff_id,
                StaffDocument.business_id == business_id,
            )
            .order_by(StaffDocument.created_at.desc(), StaffDocument.id)
        )
        return list(self.session.scalars(stmt))

    def list_staff_documents(
        self,
        business_id: UUID,
        staff_id: UUID,
        document_type: DocumentType | str | None = None,
    ) -> list[StaffDocumentRecord]:
        self.owned_staff(business_id, staff_id)
        documents = self._staff_documents(business_id, staff_id)
        if document_type is not None:
            wanted = DocumentType(document_type).value
            documents = [d for d in documents if d.document_type == wanted]
        return [StaffDocumentRecord.from_model(d) for d in documents]

    def list_business_documents(
        self,
        business_id: UUID,
        document_type: DocumentType | str | None = None,
        limit: int = 100,
    ) -> list[StaffDocumentRecord]:
        stmt = (
            select(StaffDocument)
            .where(StaffDocument.business_id == business_id)
            .order_by(StaffDocument.created_at.desc(), StaffDocument.id)
            .limit(limit)
        )
        if document_type is not None:
            stmt = stmt.where(StaffDocument.document_type == DocumentType(document_type).value)
        return [StaffDocumentRecord.from_model(d) for d in self.session.scalars(stmt)]

    def get_expired_documents(self, business_id: UUID, staff_id: UUID) -> list[StaffDocumentRecord]:
        today = self.clock.today()
        stmt = (
            select(StaffDocument)
            .where(
                StaffDocument.staff_id == staff_id,
                StaffDocument.business_id == business_id,
                StaffDocument.expiration_date.is_not(None),
                StaffDocument.expiration_date < today,
            )
            .order_by(StaffDocument.expiration_date)
        )
        return [StaffDocumentRecord.from_model(d) for d in self.session.scalars(stmt)]

    def get_documents_expiring_soon(
        self,
        business_id: UUID,
        staff_id: UUID,
        days_ahead: int | None = None,
    ) -> list[StaffDocumentRecord]:
        today = self.clock.today()
        window = self.expiring_soon_days if days_ahead is None else days_ahead
        stmt = (
            select(StaffDocument)
            .where(
                StaffDocument.staff_id == staff_id,
                StaffDocument.business_id == business_id,
                StaffDocument.expiration_date.is_not(None),
                StaffDocument.expiration_date >= today,
                StaffDocument.expiration_date <= today + timedelta(days=window),
            )
            .order_by(StaffDocument.expiration_date)
        )
        return [StaffDocumentRecord.from_model(d) for d in self.session.scalars(stmt)]

    def get_document_statistics_by_type(
        self, business_id: UUID,
    ) -> dict[DocumentType, DocumentTypeStatistics]:
        """Total / expired / expiring-soon counts for every document type."""
        today = self.clock.today()
        totals = {t: [0, 0, 0] for t in DocumentType}
        stmt = select(StaffDocument.document_type, StaffDocument.expiration_date).where(
            StaffDocument.business_id == business_id,
        )
        for document_type, expiration_date in self.session.execute(stmt):
            counts = totals[DocumentType(document_type)]
            counts[0] += 1
            if is_expired(expiration_date, today):
                counts[1] += 1
            elif is_expiring_soon(expiration_date, today, self.expiring_soon_days):
                counts[2] += 1
        return {
            t: DocumentTypeStatistics(total=c[0], expired=c[1], expiring_soon=c[2])
            for t, c in totals.items()
        }

    # ------------------------------------------------------------------
    # Compliance
    # ------------------------------------------------------------------

    def _compliance_for(self, business_id: UUID, staff_id: UUID) -> StaffComplianceResult:
        documents = self._staff_documents(business_id, staff_id)
        return compute_staff_compliance(
            staff_id,
            (_snapshot(d) for d in documents),
            self.clock.today(),
            expiring_soon_days=self.expiring_soon_days,
            required_types=self.required_types,
        )

    def get_staff_compliance_status(self, business_id: UUID, staff_id: UUID) -> StaffComplianceResult:
        self.owned_staff(business_id, staff_id)
        return self._compliance_for(business_id, staff_id)

    def get_business_compliance_overview(self, business_id: UUID) -> BusinessComplianceOverview:
        staff_ids = self.session.scalars(
            select(StaffMember.id).where(
                StaffMember.business_id == business_id,
                StaffMember.is_active.is_(True),
            )
        ).all()
        return summarize_compliance(
            business_id,
            (self._compliance_for(business_id, staff_id) for staff_id in staff_ids),
        )
