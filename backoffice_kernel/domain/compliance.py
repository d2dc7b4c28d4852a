"""
Compliance status -- document completeness and freshness per staff member.

Responsibility:
    Pure derivation of a staff member's compliance status from their
    document set and "today", and of the business-wide overview from the
    per-staff results.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - expired: expiration_date < today.
    - expiring soon: today <= expiration_date <= today + window.
    - missing required types: required set minus the types present,
      regardless of expiry.
    - non_compliant if anything is expired or missing; else needs_attention
      if anything is expiring soon; else compliant.
    - compliance_percentage is 100 when there are no staff.

Audit relevance:
    Status is never stored.  It reflects the document set "now", so two
    calls with the same documents and the same date always agree.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Sequence
from uuid import UUID


class DocumentType(str, Enum):
    CONTRACT = "contract"
    ID_DOCUMENT = "id_document"
    TAX_FORM = "tax_form"
    CERTIFICATION = "certification"
    TRAINING_RECORD = "training_record"
    OTHER = "other"


class ComplianceStatus(str, Enum):
    COMPLIANT = "compliant"
    NEEDS_ATTENTION = "needs_attention"
    NON_COMPLIANT = "non_compliant"


REQUIRED_DOCUMENT_TYPES: tuple[DocumentType, ...] = (
    DocumentType.CONTRACT,
    DocumentType.ID_DOCUMENT,
)


@dataclass(frozen=True)
class DocumentSnapshot:
    """The slice of a staff document the calculator looks at."""

    document_id: UUID
    document_type: DocumentType
    expiration_date: date | None
    is_required: bool = False


@dataclass(frozen=True)
class StaffComplianceResult:
    staff_id: UUID
    status: ComplianceStatus
    total_documents: int
    required_documents: int
    expired_documents: int
    expiring_soon_documents: int
    missing_required_types: tuple[DocumentType, ...]


@dataclass(frozen=True)
class BusinessComplianceOverview:
    business_id: UUID
    total_staff: int
    compliant_staff: int
    needs_attention_staff: int
    non_compliant_staff: int
    total_expired_documents: int
    total_expiring_soon_documents: int
    compliance_percentage: Decimal


def is_expired(expiration_date: date | None, today: date) -> bool:
    return expiration_date is not None and expiration_date < today


def is_expiring_soon(expiration_date: date | None, today: date, window_days: int) -> bool:
    if expiration_date is None:
        return False
    return today <= expiration_date <= today + timedelta(days=window_days)


def compute_staff_compliance(
    staff_id: UUID,
    documents: Iterable[DocumentSnapshot],
    today: date,
    expiring_soon_days: int = 30,
    required_types: Sequence[DocumentType] = REQUIRED_DOCUMENT_TYPES,
) -> StaffComplianceResult:
    """
    Derive one staff member's compliance status.

    Args:
        staff_id: Staff member the documents belong to.
        documents: That staff member's full document set.
        today: The reference date.
        expiring_soon_days: Width of the expiring-soon window.
        required_types: Document types every staff member must hold.

    Returns:
        StaffComplianceResult; ``missing_required_types`` keeps the order
        of ``required_types``.
    """
    docs = list(documents)
    present = {d.document_type for d in docs}

    expired = [d for d in docs if is_expired(d.expiration_date, today)]
    expiring_soon = [
        d for d in docs if is_expiring_soon(d.expiration_date, today, expiring_soon_days)
    ]
    missing = tuple(t for t in required_types if t not in present)

    if expired or missing:
        status = ComplianceStatus.NON_COMPLIANT
    elif expiring_soon:
        status = ComplianceStatus.NEEDS_ATTENTION
    else:
        status = ComplianceStatus.COMPLIANT

    return StaffComplianceResult(
        staff_id=staff_id,
        status=status,
        total_documents=len(docs),
        required_documents=sum(1 for d in docs if d.is_required),
        expired_documents=len(expired),
        expiring_soon_documents=len(expiring_soon),
        missing_required_types=missing,
    )


def summarize_compliance(
    business_id: UUID,
    results: Iterable[StaffComplianceResult],
) -> BusinessComplianceOverview:
    """Aggregate per-staff results into the business overview."""
    counts = {status: 0 for status in ComplianceStatus}
    total_staff = 0
    total_expired = 0
    total_expiring = 0

    for result in results:
        total_staff += 1
        counts[result.status] += 1
        total_expired += result.expired_documents
        total_expiring += result.expiring_soon_documents

    if total_staff == 0:
        percentage = Decimal("100.00")
    else:
        percentage = (
            Decimal(counts[ComplianceStatus.COMPLIANT]) / Decimal(total_staff) * 100
        ).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    return BusinessComplianceOverview(
        business_id=business_id,
        total_staff=total_staff,
        compliant_staff=counts[ComplianceStatus.COMPLIANT],
        needs_attention_staff=counts[ComplianceStatus.NEEDS_ATTENTION],
        non_compliant_staff=counts[ComplianceStatus.NON_COMPLIANT],
        total_expired_documents=total_expired,
        total_expiring_soon_documents=total_expiring,
        compliance_percentage=percentage,
    )
