"""
Module: backoffice_kernel.models.staff
Responsibility: ORM models for the staff directory and staff compliance
    documents.

Architecture position: Kernel > Models.  The owning business is referenced
    by UUID with no foreign key.

Invariants enforced:
    - document_type and file_path are required on every document.
    - A document's business_id always equals its staff member's business_id
      (enforced by StaffDocumentService on create).
"""

from datetime import date
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice_kernel.db.base import TrackedBase


class StaffMember(TrackedBase):
    """A member of staff; only active staff count towards compliance."""

    __tablename__ = "staff_members"

    __table_args__ = (
        Index("idx_staff_business", "business_id"),
    )

    business_id: Mapped[UUID] = mapped_column()
    first_name: Mapped[str] = mapped_column(String(100))
    last_name: Mapped[str] = mapped_column(String(100))
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<StaffMember {self.id} {self.first_name} {self.last_name}>"


class StaffDocument(TrackedBase):
    """A compliance artifact backed by a stored file."""

    __tablename__ = "staff_documents"

    __table_args__ = (
        Index("idx_staff_doc_staff", "staff_id"),
        Index("idx_staff_doc_business_type", "business_id", "document_type"),
        Index("idx_staff_doc_expiration", "expiration_date"),
    )

    staff_id: Mapped[UUID] = mapped_column(ForeignKey("staff_members.id"))
    business_id: Mapped[UUID] = mapped_column()
    uploaded_by: Mapped[UUID | None] = mapped_column(nullable=True)

    document_type: Mapped[str] = mapped_column(String(50))
    document_name: Mapped[str] = mapped_column(String(255))
    file_path: Mapped[str] = mapped_column(String(500))
    file_size: Mapped[int | None] = mapped_column(nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    staff: Mapped[StaffMember] = relationship()

    def __repr__(self) -> str:
        return f"<StaffDocument {self.id} {self.document_type} staff={self.staff_id}>"
