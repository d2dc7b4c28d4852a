"""
ORM bases shared by every back-office table.

Column conventions live here so the models stay declarative:

    Python type   column type
    -----------   ------------------------------------------
    UUID          String(36), portable between SQLite and PostgreSQL
    Decimal       Numeric(38, 9); stock quantities and costs never go
                  through float
    datetime      DateTime(timezone=True)
    int           BigInteger

Nothing in this module imports from models/, services/ or selectors/.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

__all__ = ["UUID", "UUIDString", "Base", "TrackedBase"]


class UUIDString(TypeDecorator):
    """UUID bound as its canonical 36-character string."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds who/when audit columns.

    Services stamp ``created_at`` and ``updated_at`` from their injected
    Clock; the server defaults only cover rows inserted by hand.  The actor
    columns are nullable because alert scans and opening stock are written
    by the system itself.  ``updated_at`` and ``updated_by_id`` may change
    on otherwise frozen rows (see ``db/immutability.py``).
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(),
    )
    created_by_id: Mapped[UUID | None] = mapped_column()
    updated_by_id: Mapped[UUID | None] = mapped_column()
