"""
Common shape of the kernel write services.

A kernel service works inside a transaction it does not own: it adds rows
and calls ``session.flush()`` so that constraint and lock errors surface
early, and leaves ``commit()``/``rollback()`` to the module facade.  That
way a ledger row, the item's new stock and any alerts it raised are
committed together or not at all.
"""

from sqlalchemy.orm import Session

from backoffice_kernel.domain.clock import Clock, SystemClock


class BaseService:
    """Holds the caller's session and time source."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
