"""
Back-office composition root.

Responsibility
--------------
Turns a ``BackofficeConfig`` into a running back office: the process-wide
engine (with the append-only ledger guards switched on), the schema, and
facades built with the configured inventory and compliance policies.

Usage::

    backoffice = build_backoffice(get_active_config(), document_root="/srv/files")
    with backoffice.session() as session:
        backoffice.inventory(session).record_transaction(business_id, item_id, "sale", quantity=2)
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from backoffice_config import BackofficeConfig, get_active_config
from backoffice_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.logging_config import get_logger
from backoffice_modules.inventory import InventoryService
from backoffice_modules.staff import DocumentStorage, LocalDocumentStorage, StaffDocumentService

logger = get_logger("modules.bootstrap")


@dataclass
class Backoffice:
    """Configured engine plus factories for the module facades."""

    config: BackofficeConfig
    engine: Engine
    clock: Clock
    storage: DocumentStorage

    @contextmanager
    def session(self) -> Iterator[Session]:
        """A session that is always closed, releasing any SQLite lock it holds."""
        session = get_session_factory()()
        try:
            yield session
        finally:
            session.close()

    def inventory(self, session: Session) -> InventoryService:
        return InventoryService(session, self.clock, policy=self.config.inventory)

    def staff_documents(self, session: Session) -> StaffDocumentService:
        return StaffDocumentService(
            session, self.storage, self.clock, policy=self.config.compliance,
        )


def build_backoffice(
    config: BackofficeConfig | None = None,
    *,
    document_root: Path | str | None = None,
    storage: DocumentStorage | None = None,
    clock: Clock | None = None,
    create_schema: bool = True,
) -> Backoffice:
    """
    Wire the back office from configuration (single production entrypoint).

    ``storage`` wins over ``document_root``; with neither, documents are
    stored under the current directory.
    """
    config = config or get_active_config()
    database = config.database

    engine = init_engine_from_url(
        database.url,
        echo=database.echo,
        pool_size=database.pool_size,
        max_overflow=database.max_overflow,
        pool_timeout=database.pool_timeout,
    )
    if create_schema:
        create_tables(engine)

    if storage is None:
        storage = LocalDocumentStorage(Path(document_root) if document_root else Path.cwd())

    logger.info(
        "backoffice_ready",
        extra={"config_id": config.config_id, "dialect": engine.dialect.name},
    )
    return Backoffice(config=config, engine=engine, clock=clock or SystemClock(), storage=storage)
