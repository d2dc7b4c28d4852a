"""
AlertService -- persist derived alert conditions and resolve alerts.

Responsibility:
    Runs the Alert Deriver (domain/alerts.py) over an item, writes an
    InventoryAlert for every condition that newly holds, and performs the
    explicit one-way resolution of an alert.

Architecture position:
    Kernel > Services.  Called by InventoryService after a stock movement,
    by update_item_cost for price changes, and by explicit scans.

Invariants enforced:
    - With de-duplication on, an item has at most one unresolved alert per
      state-derived alert type.
    - With de-duplication on, a resolved alert is not raised again for the
      same trigger key; a new stock movement (new stock_version) or a new
      expiry date re-arms it.
    - price_change alerts are events, not state: each qualifying cost change
      records one.
    - Resolution never re-checks the underlying condition.

Failure modes:
    - AlertNotFoundError, BusinessMismatchError, AlertAlreadyResolvedError
      on resolve.
"""

from uuid import UUID

from sqlalchemy import select

from backoffice_kernel.domain.alerts import (
    STATE_ALERT_TYPES,
    AlertCondition,
    AlertThresholds,
    ItemSnapshot,
    derive_alert_conditions,
)
from backoffice_kernel.domain.clock import Clock
from backoffice_kernel.exceptions import (
    AlertAlreadyResolvedError,
    AlertNotFoundError,
    BusinessMismatchError,
)
from backoffice_kernel.logging_config import get_logger
from backoffice_kernel.models.inventory import InventoryAlert, InventoryItem
from backoffice_kernel.services.base import BaseService

logger = get_logger("services.alert_service")


def snapshot_item(item: InventoryItem) -> ItemSnapshot:
    return ItemSnapshot(
        item_id=item.id,
        name=item.name,
        unit_of_measure=item.unit_of_measure,
        current_stock=item.current_stock,
        minimum_stock=item.minimum_stock,
        maximum_stock=item.maximum_stock,
        expiry_date=item.expiry_date,
        stock_version=item.stock_version,
    )


class AlertService(BaseService):
    """
    Creates and resolves inventory alerts.

    Contract:
        Flushes, never commits.

    Non-goals:
        - Does not auto-resolve alerts whose condition cleared.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        thresholds: AlertThresholds | None = None,
        deduplicate: bool = True,
    ):
        super().__init__(session, clock)
        self.thresholds = thresholds or AlertThresholds()
        self.deduplicate = deduplicate

    def _is_duplicate(self, condition: AlertCondition) -> bool:
        if not self.deduplicate or condition.alert_type not in STATE_ALERT_TYPES:
            return False

        same_type = (
            InventoryAlert.item_id == condition.item_id,
            InventoryAlert.alert_type == condition.alert_type.value,
        )
        unresolved = self.session.scalar(
            select(InventoryAlert.id)
            .where(*same_type, InventoryAlert.is_resolved.is_(False))
            .limit(1)
        )
        if unresolved is not None:
            return True

        already_raised = self.session.scalar(
            select(InventoryAlert.id)
            .where(*same_type, InventoryAlert.trigger_key == condition.trigger_key)
            .limit(1)
        )
        return already_raised is not None

    def raise_condition(
        self,
        business_id: UUID,
        condition: AlertCondition,
        actor_id: UUID | None = None,
    ) -> InventoryAlert | None:
        """
        Persist ``condition`` unless de-duplication suppresses it.

        Returns:
            The new alert, or None if suppressed.
        """
        if self._is_duplicate(condition):
            logger.debug(
                "alert_suppressed_duplicate",
                extra={
                    "item_id": str(condition.item_id),
                    "alert_type": condition.alert_type.value,
                    "trigger_key": condition.trigger_key,
                },
            )
            return None

        now = self.clock.now()
        alert = InventoryAlert(
            business_id=business_id,
            item_id=condition.item_id,
            alert_type=condition.alert_type.value,
            severity=condition.severity.value,
            message=condition.message,
            trigger_key=condition.trigger_key,
            is_resolved=False,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self.session.add(alert)
        self.session.flush()

        logger.info(
            "alert_raised",
            extra={
                "alert_id": str(alert.id),
                "item_id": str(condition.item_id),
                "alert_type": condition.alert_type.value,
                "severity": condition.severity.value,
            },
        )
        return alert

    def scan_item(self, item: InventoryItem, actor_id: UUID | None = None) -> list[InventoryAlert]:
        """Derive and persist every state alert that newly holds for ``item``."""
        conditions = derive_alert_conditions(
            snapshot_item(item), self.clock.today(), self.thresholds,
        )
        raised = []
        for condition in conditions:
            alert = self.raise_condition(item.business_id, condition, actor_id)
            if alert is not None:
                raised.append(alert)
        return raised

    def resolve(self, business_id: UUID, alert_id: UUID, resolved_by: UUID) -> InventoryAlert:
        """
        Mark an alert resolved.

        Preconditions:
            The alert belongs to ``business_id`` and is unresolved.

        Postconditions:
            is_resolved is True, resolved_by/resolved_at are stamped.

        Raises:
            AlertNotFoundError, BusinessMismatchError, AlertAlreadyResolvedError.
        """
        alert = self.session.execute(
            select(InventoryAlert)
            .where(InventoryAlert.id == alert_id)
            .with_for_update()
        ).scalar_one_or_none()
        if alert is None:
            raise AlertNotFoundError(str(alert_id))
        if alert.business_id != business_id:
            raise BusinessMismatchError("InventoryAlert", str(alert_id), str(business_id))
        if alert.is_resolved:
            raise AlertAlreadyResolvedError(
                str(alert_id), str(alert.resolved_by) if alert.resolved_by else None,
            )

        now = self.clock.now()
        alert.is_resolved = True
        alert.resolved_by = resolved_by
        alert.resolved_at = now
        alert.updated_at = now
        alert.updated_by_id = resolved_by
        self.session.flush()

        logger.info(
            "alert_resolved",
            extra={
                "alert_id": str(alert_id),
                "item_id": str(alert.item_id),
                "alert_type": alert.alert_type,
                "resolved_by": str(resolved_by),
            },
        )
        return alert
