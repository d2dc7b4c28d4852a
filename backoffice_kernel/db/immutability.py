"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The stock ledger is append-only.  If a transaction row could be edited or
removed, current_stock would no longer equal the sum of the ledger's deltas
and nobody could tell which number is right.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our rules:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                 | Rule
-----------------------|----------------------------------------------------
InventoryTransaction   | ALWAYS immutable; never updated, never deleted
InventoryItem          | Never deleted (soft-disable via is_available)
InventoryAlert         | Never deleted; only the resolution fields change,
                       | and only from unresolved to resolved

updated_at/updated_by_id are audit metadata and are always allowed to
change.

===============================================================================
USAGE
===============================================================================

    from backoffice_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    # ... do forbidden operation ...
    register_immutability_listeners()
"""

from sqlalchemy import event, inspect

from backoffice_kernel.exceptions import ImmutabilityViolationError
from backoffice_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

AUDIT_METADATA_FIELDS = frozenset({"updated_at", "updated_by_id"})

ALERT_RESOLUTION_FIELDS = frozenset({"is_resolved", "resolved_by", "resolved_at"})


def _changed_fields(target) -> set[str]:
    state = inspect(target)
    return {
        attr.key
        for attr in state.attrs
        if attr.history.has_changes()
    }


def _block(entity_type: str, target, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


# =============================================================================
# InventoryTransaction -- always immutable
# =============================================================================

def _check_transaction_immutability(mapper, connection, target):
    changed = _changed_fields(target) - AUDIT_METADATA_FIELDS
    if not changed:
        return
    _block(
        "InventoryTransaction", target, "UPDATE",
        f"Ledger entries are immutable; attempted to change {sorted(changed)}",
    )


def _check_transaction_delete(mapper, connection, target):
    _block(
        "InventoryTransaction", target, "DELETE",
        "Ledger entries cannot be deleted",
    )


# =============================================================================
# InventoryItem -- never deleted
# =============================================================================

def _check_item_delete(mapper, connection, target):
    _block(
        "InventoryItem", target, "DELETE",
        "Inventory items cannot be deleted; mark them unavailable instead",
    )


# =============================================================================
# InventoryAlert -- resolution is the only permitted change
# =============================================================================

def _check_alert_immutability(mapper, connection, target):
    changed = _changed_fields(target) - AUDIT_METADATA_FIELDS
    if not changed:
        return

    illegal = changed - ALERT_RESOLUTION_FIELDS
    if illegal:
        _block(
            "InventoryAlert", target, "UPDATE",
            f"Only resolution fields may change; attempted to change {sorted(illegal)}",
        )

    was_resolved = inspect(target).attrs.is_resolved.history.deleted
    if (was_resolved and was_resolved[0]) or (
        "is_resolved" not in changed and target.is_resolved
    ):
        _block(
            "InventoryAlert", target, "UPDATE",
            "Resolved alerts cannot be modified",
        )

    if not target.is_resolved:
        _block(
            "InventoryAlert", target, "UPDATE",
            "Alerts can only transition from unresolved to resolved",
        )


def _check_alert_delete(mapper, connection, target):
    _block(
        "InventoryAlert", target, "DELETE",
        "Inventory alerts cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already present are not added twice.
    """
    from backoffice_kernel.models.inventory import (
        InventoryAlert,
        InventoryItem,
        InventoryTransaction,
    )

    for target, event_name, listener_fn in _listeners(
        InventoryTransaction, InventoryItem, InventoryAlert,
    ):
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _listeners(transaction_cls, item_cls, alert_cls):
    return (
        (transaction_cls, "before_update", _check_transaction_immutability),
        (transaction_cls, "before_delete", _check_transaction_delete),
        (item_cls, "before_delete", _check_item_delete),
        (alert_cls, "before_update", _check_alert_immutability),
        (alert_cls, "before_delete", _check_alert_delete),
    )


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that must violate the rules on purpose.
    """
    from backoffice_kernel.models.inventory import (
        InventoryAlert,
        InventoryItem,
        InventoryTransaction,
    )

    for target, event_name, listener_fn in _listeners(
        InventoryTransaction, InventoryItem, InventoryAlert,
    ):
        _safe_remove_listener(target, event_name, listener_fn)
