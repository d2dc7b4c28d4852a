"""
Alert derivation -- which alert conditions hold for an item, and how bad.

Responsibility:
    Pure functions from an item snapshot (plus "today" and policy
    thresholds) to the list of alert conditions that currently hold, each
    with its severity, message and trigger key.  Persistence and
    de-duplication live in services/alert_service.py.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - out_of_stock holds iff current_stock <= 0.
    - low_stock holds iff 0 < current_stock <= minimum_stock.  The two
      are mutually exclusive.
    - expired holds iff expiry_date < today; expiring_soon iff
      today <= expiry_date <= today + window.  Also mutually exclusive.
    - overstock holds iff maximum_stock > 0 and current_stock > maximum_stock.
    - price_change is never derived from stock state; it is produced by
      ``derive_price_change`` when a unit cost is changed.

Severity policy:
    out_of_stock            critical
    low_stock               high if stock < ratio * minimum, else medium
    expired                 critical
    expiring_soon           high if <= N days left, else medium
    overstock               low
    price_change            high if change >= 2 * threshold, else medium

Trigger keys:
    Each condition carries a key naming the state that raised it
    (``stock:<version>``, ``expiry:<date>``, ``cost:<old>-><new>``).  An
    alert that was resolved is only raised again once the key changes.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from uuid import UUID


class AlertType(str, Enum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"
    OVERSTOCK = "overstock"
    PRICE_CHANGE = "price_change"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Conditions recomputed from item state on every scan.
STATE_ALERT_TYPES: frozenset[AlertType] = frozenset({
    AlertType.LOW_STOCK,
    AlertType.OUT_OF_STOCK,
    AlertType.EXPIRING_SOON,
    AlertType.EXPIRED,
    AlertType.OVERSTOCK,
})


@dataclass(frozen=True)
class AlertThresholds:
    """Policy knobs for the deriver.  Built from InventoryPolicy."""

    expiring_soon_days: int = 30
    low_stock_high_severity_ratio: Decimal = Decimal("0.5")
    expiring_soon_high_severity_days: int = 3
    price_change_threshold_percent: Decimal = Decimal("10")


@dataclass(frozen=True)
class ItemSnapshot:
    """The slice of an inventory item the deriver looks at."""

    item_id: UUID
    name: str
    unit_of_measure: str
    current_stock: Decimal
    minimum_stock: Decimal
    maximum_stock: Decimal
    expiry_date: date | None
    stock_version: int


@dataclass(frozen=True)
class AlertCondition:
    """One alert condition that currently holds for an item."""

    item_id: UUID
    alert_type: AlertType
    severity: Severity
    message: str
    trigger_key: str


def _fmt(value: Decimal) -> str:
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal("1")))
    return format(normalized, "f")


def derive_stock_condition(
    item: ItemSnapshot,
    thresholds: AlertThresholds,
) -> AlertCondition | None:
    """out_of_stock or low_stock, never both."""
    key = f"stock:{item.stock_version}"

    if item.current_stock <= 0:
        return AlertCondition(
            item_id=item.item_id,
            alert_type=AlertType.OUT_OF_STOCK,
            severity=Severity.CRITICAL,
            message=f"{item.name} is out of stock",
            trigger_key=key,
        )

    if item.current_stock <= item.minimum_stock:
        cutoff = item.minimum_stock * thresholds.low_stock_high_severity_ratio
        severity = Severity.HIGH if item.current_stock < cutoff else Severity.MEDIUM
        return AlertCondition(
            item_id=item.item_id,
            alert_type=AlertType.LOW_STOCK,
            severity=severity,
            message=(
                f"{item.name} is low on stock: {_fmt(item.current_stock)} "
                f"{item.unit_of_measure} left (minimum {_fmt(item.minimum_stock)})"
            ),
            trigger_key=key,
        )

    return None


def derive_expiry_condition(
    item: ItemSnapshot,
    today: date,
    thresholds: AlertThresholds,
) -> AlertCondition | None:
    """expired or expiring_soon, never both; None without an expiry date."""
    if item.expiry_date is None:
        return None

    key = f"expiry:{item.expiry_date.isoformat()}"

    if item.expiry_date < today:
        return AlertCondition(
            item_id=item.item_id,
            alert_type=AlertType.EXPIRED,
            severity=Severity.CRITICAL,
            message=f"{item.name} expired on {item.expiry_date.isoformat()}",
            trigger_key=key,
        )

    days_left = (item.expiry_date - today).days
    if days_left <= thresholds.expiring_soon_days:
        severity = (
            Severity.HIGH
            if days_left <= thresholds.expiring_soon_high_severity_days
            else Severity.MEDIUM
        )
        return AlertCondition(
            item_id=item.item_id,
            alert_type=AlertType.EXPIRING_SOON,
            severity=severity,
            message=(
                f"{item.name} expires on {item.expiry_date.isoformat()} "
                f"({days_left} days left)"
            ),
            trigger_key=key,
        )

    return None


def derive_overstock_condition(item: ItemSnapshot) -> AlertCondition | None:
    if item.maximum_stock <= 0 or item.current_stock <= item.maximum_stock:
        return None
    return AlertCondition(
        item_id=item.item_id,
        alert_type=AlertType.OVERSTOCK,
        severity=Severity.LOW,
        message=(
            f"{item.name} is overstocked: {_fmt(item.current_stock)} "
            f"{item.unit_of_measure} (maximum {_fmt(item.maximum_stock)})"
        ),
        trigger_key=f"stock:{item.stock_version}",
    )


def derive_alert_conditions(
    item: ItemSnapshot,
    today: date,
    thresholds: AlertThresholds | None = None,
) -> list[AlertCondition]:
    """
    Every state-derived alert condition that holds for ``item`` today.

    Deterministic: the same snapshot, date and thresholds always yield the
    same list in the same order (stock, expiry, overstock).
    """
    thresholds = thresholds or AlertThresholds()
    conditions = [
        derive_stock_condition(item, thresholds),
        derive_expiry_condition(item, today, thresholds),
        derive_overstock_condition(item),
    ]
    return [c for c in conditions if c is not None]


def price_change_percent(old_cost: Decimal, new_cost: Decimal) -> Decimal | None:
    """Relative change in percent, or None when the old cost is zero."""
    if old_cost == 0:
        return None
    return abs(new_cost - old_cost) / old_cost * Decimal("100")


def derive_price_change(
    item_id: UUID,
    name: str,
    old_cost: Decimal,
    new_cost: Decimal,
    thresholds: AlertThresholds | None = None,
) -> AlertCondition | None:
    """
    price_change condition for a unit cost update, if it crosses the
    threshold.  A change from zero cost never raises (no baseline).
    """
    thresholds = thresholds or AlertThresholds()
    change = price_change_percent(old_cost, new_cost)
    if change is None or change < thresholds.price_change_threshold_percent:
        return None

    severity = (
        Severity.HIGH
        if change >= thresholds.price_change_threshold_percent * 2
        else Severity.MEDIUM
    )
    direction = "increased" if new_cost > old_cost else "decreased"
    return AlertCondition(
        item_id=item_id,
        alert_type=AlertType.PRICE_CHANGE,
        severity=severity,
        message=(
            f"Unit cost of {name} {direction} from {_fmt(old_cost)} to "
            f"{_fmt(new_cost)} ({_fmt(change.quantize(Decimal('0.01')))}%)"
        ),
        trigger_key=f"cost:{_fmt(old_cost)}->{_fmt(new_cost)}",
    )


def expiry_cutoff(today: date, window_days: int) -> date:
    """Last date that still counts as "expiring within the window"."""
    return today + timedelta(days=window_days)
