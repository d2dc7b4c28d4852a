"""
Ledger entry rules -- transaction types, the sign rule, and input checks.

Responsibility:
    Pure validation and arithmetic for a proposed stock movement.  Turns a
    caller-supplied ``LedgerEntryRequest`` into a ``ValidatedLedgerEntry``
    carrying a Decimal quantity and a signed delta, and projects a new stock
    level from a previous one.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The item lookup and
    ownership check live in services/ledger_entry_validator.py.

Invariants enforced:
    - Transaction types partition into an increasing set
      {purchase, transfer_in, return} and a decreasing set
      {sale, waste, transfer_out, damage, expiry}.
    - ``adjustment`` never infers its direction: the caller supplies a
      signed, non-zero ``adjustment_delta`` and the stored quantity is its
      magnitude.
    - Quantity is a positive finite Decimal; unit cost, when given, is a
      non-negative finite Decimal.
    - new_stock == previous_stock + signed_delta, always.

Failure modes:
    - InvalidTransactionTypeError, InvalidQuantityError,
      InvalidUnitCostError, AdjustmentDeltaRequiredError.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Iterable
from uuid import UUID

from backoffice_kernel.exceptions import (
    AdjustmentDeltaRequiredError,
    InvalidQuantityError,
    InvalidTransactionTypeError,
    InvalidUnitCostError,
)


class TransactionType(str, Enum):
    """The nine recognized ledger entry types."""

    PURCHASE = "purchase"
    SALE = "sale"
    ADJUSTMENT = "adjustment"
    WASTE = "waste"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    RETURN = "return"
    DAMAGE = "damage"
    EXPIRY = "expiry"


INCREASING_TYPES: frozenset[TransactionType] = frozenset({
    TransactionType.PURCHASE,
    TransactionType.TRANSFER_IN,
    TransactionType.RETURN,
})

DECREASING_TYPES: frozenset[TransactionType] = frozenset({
    TransactionType.SALE,
    TransactionType.WASTE,
    TransactionType.TRANSFER_OUT,
    TransactionType.DAMAGE,
    TransactionType.EXPIRY,
})


@dataclass(frozen=True)
class LedgerEntryRequest:
    """
    A proposed stock movement as received from a caller.

    ``quantity`` and ``unit_cost`` are accepted loosely (Decimal, int,
    str, float) and normalized by ``validate_ledger_entry``.  For
    ``adjustment`` entries ``quantity`` may be omitted; the magnitude is
    taken from ``adjustment_delta``.
    """

    item_id: UUID
    transaction_type: str
    quantity: object = None
    unit_cost: object = None
    adjustment_delta: object = None
    notes: str | None = None
    reference_number: str | None = None
    supplier_id: UUID | None = None
    order_id: str | None = None
    staff_id: UUID | None = None
    transaction_date: datetime | None = None


@dataclass(frozen=True)
class ValidatedLedgerEntry:
    """A request that passed every pure check.  ``unit_cost`` None means
    "use the item's current unit cost"."""

    item_id: UUID
    transaction_type: TransactionType
    quantity: Decimal
    signed_delta: Decimal
    unit_cost: Decimal | None
    notes: str | None
    reference_number: str | None
    supplier_id: UUID | None
    order_id: str | None
    staff_id: UUID | None
    transaction_date: datetime | None


def parse_transaction_type(value: object) -> TransactionType:
    """Resolve a raw value to a TransactionType or raise."""
    if isinstance(value, TransactionType):
        return value
    try:
        return TransactionType(value)
    except ValueError:
        raise InvalidTransactionTypeError(str(value)) from None


def to_decimal(value: object) -> Decimal | None:
    """
    Coerce a loosely typed numeric to Decimal.

    Floats go through ``str`` so that 0.1 becomes Decimal("0.1") rather
    than its binary expansion.  Booleans are not numbers here.

    Returns:
        The Decimal, or None if the value is not numeric.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            return None
    return None


def validate_quantity(value: object) -> Decimal:
    """Return ``value`` as a positive finite Decimal or raise."""
    quantity = to_decimal(value)
    if quantity is None:
        raise InvalidQuantityError(value, "quantity must be a number")
    if not quantity.is_finite():
        raise InvalidQuantityError(value, "quantity must be finite")
    if quantity <= 0:
        raise InvalidQuantityError(value, "quantity must be greater than zero")
    return quantity


def validate_unit_cost(value: object) -> Decimal | None:
    """Return ``value`` as a non-negative finite Decimal, or None if absent."""
    if value is None:
        return None
    cost = to_decimal(value)
    if cost is None:
        raise InvalidUnitCostError(value, "unit cost must be a number")
    if not cost.is_finite():
        raise InvalidUnitCostError(value, "unit cost must be finite")
    if cost < 0:
        raise InvalidUnitCostError(value, "unit cost cannot be negative")
    return cost


def signed_delta(
    transaction_type: TransactionType,
    quantity: Decimal,
    adjustment_delta: Decimal | None = None,
) -> Decimal:
    """
    Apply the sign rule.

    Args:
        transaction_type: Validated transaction type.
        quantity: Positive magnitude.
        adjustment_delta: Required signed delta for ``adjustment``.

    Returns:
        +quantity for increasing types, -quantity for decreasing types,
        ``adjustment_delta`` for adjustments.
    """
    if transaction_type in INCREASING_TYPES:
        return quantity
    if transaction_type in DECREASING_TYPES:
        return -quantity
    if adjustment_delta is None:
        raise AdjustmentDeltaRequiredError("no delta supplied")
    return adjustment_delta


def project_stock(previous_stock: Decimal, delta: Decimal) -> Decimal:
    """New stock level after applying one signed delta."""
    return previous_stock + delta


def replay_deltas(deltas: Iterable[Decimal], opening: Decimal = Decimal("0")) -> Decimal:
    """Stock level implied by a sequence of signed deltas."""
    total = opening
    for delta in deltas:
        total += delta
    return total


def validate_ledger_entry(request: LedgerEntryRequest) -> ValidatedLedgerEntry:
    """
    Run every pure check on a ledger entry request.

    Preconditions:
        None; any input shape is accepted and rejected with a typed error.

    Postconditions:
        The returned entry satisfies quantity > 0 and
        abs(signed_delta) == quantity.

    Raises:
        InvalidTransactionTypeError: Unknown type.
        AdjustmentDeltaRequiredError: Adjustment without a signed,
            non-zero delta, or a quantity that disagrees with it.
        InvalidQuantityError: Quantity not positive/finite.
        InvalidUnitCostError: Unit cost negative/non-finite.
    """
    transaction_type = parse_transaction_type(request.transaction_type)

    if transaction_type is TransactionType.ADJUSTMENT:
        if request.adjustment_delta is None:
            raise AdjustmentDeltaRequiredError("no delta supplied")
        delta = to_decimal(request.adjustment_delta)
        if delta is None or not delta.is_finite():
            raise AdjustmentDeltaRequiredError(
                f"delta {request.adjustment_delta!r} is not a finite number"
            )
        if delta == 0:
            raise AdjustmentDeltaRequiredError("delta cannot be zero")
        quantity = abs(delta)
        if request.quantity is not None and validate_quantity(request.quantity) != quantity:
            raise AdjustmentDeltaRequiredError(
                f"quantity {request.quantity!r} does not match delta magnitude {quantity}"
            )
    else:
        quantity = validate_quantity(request.quantity)
        delta = signed_delta(transaction_type, quantity)

    return ValidatedLedgerEntry(
        item_id=request.item_id,
        transaction_type=transaction_type,
        quantity=quantity,
        signed_delta=delta,
        unit_cost=validate_unit_cost(request.unit_cost),
        notes=request.notes,
        reference_number=request.reference_number,
        supplier_id=request.supplier_id,
        order_id=request.order_id,
        staff_id=request.staff_id,
        transaction_date=request.transaction_date,
    )
