"""
Typed Exception Hierarchy for the Back-Office Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (server actions, HTTP handlers, batch jobs) must react to failures
by category, not by parsing messages:

    try:
        inventory.record_transaction(business_id, request)
    except ValidationError as e:       # caller can correct the input
        return {"error": e.code, "message": str(e)}
    except NotFoundError as e:         # referenced row is absent
        return {"error": e.code}
    except PersistenceError:           # nothing was written, safe to retry
        raise

Every exception:
  1. Has a CODE class attribute (machine-readable, API-safe).
  2. Carries its context as attributes (item_id, alert_id, ...).
  3. Belongs to one of the categories below.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BackofficeError (base)
    |
    +-- ValidationError
    |   +-- InvalidTransactionTypeError
    |   +-- InvalidQuantityError
    |   +-- InvalidUnitCostError
    |   +-- AdjustmentDeltaRequiredError
    |   +-- InvalidItemDataError
    |   +-- InvalidDocumentDataError
    |   +-- AlertAlreadyResolvedError
    |   +-- InvalidPaginationError
    |
    +-- NotFoundError
    |   +-- ItemNotFoundError
    |   +-- CategoryNotFoundError
    |   +-- SupplierNotFoundError
    |   +-- AlertNotFoundError
    |   +-- StaffNotFoundError
    |   +-- DocumentNotFoundError
    |
    +-- AuthorizationError
    |   +-- BusinessMismatchError
    |   +-- FilePathOwnershipError
    |
    +-- PersistenceError
    |   +-- DocumentStorageError
    |
    +-- ConcurrencyError
    |   +-- StockUpdateConflictError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                        | When Raised
--------------|-----------------------------|-----------------------------------
Validation    | INVALID_TRANSACTION_TYPE    | Not one of the nine ledger types
              | INVALID_QUANTITY            | Quantity not positive and finite
              | INVALID_UNIT_COST           | Unit cost negative or not finite
              | ADJUSTMENT_DELTA_REQUIRED   | Adjustment without a signed delta
              | INVALID_ITEM_DATA           | Missing/invalid item attributes
              | INVALID_DOCUMENT_DATA       | Missing/invalid document metadata
              | ALERT_ALREADY_RESOLVED      | Resolving a resolved alert
              | INVALID_PAGINATION          | Page or page size below 1
--------------|-----------------------------|-----------------------------------
Not found     | ITEM_NOT_FOUND              | Inventory item id unknown
              | CATEGORY_NOT_FOUND          | Category id unknown
              | SUPPLIER_NOT_FOUND          | Supplier id unknown
              | ALERT_NOT_FOUND             | Alert id unknown
              | STAFF_NOT_FOUND             | Staff member id unknown
              | DOCUMENT_NOT_FOUND          | Staff document id unknown
--------------|-----------------------------|-----------------------------------
Authorization | BUSINESS_MISMATCH           | Resource owned by another business
              | FILE_PATH_OWNERSHIP         | Storage path outside business root
--------------|-----------------------------|-----------------------------------
Persistence   | PERSISTENCE_ERROR           | Store unavailable / write rejected
              | DOCUMENT_STORAGE_ERROR      | File store rejected an operation
--------------|-----------------------------|-----------------------------------
Concurrency   | STOCK_UPDATE_CONFLICT       | Stock CAS retries exhausted
--------------|-----------------------------|-----------------------------------
Immutability  | IMMUTABILITY_VIOLATION      | Ledger row updated or deleted
"""


class BackofficeError(Exception):
    """
    Base exception for all back-office errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BACKOFFICE_ERROR"


# Validation-related exceptions


class ValidationError(BackofficeError):
    """Malformed or missing input; recoverable by caller correction."""

    code: str = "VALIDATION_ERROR"


class InvalidTransactionTypeError(ValidationError):
    """Transaction type is not one of the recognized ledger types."""

    code: str = "INVALID_TRANSACTION_TYPE"

    def __init__(self, transaction_type: str):
        self.transaction_type = transaction_type
        super().__init__(f"Invalid transaction type: {transaction_type!r}")


class InvalidQuantityError(ValidationError):
    """Quantity is missing, non-numeric, non-finite or not positive."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, value: object, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid quantity {value!r}: {reason}")


class InvalidUnitCostError(ValidationError):
    """Unit cost is non-numeric, non-finite or negative."""

    code: str = "INVALID_UNIT_COST"

    def __init__(self, value: object, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid unit cost {value!r}: {reason}")


class AdjustmentDeltaRequiredError(ValidationError):
    """
    Adjustment entries need an explicit, non-zero signed delta.

    The direction of an adjustment is never inferred from the quantity.
    """

    code: str = "ADJUSTMENT_DELTA_REQUIRED"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Adjustment requires a signed delta: {reason}")


class InvalidItemDataError(ValidationError):
    """Item, category or supplier attributes are missing or invalid."""

    code: str = "INVALID_ITEM_DATA"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid value for {field}: {reason}")


class InvalidDocumentDataError(ValidationError):
    """Staff document metadata is missing or invalid."""

    code: str = "INVALID_DOCUMENT_DATA"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid value for {field}: {reason}")


class AlertAlreadyResolvedError(ValidationError):
    """Alert was already resolved; resolution is a one-way transition."""

    code: str = "ALERT_ALREADY_RESOLVED"

    def __init__(self, alert_id: str, resolved_by: str | None):
        self.alert_id = alert_id
        self.resolved_by = resolved_by
        super().__init__(f"Alert {alert_id} was already resolved by {resolved_by}")


class InvalidPaginationError(ValidationError):
    """Requested page or page size is below 1."""

    code: str = "INVALID_PAGINATION"

    def __init__(self, field: str, value: int):
        self.field = field
        self.value = value
        super().__init__(f"{field} must be at least 1, got {value}")


# Not-found exceptions


class NotFoundError(BackofficeError):
    """Referenced item, staff member, document or alert is absent."""

    code: str = "NOT_FOUND"


class ItemNotFoundError(NotFoundError):
    """Inventory item with given ID was not found."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Inventory item not found: {item_id}")


class CategoryNotFoundError(NotFoundError):
    """Inventory category with given ID was not found."""

    code: str = "CATEGORY_NOT_FOUND"

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Inventory category not found: {category_id}")


class SupplierNotFoundError(NotFoundError):
    """Supplier with given ID was not found."""

    code: str = "SUPPLIER_NOT_FOUND"

    def __init__(self, supplier_id: str):
        self.supplier_id = supplier_id
        super().__init__(f"Supplier not found: {supplier_id}")


class AlertNotFoundError(NotFoundError):
    """Inventory alert with given ID was not found."""

    code: str = "ALERT_NOT_FOUND"

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Inventory alert not found: {alert_id}")


class StaffNotFoundError(NotFoundError):
    """Staff member with given ID was not found."""

    code: str = "STAFF_NOT_FOUND"

    def __init__(self, staff_id: str):
        self.staff_id = staff_id
        super().__init__(f"Staff member not found: {staff_id}")


class DocumentNotFoundError(NotFoundError):
    """Staff document with given ID was not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Staff document not found: {document_id}")


# Authorization exceptions


class AuthorizationError(BackofficeError):
    """Caller's business does not own the referenced resource."""

    code: str = "AUTHORIZATION_ERROR"


class BusinessMismatchError(AuthorizationError):
    """Resource belongs to a different business than the caller's."""

    code: str = "BUSINESS_MISMATCH"

    def __init__(self, entity_type: str, entity_id: str, business_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.business_id = business_id
        super().__init__(
            f"{entity_type} {entity_id} is not owned by business {business_id}"
        )


class FilePathOwnershipError(AuthorizationError):
    """Storage path does not live under the caller's business root."""

    code: str = "FILE_PATH_OWNERSHIP"

    def __init__(self, file_path: str, business_id: str):
        self.file_path = file_path
        self.business_id = business_id
        super().__init__(
            f"File path {file_path!r} does not belong to business {business_id}"
        )


# Persistence exceptions


class PersistenceError(BackofficeError):
    """
    Underlying store unavailable or it rejected the write.

    Raised after the enclosing transaction was rolled back, so no partial
    state (ledger row without stock update, or vice versa) remains.
    """

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Persistence failure during {operation}: {reason}")


class DocumentStorageError(PersistenceError):
    """The document file store rejected a save or delete."""

    code: str = "DOCUMENT_STORAGE_ERROR"

    def __init__(self, file_path: str, reason: str):
        self.file_path = file_path
        super().__init__("document_storage", f"{file_path}: {reason}")


# Concurrency exceptions


class ConcurrencyError(BackofficeError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class StockUpdateConflictError(ConcurrencyError):
    """
    The item's stock kept changing underneath the compare-and-set update.

    Only reachable on backends without row locks; callers may retry the
    whole operation.
    """

    code: str = "STOCK_UPDATE_CONFLICT"

    def __init__(self, item_id: str, attempts: int):
        self.item_id = item_id
        self.attempts = attempts
        super().__init__(
            f"Stock update on item {item_id} conflicted {attempts} times; "
            "item was modified by other transactions"
        )


# Immutability exceptions


class ImmutabilityViolationError(BackofficeError):
    """
    Attempted to modify or delete an append-only record.

    Inventory transactions are never updated or deleted; items and alerts
    are never deleted.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
