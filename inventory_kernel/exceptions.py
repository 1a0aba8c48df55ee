"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock-affecting operations must fail precisely. A caller deciding whether to
show "insufficient stock" or "cannot receive against a completed order" must
never parse a message string. Every error here therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example - WRONG way to handle errors:
    try:
        processor.adjust(...)
    except Exception as e:
        if "insufficient" in str(e):  # FRAGILE
            ...

Example - RIGHT way:
    try:
        processor.adjust(...)
    except InsufficientStockError as e:
        api_response(code=e.code, available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- InvalidInputError
    |   +-- NoQuantitiesProvidedError
    |   +-- DuplicateProductLineError
    |   +-- OverReceiptNotAllowedError
    |
    +-- NotFoundError
    |   +-- ProductNotFoundError
    |   +-- RestockOrderNotFoundError
    |   +-- RestockOrderItemNotFoundError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- MultipleInsufficientStockError
    |
    +-- OrderStateError
    |   +-- InvalidOrderStateError
    |   +-- IllegalTransitionError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                         | When Raised
-------------|------------------------------|-----------------------------------------
Input        | INVALID_INPUT                | Zero/negative quantity, bad type, blank reason
             | NO_QUANTITIES_PROVIDED       | Receiving batch empty after zero filtering
             | DUPLICATE_PRODUCT_LINE       | Same product twice on one restock order
             | OVER_RECEIPT_NOT_ALLOWED     | Over-receipt while the policy forbids it
-------------|------------------------------|-----------------------------------------
Not found    | PRODUCT_NOT_FOUND            | Product missing or in another store
             | RESTOCK_ORDER_NOT_FOUND      | Order missing or in another store
             | RESTOCK_ORDER_ITEM_NOT_FOUND | Line missing or on another order
-------------|------------------------------|-----------------------------------------
Stock        | INSUFFICIENT_STOCK           | Decrement would drive stock negative
             | MULTIPLE_INSUFFICIENT_STOCK  | Several products short in one batch
-------------|------------------------------|-----------------------------------------
Order state  | INVALID_ORDER_STATE          | Action forbidden in the order's status
             | ILLEGAL_TRANSITION           | Status change not in the transition table
-------------|------------------------------|-----------------------------------------
Concurrency  | CONCURRENT_MODIFICATION      | DB conflict (retryable by the caller)
-------------|------------------------------|-----------------------------------------
Immutability | IMMUTABILITY_VIOLATION       | Update/delete of an append-only record

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Codes are CLASS attributes so ``InsufficientStockError.code`` works
   without an instance (API documentation, static analysis).

2. Every ``NotFoundError`` subclass keeps the generic ``NOT_FOUND`` family
   reachable via ``isinstance`` while exposing a precise code.

3. ConcurrentModificationError is never retried by the kernel. Replaying a
   receipt blindly could double-apply physical goods.

===============================================================================
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Input-related exceptions


class InvalidInputError(InventoryKernelError):
    """Input rejected before any mutation was attempted."""

    code: str = "INVALID_INPUT"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class NoQuantitiesProvidedError(InvalidInputError):
    """A receiving batch held nothing but zero quantities."""

    code: str = "NO_QUANTITIES_PROVIDED"

    def __init__(self, restock_order_id: str):
        self.restock_order_id = restock_order_id
        super().__init__(
            f"No quantities to receive for restock order {restock_order_id}",
            field="lines",
        )


class DuplicateProductLineError(InvalidInputError):
    """A product appears more than once on the same restock order."""

    code: str = "DUPLICATE_PRODUCT_LINE"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(
            f"Product {product_id} appears more than once on the order",
            field="items",
        )


class OverReceiptNotAllowedError(InvalidInputError):
    """Receiving would exceed the ordered quantity while over-receipt is off."""

    code: str = "OVER_RECEIPT_NOT_ALLOWED"

    def __init__(self, item_id: str, ordered: int, received: int):
        self.item_id = item_id
        self.ordered = ordered
        self.received = received
        super().__init__(
            f"Line {item_id} would receive {received} against {ordered} ordered",
            field="lines",
        )


# Lookup exceptions


class NotFoundError(InventoryKernelError):
    """Referenced record does not exist or belongs to another store."""

    code: str = "NOT_FOUND"


class ProductNotFoundError(NotFoundError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class RestockOrderNotFoundError(NotFoundError):
    """Restock order with given ID was not found."""

    code: str = "RESTOCK_ORDER_NOT_FOUND"

    def __init__(self, restock_order_id: str):
        self.restock_order_id = restock_order_id
        super().__init__(f"Restock order not found: {restock_order_id}")


class RestockOrderItemNotFoundError(NotFoundError):
    """Line item missing, or not part of the given restock order."""

    code: str = "RESTOCK_ORDER_ITEM_NOT_FOUND"

    def __init__(self, item_id: str, restock_order_id: str):
        self.item_id = item_id
        self.restock_order_id = restock_order_id
        super().__init__(
            f"Item {item_id} does not belong to restock order {restock_order_id}"
        )


# Stock-related exceptions


class StockError(InventoryKernelError):
    """Base exception for stock level violations."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """
    A decrementing movement would drive stock below zero.

    Raised before any write; the product and its ledger are untouched.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        available: int,
        requested: int,
        product_name: str | None = None,
    ):
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested
        label = product_name or product_id
        super().__init__(
            f"Insufficient stock for {label}: available={available}, "
            f"requested={requested}"
        )


class MultipleInsufficientStockError(StockError):
    """Several products in one batch are short."""

    code: str = "MULTIPLE_INSUFFICIENT_STOCK"

    def __init__(self, shortages: list[dict]):
        self.shortages = shortages
        super().__init__(
            f"Insufficient stock for {len(shortages)} products"
        )


# Order lifecycle exceptions


class OrderStateError(InventoryKernelError):
    """Base exception for restock order lifecycle errors."""

    code: str = "ORDER_STATE_ERROR"


class InvalidOrderStateError(OrderStateError):
    """Action attempted against an order whose status forbids it."""

    code: str = "INVALID_ORDER_STATE"

    def __init__(self, restock_order_id: str, status: str, action: str):
        self.restock_order_id = restock_order_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} restock order {restock_order_id} in status {status}"
        )


class IllegalTransitionError(OrderStateError):
    """Requested or implied status change is not in the transition table."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(self, from_status: str, to_status: str, entity_id: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.entity_id = entity_id
        super().__init__(
            f"Illegal restock order transition {from_status} -> {to_status}"
        )


# Concurrency-related exceptions


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """
    The database reported a transaction conflict.

    The transaction has been rolled back; the caller may retry.
    """

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(
            f"Concurrent modification during {operation}: {detail}"
        )


# Immutability-related exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    InventoryMovement rows are immutable from creation. Restock order items
    are frozen (except quantity_received) once the order leaves DRAFT.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
