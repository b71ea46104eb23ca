"""
Typed Exception Hierarchy for the ERP Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock movements must fail precisely. A request layer that has to parse
"insufficient" out of a message string breaks the first time the wording
changes. Every error raised by the kernel and the workflow modules:

  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (shortfall, current state, entity ids)

Example:
    try:
        sales.create_order(...)
    except InsufficientStockError as e:
        api_response(code=e.code, product=e.product_id, shortfall=e.shortfall)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ErpKernelError:

    ErpKernelError (base)
    |
    +-- ValidationError
    +-- InsufficientStockError
    +-- NotFoundError
    +-- ConflictError
    |   +-- IllegalTransitionError
    |   +-- DuplicateCodeError
    |   +-- CompensationFailedError
    |
    +-- ConsistencyError
    |   +-- ReconciliationHoldError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                  | When Raised                               | Side effects
----------------------|-------------------------------------------|---------------
VALIDATION_ERROR      | Malformed input, draft BOM, qty <= 0      | None (pre-mutation)
INSUFFICIENT_STOCK    | available < requested, or a delta would   | None (rolled back)
                      | break 0 <= reserved <= quantity           |
NOT_FOUND             | Unknown order / BOM / product / warehouse | None
CONFLICT              | Operation not allowed in current state    | None
ILLEGAL_TRANSITION    | (state, action) not in transition table   | None
DUPLICATE_CODE        | Document or BOM code already exists       | None
COMPENSATION_FAILED   | Reversal of committed stock failed        | Order unchanged
LEDGER_INCONSISTENT   | replay(history) != live quantity          | Key put on hold
KEY_ON_HOLD           | Mutation attempted on a held key          | None
IMMUTABILITY_VIOLATION| UPDATE/DELETE of a stock transaction      | None

===============================================================================
HANDLING PATTERNS
===============================================================================

1. InsufficientStockError and ValidationError are user-facing: report and
   let the caller adjust the request.

2. ConflictError carries ``current_state`` so the caller can refresh its
   view of the document and decide what to do next.

3. ConsistencyError is FATAL for the affected key: do not retry, do not
   auto-correct. A reconciliation hold is recorded and the key refuses
   further mutation until an operator releases it.
"""

from decimal import Decimal


class ErpKernelError(Exception):
    """
    Base exception for all ERP kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ERP_KERNEL_ERROR"

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)


class ValidationError(ErpKernelError):
    """Input rejected before any mutation happened."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class InsufficientStockError(ErpKernelError):
    """
    Requested quantity exceeds what the inventory record can give.

    Also raised when a delta would break the record invariant
    0 <= reserved_quantity <= quantity. Nothing was changed.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        warehouse_id: str,
        product_id: str,
        requested: Decimal,
        available: Decimal,
    ):
        self.warehouse_id = warehouse_id
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.shortfall = max(Decimal("0"), requested - available)
        super().__init__(
            f"Insufficient stock for product {product_id} in warehouse "
            f"{warehouse_id}: requested {requested}, available {available}, "
            f"shortfall {self.shortfall}"
        )


class NotFoundError(ErpKernelError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class ConflictError(ErpKernelError):
    """Operation conflicts with the current state of the entity."""

    code: str = "CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str | None,
        reason: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state
        self.reason = reason
        super().__init__(
            f"{entity_type} {entity_id} (state={current_state}): {reason}"
        )


class IllegalTransitionError(ConflictError):
    """The (state, action) pair is not in the workflow's transition table."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        action: str,
    ):
        self.action = action
        super().__init__(
            entity_type,
            entity_id,
            current_state,
            f"cannot {action} from state '{current_state}'",
        )


class DuplicateCodeError(ConflictError):
    """A document or BOM code is already taken."""

    code: str = "DUPLICATE_CODE"

    def __init__(self, entity_type: str, code_value: str):
        self.code_value = code_value
        super().__init__(
            entity_type,
            code_value,
            None,
            f"code '{code_value}' already exists",
        )


class CompensationFailedError(ConflictError):
    """
    Reversal of already-committed stock movements failed.

    The document keeps its current state; the underlying failure is
    attached as ``cause`` and chained via ``__cause__``.
    """

    code: str = "COMPENSATION_FAILED"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        cause: Exception,
    ):
        self.cause = cause
        super().__init__(
            entity_type,
            entity_id,
            current_state,
            f"stock reversal failed: {cause}",
        )


class ConsistencyError(ErpKernelError):
    """
    Ledger replay diverges from the live inventory record.

    Fatal for the key: never auto-corrected.
    """

    code: str = "LEDGER_INCONSISTENT"

    def __init__(
        self,
        warehouse_id: str,
        product_id: str,
        live_quantity: Decimal | None,
        replayed_quantity: Decimal | None,
        message: str | None = None,
    ):
        self.warehouse_id = warehouse_id
        self.product_id = product_id
        self.live_quantity = live_quantity
        self.replayed_quantity = replayed_quantity
        super().__init__(
            message
            or (
                f"Ledger replay for product {product_id} in warehouse "
                f"{warehouse_id} gives {replayed_quantity}, live record "
                f"holds {live_quantity}"
            )
        )


class ReconciliationHoldError(ConsistencyError):
    """Mutation refused because the key has an open reconciliation hold."""

    code: str = "KEY_ON_HOLD"

    def __init__(self, warehouse_id: str, product_id: str, hold_id: str):
        self.hold_id = hold_id
        super().__init__(
            warehouse_id,
            product_id,
            None,
            None,
            message=(
                f"Product {product_id} in warehouse {warehouse_id} is on "
                f"reconciliation hold {hold_id}"
            ),
        )


class ImmutabilityViolationError(ErpKernelError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
