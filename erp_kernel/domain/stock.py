"""
Stock value objects (``erp_kernel.domain.stock``).

Responsibility:
    Immutable DTOs flowing through the ledger core: the closed set of
    transaction types with their fixed effect on quantity, inventory keys,
    snapshots, ledger entries, and availability results.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Services convert ORM rows to these
    DTOs at their boundary.

Invariants enforced:
    - Every transaction type except ADJUSTMENT has a fixed sign; its stored
      quantity is strictly positive.  ADJUSTMENT carries a signed, nonzero
      quantity.
    - available_quantity is derived, never stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from erp_kernel.exceptions import ValidationError

ZERO = Decimal("0")


class TransactionType(str, Enum):
    """Closed set of stock movement kinds."""

    IMPORT = "import"
    EXPORT = "export"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    DISPOSAL = "disposal"
    ADJUSTMENT = "adjustment"

    @property
    def direction(self) -> int:
        """+1 increases quantity, -1 decreases it, 0 means signed quantity."""
        return _DIRECTIONS[self]

    def signed_delta(self, quantity: Decimal) -> Decimal:
        """Effect of a transaction of this type on the record's quantity."""
        if self.direction == 0:
            return quantity
        return quantity * self.direction


_DIRECTIONS: dict[TransactionType, int] = {
    TransactionType.IMPORT: 1,
    TransactionType.TRANSFER_IN: 1,
    TransactionType.EXPORT: -1,
    TransactionType.TRANSFER_OUT: -1,
    TransactionType.DISPOSAL: -1,
    TransactionType.ADJUSTMENT: 0,
}


@dataclass(frozen=True, order=True)
class InventoryKey:
    """(warehouse, product) identity of an inventory record.

    Ordered so multi-key operations can lock rows in a stable order.
    """
    warehouse_id: UUID
    product_id: UUID


@dataclass(frozen=True)
class InventorySnapshot:
    """Read-only view of an inventory record."""
    warehouse_id: UUID
    product_id: UUID
    quantity: Decimal
    reserved_quantity: Decimal

    @property
    def available_quantity(self) -> Decimal:
        return self.quantity - self.reserved_quantity

    @property
    def key(self) -> InventoryKey:
        return InventoryKey(self.warehouse_id, self.product_id)

    @classmethod
    def empty(cls, warehouse_id: UUID, product_id: UUID) -> InventorySnapshot:
        return cls(warehouse_id, product_id, ZERO, ZERO)


def require_positive(field_name: str, value: Decimal) -> Decimal:
    """Reject non-Decimal or non-positive quantities."""
    if not isinstance(value, Decimal):
        raise ValidationError(field_name, f"must be a Decimal, got {type(value).__name__}")
    if not value.is_finite() or value <= ZERO:
        raise ValidationError(field_name, f"must be positive, got {value}")
    return value


def require_non_negative(field_name: str, value: Decimal) -> Decimal:
    if not isinstance(value, Decimal):
        raise ValidationError(field_name, f"must be a Decimal, got {type(value).__name__}")
    if not value.is_finite() or value < ZERO:
        raise ValidationError(field_name, f"must not be negative, got {value}")
    return value


@dataclass(frozen=True)
class StockLine:
    """A quantity of one product at one warehouse (reservation or movement)."""
    warehouse_id: UUID
    product_id: UUID
    quantity: Decimal

    def __post_init__(self) -> None:
        require_positive("quantity", self.quantity)

    @property
    def key(self) -> InventoryKey:
        return InventoryKey(self.warehouse_id, self.product_id)


@dataclass(frozen=True)
class LedgerEntry:
    """
    A single stock movement to append to the ledger.

    ``quantity`` is positive for every type but ADJUSTMENT, where its sign
    is the direction of the correction.
    """
    warehouse_id: UUID
    product_id: UUID
    transaction_type: TransactionType
    quantity: Decimal
    unit_cost: Decimal = ZERO
    reference_type: str | None = None
    reference_id: UUID | None = None
    related_warehouse_id: UUID | None = None
    reason: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.transaction_type, TransactionType):
            raise ValidationError(
                "transaction_type", f"unknown transaction type {self.transaction_type!r}"
            )
        if self.transaction_type is TransactionType.ADJUSTMENT:
            if not isinstance(self.quantity, Decimal) or not self.quantity.is_finite():
                raise ValidationError("quantity", "adjustment quantity must be a finite Decimal")
            if self.quantity == ZERO:
                raise ValidationError("quantity", "adjustment quantity must be nonzero")
        else:
            require_positive("quantity", self.quantity)
        require_non_negative("unit_cost", self.unit_cost)

    @property
    def key(self) -> InventoryKey:
        return InventoryKey(self.warehouse_id, self.product_id)

    @property
    def quantity_delta(self) -> Decimal:
        return self.transaction_type.signed_delta(self.quantity)

    @property
    def total_value(self) -> Decimal:
        return abs(self.quantity) * self.unit_cost


@dataclass(frozen=True)
class TransferEntry:
    """A paired movement: transfer_out at source, transfer_in at destination."""
    from_warehouse_id: UUID
    to_warehouse_id: UUID
    product_id: UUID
    quantity: Decimal
    unit_cost: Decimal = ZERO
    reference_type: str | None = None
    reference_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.from_warehouse_id == self.to_warehouse_id:
            raise ValidationError(
                "to_warehouse_id", "source and destination warehouse must differ"
            )
        require_positive("quantity", self.quantity)
        require_non_negative("unit_cost", self.unit_cost)

    def legs(self, reference_id: UUID) -> tuple[LedgerEntry, LedgerEntry]:
        """The two ledger entries of this transfer sharing ``reference_id``."""
        out_leg = LedgerEntry(
            warehouse_id=self.from_warehouse_id,
            product_id=self.product_id,
            transaction_type=TransactionType.TRANSFER_OUT,
            quantity=self.quantity,
            unit_cost=self.unit_cost,
            reference_type=self.reference_type or "transfer",
            reference_id=reference_id,
            related_warehouse_id=self.to_warehouse_id,
        )
        in_leg = LedgerEntry(
            warehouse_id=self.to_warehouse_id,
            product_id=self.product_id,
            transaction_type=TransactionType.TRANSFER_IN,
            quantity=self.quantity,
            unit_cost=self.unit_cost,
            reference_type=self.reference_type or "transfer",
            reference_id=reference_id,
            related_warehouse_id=self.from_warehouse_id,
        )
        return out_leg, in_leg


@dataclass(frozen=True)
class AvailabilityLine:
    product_id: UUID
    requested: Decimal
    available: Decimal

    @property
    def shortfall(self) -> Decimal:
        return max(ZERO, self.requested - self.available)

    @property
    def is_available(self) -> bool:
        return self.available >= self.requested


@dataclass(frozen=True)
class AvailabilityReport:
    warehouse_id: UUID
    lines: tuple[AvailabilityLine, ...] = field(default_factory=tuple)

    @property
    def all_available(self) -> bool:
        return all(line.is_available for line in self.lines)

    @property
    def shortages(self) -> tuple[AvailabilityLine, ...]:
        return tuple(line for line in self.lines if not line.is_available)


@dataclass(frozen=True)
class StockTransactionRecord:
    """Read-side view of a persisted stock transaction."""
    id: UUID
    transaction_code: str
    warehouse_id: UUID
    product_id: UUID
    transaction_type: TransactionType
    quantity: Decimal
    unit_cost: Decimal
    total_value: Decimal
    reference_type: str | None
    reference_id: UUID | None
    related_warehouse_id: UUID | None
    reason: str | None
    created_by_id: UUID
    created_at: datetime

    @property
    def quantity_delta(self) -> Decimal:
        return self.transaction_type.signed_delta(self.quantity)
