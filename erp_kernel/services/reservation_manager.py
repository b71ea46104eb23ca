"""
ReservationManager -- soft holds on stock for pending documents.

Responsibility:
    Moves ``reserved_quantity`` up and down without moving physical stock.
    Sales orders reserve at creation; transfers reserve at approval.

Architecture position:
    Kernel > Services.  Flush-only; runs inside the same transaction as the
    document status write that justifies it.

Invariants enforced:
    - reserve(q) succeeds iff available >= q; on failure nothing changes.
    - release(q) decrements reserved, floored at zero.
    - Multi-line reservations are all-or-nothing: every line is checked
      against the locked records before any line is applied.

The exactly-once rule (a line reserves once, then is released once or
converted once into an export) is guaranteed by the callers' state machines:
only the pending -> X transitions touch reservations.
"""

from collections import OrderedDict
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from erp_kernel.domain.stock import (
    ZERO,
    InventoryKey,
    InventorySnapshot,
    StockLine,
    require_positive,
)
from erp_kernel.exceptions import InsufficientStockError
from erp_kernel.logging_config import get_logger
from erp_kernel.models.inventory import InventoryRecord
from erp_kernel.services.base import BaseService
from erp_kernel.services.inventory_store import InventoryStore

logger = get_logger("services.reservation")


def aggregate_lines(lines: Sequence[StockLine]) -> "OrderedDict[InventoryKey, Decimal]":
    """Sum quantities per key, keeping first-seen order."""
    totals: OrderedDict[InventoryKey, Decimal] = OrderedDict()
    for line in lines:
        totals[line.key] = totals.get(line.key, ZERO) + line.quantity
    return totals


class ReservationManager(BaseService[InventoryRecord]):
    """Reserve / release stock through the InventoryStore."""

    def __init__(self, session: Session, store: InventoryStore | None = None):
        super().__init__(session)
        self._store = store or InventoryStore(session)

    def reserve(self, warehouse_id: UUID, product_id: UUID, quantity: Decimal) -> InventorySnapshot:
        """
        Hold ``quantity`` of free stock.

        Raises:
            ValidationError: quantity is not positive.
            InsufficientStockError: available < quantity (zero side effects).
        """
        require_positive("quantity", quantity)
        snapshot = self._store.apply_delta(warehouse_id, product_id, ZERO, quantity)
        logger.info(
            "stock_reserved",
            extra={
                "warehouse_id": str(warehouse_id),
                "product_id": str(product_id),
                "quantity": quantity,
                "reserved_quantity": snapshot.reserved_quantity,
                "available_quantity": snapshot.available_quantity,
            },
        )
        return snapshot

    def release(self, warehouse_id: UUID, product_id: UUID, quantity: Decimal) -> InventorySnapshot:
        """
        Drop a hold of ``quantity``, never taking reserved below zero.

        A release larger than the current reservation is floored and logged
        as a warning; it indicates a caller bookkeeping problem but must not
        block a cancel.
        """
        require_positive("quantity", quantity)
        record = self._store.lock(warehouse_id, product_id)
        reserved = record.reserved_quantity if record is not None else ZERO
        amount = min(quantity, reserved)

        if amount < quantity:
            logger.warning(
                "reservation_release_floored",
                extra={
                    "warehouse_id": str(warehouse_id),
                    "product_id": str(product_id),
                    "requested": quantity,
                    "reserved_quantity": reserved,
                },
            )
        if amount == ZERO:
            return record.to_snapshot() if record is not None else InventorySnapshot.empty(
                warehouse_id, product_id
            )

        snapshot = self._store.apply_delta(warehouse_id, product_id, ZERO, -amount)
        logger.info(
            "stock_released",
            extra={
                "warehouse_id": str(warehouse_id),
                "product_id": str(product_id),
                "quantity": amount,
                "reserved_quantity": snapshot.reserved_quantity,
            },
        )
        return snapshot

    def reserve_lines(self, lines: Sequence[StockLine]) -> list[InventorySnapshot]:
        """
        Reserve every line or none.

        Keys are locked in sorted order, the aggregated demand per key is
        checked against the locked records, and only then applied.

        Raises:
            InsufficientStockError: for the first key (in line order) whose
                aggregated demand exceeds its available quantity.
        """
        totals = aggregate_lines(lines)
        locked = self._store.lock_many(totals.keys())

        for key, requested in totals.items():
            record = locked[key]
            available = record.available_quantity if record is not None else ZERO
            if requested > available:
                logger.info(
                    "reservation_rejected",
                    extra={
                        "warehouse_id": str(key.warehouse_id),
                        "product_id": str(key.product_id),
                        "requested": requested,
                        "available": available,
                    },
                )
                raise InsufficientStockError(
                    warehouse_id=str(key.warehouse_id),
                    product_id=str(key.product_id),
                    requested=requested,
                    available=available,
                )

        return [
            self.reserve(key.warehouse_id, key.product_id, quantity)
            for key, quantity in totals.items()
        ]

    def release_lines(self, lines: Sequence[StockLine]) -> list[InventorySnapshot]:
        """Release every line (each floored at zero)."""
        totals = aggregate_lines(lines)
        self._store.lock_many(totals.keys())
        return [
            self.release(key.warehouse_id, key.product_id, quantity)
            for key, quantity in totals.items()
        ]
