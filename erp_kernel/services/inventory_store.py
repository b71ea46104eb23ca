"""
InventoryStore -- the authoritative (warehouse, product) quantity records.

Responsibility:
    Reads, locks and mutates InventoryRecord rows.  ``apply_delta`` is the
    single write path for quantity and reserved quantity; the ledger and the
    reservation manager are its only callers.

Architecture position:
    Kernel > Services.  Flush-only (see BaseService).

Invariants enforced:
    NON_NEGATIVE_STOCK / RESERVED_WITHIN_QUANTITY -- a delta that would drive
        quantity < 0, reserved < 0 or reserved > quantity is rejected with
        InsufficientStockError before the record is touched.
    Per-key serialization -- every mutation first takes the row lock
        (``SELECT ... FOR UPDATE``; BEGIN IMMEDIATE on SQLite).  Multi-key
        callers lock in sorted key order (``lock_many``) so two workflows
        touching the same keys cannot deadlock.
    Frozen keys -- a key with an open ReconciliationHold refuses mutation.

Failure modes:
    - InsufficientStockError on an invariant-breaking delta.
    - NotFoundError when the first movement names an unknown warehouse or
      product.
    - ReconciliationHoldError on a held key.
"""

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.stock import ZERO, InventoryKey, InventorySnapshot
from erp_kernel.exceptions import (
    InsufficientStockError,
    NotFoundError,
    ReconciliationHoldError,
)
from erp_kernel.logging_config import get_logger
from erp_kernel.models.catalog import Product, Warehouse
from erp_kernel.models.inventory import InventoryRecord
from erp_kernel.models.reconciliation import ReconciliationHold
from erp_kernel.services.base import BaseService

logger = get_logger("services.inventory_store")


class InventoryStore(BaseService[InventoryRecord]):
    """
    Single write path for inventory records.

    Contract:
        ``apply_delta`` either applies both deltas or raises without any
        change.  Callers pass signed deltas; the store does not know why the
        stock moves (that is the ledger's job).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, warehouse_id: UUID, product_id: UUID) -> InventorySnapshot | None:
        """Unlocked read of a record, or None if the key has never moved."""
        record = self.session.execute(
            select(InventoryRecord).where(
                InventoryRecord.warehouse_id == warehouse_id,
                InventoryRecord.product_id == product_id,
            )
        ).scalar_one_or_none()
        return record.to_snapshot() if record is not None else None

    def get_or_empty(self, warehouse_id: UUID, product_id: UUID) -> InventorySnapshot:
        """Like ``get`` but a missing record reads as zero stock."""
        return self.get(warehouse_id, product_id) or InventorySnapshot.empty(
            warehouse_id, product_id
        )

    # =========================================================================
    # Locking
    # =========================================================================

    def _select_for_update(self, warehouse_id: UUID, product_id: UUID):
        return (
            select(InventoryRecord)
            .where(
                InventoryRecord.warehouse_id == warehouse_id,
                InventoryRecord.product_id == product_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    def lock(
        self,
        warehouse_id: UUID,
        product_id: UUID,
        create: bool = False,
    ) -> InventoryRecord | None:
        """
        Lock the record for the rest of the transaction.

        Args:
            create: Create an empty record when none exists (first receipt
                of a product into a warehouse).

        Returns:
            The locked record, or None when it does not exist and
            ``create`` is False.
        """
        stmt = self._select_for_update(warehouse_id, product_id)
        record = self.session.execute(stmt).scalar_one_or_none()
        if record is not None or not create:
            return record

        self._require_catalog_entries(warehouse_id, product_id)

        # Another transaction may insert the same key concurrently
        savepoint = self.session.begin_nested()
        try:
            record = InventoryRecord(
                warehouse_id=warehouse_id,
                product_id=product_id,
                quantity=ZERO,
                reserved_quantity=ZERO,
            )
            self.session.add(record)
            self.session.flush()
            savepoint.commit()
            logger.debug(
                "inventory_record_created",
                extra={"warehouse_id": str(warehouse_id), "product_id": str(product_id)},
            )
            return record
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "inventory_record_create_race_retry",
                extra={"warehouse_id": str(warehouse_id), "product_id": str(product_id)},
            )
            return self.session.execute(stmt).scalar_one()

    def lock_many(
        self,
        keys: Iterable[InventoryKey],
        create: bool = False,
    ) -> dict[InventoryKey, InventoryRecord | None]:
        """Lock several keys in sorted order (deadlock-free across workflows)."""
        return {
            key: self.lock(key.warehouse_id, key.product_id, create=create)
            for key in sorted(set(keys))
        }

    def _require_catalog_entries(self, warehouse_id: UUID, product_id: UUID) -> None:
        if self.session.get(Warehouse, warehouse_id) is None:
            raise NotFoundError("Warehouse", str(warehouse_id))
        if self.session.get(Product, product_id) is None:
            raise NotFoundError("Product", str(product_id))

    def _check_not_on_hold(self, warehouse_id: UUID, product_id: UUID) -> None:
        hold = self.session.execute(
            select(ReconciliationHold.id).where(
                ReconciliationHold.warehouse_id == warehouse_id,
                ReconciliationHold.product_id == product_id,
                ReconciliationHold.released_at.is_(None),
            ).limit(1)
        ).scalar_one_or_none()
        if hold is not None:
            raise ReconciliationHoldError(str(warehouse_id), str(product_id), str(hold))

    # =========================================================================
    # Mutation
    # =========================================================================

    def apply_delta(
        self,
        warehouse_id: UUID,
        product_id: UUID,
        d_quantity: Decimal,
        d_reserved: Decimal,
    ) -> InventorySnapshot:
        """
        Atomically apply signed deltas to one record.

        Preconditions:
            Deltas are Decimal.  The caller's transaction is open.

        Postconditions:
            0 <= reserved_quantity <= quantity holds for the record, or
            InsufficientStockError was raised and nothing changed.

        Raises:
            InsufficientStockError: The delta would break the invariants.
                ``requested``/``available`` describe the free stock the
                delta tried to consume (or the reservation it tried to
                release).
            ReconciliationHoldError: The key is frozen.
        """
        record = self.lock(warehouse_id, product_id, create=d_quantity > ZERO)
        # Checked under the lock so a hold committed while waiting is seen
        self._check_not_on_hold(warehouse_id, product_id)
        quantity = record.quantity if record is not None else ZERO
        reserved = record.reserved_quantity if record is not None else ZERO

        new_quantity = quantity + d_quantity
        new_reserved = reserved + d_reserved

        if new_reserved < ZERO:
            self._reject(warehouse_id, product_id, -d_reserved, reserved, "reserved_below_zero")
        if new_quantity - new_reserved < ZERO:
            # Free stock consumed by this delta exceeds what is free now
            self._reject(
                warehouse_id,
                product_id,
                d_reserved - d_quantity,
                quantity - reserved,
                "free_stock_exhausted",
            )

        if d_quantity == ZERO and d_reserved == ZERO:
            return record.to_snapshot() if record is not None else InventorySnapshot.empty(
                warehouse_id, product_id
            )

        record.quantity = new_quantity
        record.reserved_quantity = new_reserved
        if d_quantity != ZERO:
            record.last_movement_at = self._clock.now()
        self.session.flush()

        logger.debug(
            "inventory_delta_applied",
            extra={
                "warehouse_id": str(warehouse_id),
                "product_id": str(product_id),
                "d_quantity": d_quantity,
                "d_reserved": d_reserved,
                "quantity": new_quantity,
                "reserved_quantity": new_reserved,
            },
        )
        return record.to_snapshot()

    def _reject(
        self,
        warehouse_id: UUID,
        product_id: UUID,
        requested: Decimal,
        available: Decimal,
        rule: str,
    ) -> None:
        logger.info(
            "inventory_delta_rejected",
            extra={
                "warehouse_id": str(warehouse_id),
                "product_id": str(product_id),
                "requested": requested,
                "available": available,
                "rule": rule,
            },
        )
        raise InsufficientStockError(
            warehouse_id=str(warehouse_id),
            product_id=str(product_id),
            requested=requested,
            available=available,
        )
