"""
Stock Operations Service (``erp_modules.stock.service``).

Responsibility
--------------
Direct ledger writes that are not part of a document workflow:

- ``receive``   -- import (goods receipt, opening balance)
- ``dispose``   -- disposal of damaged or expired stock
- ``adjust``    -- signed manual correction
- ``stocktake`` -- one adjustment per counted product whose count differs

Invariants
----------
- Each public method owns its transaction (commit / rollback + re-raise).
- Disposal and negative adjustments can only consume free stock: the store
  rejects any movement that would leave reserved above quantity.
- A stocktake is all-or-nothing.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.stock import (
    ZERO,
    InventoryKey,
    LedgerEntry,
    StockTransactionRecord,
    TransactionType,
)
from erp_kernel.exceptions import ValidationError
from erp_kernel.logging_config import get_logger
from erp_kernel.services.stock_ledger import StockLedger
from erp_modules._document_helpers import load_products, require_warehouse
from erp_modules.stock.models import StocktakeCount, StocktakeResult

logger = get_logger("modules.stock.service")

STOCKTAKE_REFERENCE_TYPE = "stocktake"


class StockOperationsService:
    """Receipts, disposals, adjustments and stocktakes."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger: StockLedger | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._ledger = ledger or StockLedger(session, self._clock)

    def receive(
        self,
        warehouse_id: UUID,
        product_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
        unit_cost: Decimal | None = None,
        reference_type: str | None = None,
        reference_id: UUID | None = None,
        reason: str | None = None,
    ) -> StockTransactionRecord:
        """Import ``quantity`` (unit cost defaults to the product's standard cost)."""
        return self._write(
            warehouse_id, product_id, TransactionType.IMPORT, quantity, actor_id,
            unit_cost=unit_cost, reference_type=reference_type,
            reference_id=reference_id, reason=reason,
        )

    def dispose(
        self,
        warehouse_id: UUID,
        product_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
        reason: str,
    ) -> StockTransactionRecord:
        """
        Write off ``quantity``.

        Raises:
            ValidationError: no reason given.
            InsufficientStockError: more than the free (unreserved) stock.
        """
        if not reason:
            raise ValidationError("reason", "a disposal needs a reason")
        return self._write(
            warehouse_id, product_id, TransactionType.DISPOSAL, quantity, actor_id,
            reason=reason,
        )

    def adjust(
        self,
        warehouse_id: UUID,
        product_id: UUID,
        quantity_delta: Decimal,
        actor_id: UUID,
        reason: str,
    ) -> StockTransactionRecord:
        """Signed correction; a negative delta may not consume reserved stock."""
        if not reason:
            raise ValidationError("reason", "an adjustment needs a reason")
        return self._write(
            warehouse_id, product_id, TransactionType.ADJUSTMENT, quantity_delta, actor_id,
            reason=reason,
        )

    def stocktake(
        self,
        warehouse_id: UUID,
        counts: Sequence[StocktakeCount],
        actor_id: UUID,
        reason: str | None = None,
    ) -> StocktakeResult:
        """
        Reconcile system quantities with a physical count.

        For each counted product ``adjustment = counted - system quantity``;
        matching counts write nothing.  System quantities are read under the
        row lock, so a concurrent movement cannot slip between the read and
        the adjustment.

        Raises:
            ValidationError: a product counted twice.
            InsufficientStockError: a count below the reserved quantity; no
                adjustment of this stocktake is kept.
        """
        try:
            require_warehouse(self._session, warehouse_id)
            product_ids = [c.product_id for c in counts]
            if len(set(product_ids)) != len(product_ids):
                raise ValidationError("counts", "a product may be counted only once per stocktake")
            products = load_products(self._session, product_ids)

            locked = self._ledger.store.lock_many(
                InventoryKey(warehouse_id, pid) for pid in product_ids
            )
            entries = []
            unchanged = []
            for count in counts:
                record = locked[InventoryKey(warehouse_id, count.product_id)]
                system_quantity = record.quantity if record is not None else ZERO
                difference = count.counted_quantity - system_quantity
                if difference == ZERO:
                    unchanged.append(count.product_id)
                    continue
                entries.append(
                    LedgerEntry(
                        warehouse_id=warehouse_id,
                        product_id=count.product_id,
                        transaction_type=TransactionType.ADJUSTMENT,
                        quantity=difference,
                        unit_cost=products[count.product_id].standard_cost,
                        reference_type=STOCKTAKE_REFERENCE_TYPE,
                        reason=reason or f"stocktake: counted {count.counted_quantity}, system {system_quantity}",
                    )
                )

            txns = self._ledger.record_many(entries, actor_id)
            logger.info(
                "stocktake_recorded",
                extra={
                    "warehouse_id": str(warehouse_id),
                    "counted": len(counts),
                    "adjusted": len(txns),
                    "unchanged": len(unchanged),
                },
            )
            self._session.commit()
            return StocktakeResult(
                warehouse_id=warehouse_id,
                adjustments=tuple(t.to_dto() for t in txns),
                unchanged_product_ids=tuple(unchanged),
            )
        except Exception:
            self._session.rollback()
            raise

    def _write(
        self,
        warehouse_id: UUID,
        product_id: UUID,
        transaction_type: TransactionType,
        quantity: Decimal,
        actor_id: UUID,
        unit_cost: Decimal | None = None,
        reference_type: str | None = None,
        reference_id: UUID | None = None,
        reason: str | None = None,
    ) -> StockTransactionRecord:
        try:
            require_warehouse(self._session, warehouse_id)
            product = load_products(self._session, [product_id])[product_id]
            txn = self._ledger.record(
                LedgerEntry(
                    warehouse_id=warehouse_id,
                    product_id=product_id,
                    transaction_type=transaction_type,
                    quantity=quantity,
                    unit_cost=product.standard_cost if unit_cost is None else unit_cost,
                    reference_type=reference_type,
                    reference_id=reference_id,
                    reason=reason,
                ),
                actor_id,
            )
            self._session.commit()
            return txn.to_dto()
        except Exception:
            self._session.rollback()
            raise
