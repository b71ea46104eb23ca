"""
StockLedger -- the append-only stock transaction log.

Responsibility:
    The sole means of changing physical stock.  ``record`` appends an
    immutable StockTransaction and applies the matching quantity delta to
    the InventoryRecord in the same transaction.  ``replay`` recomputes a
    key's quantity from its full history for reconciliation.

Architecture position:
    Kernel > Services.  Flush-only.  Called by every workflow module that
    moves stock (sales, production, transfer, direct stock operations).

Invariants enforced:
    LEDGER_IS_SOLE_WRITER -- the delta is applied through InventoryStore and
        the justifying row is written before ``record`` returns.
    ALL_OR_NOTHING -- ``record_many`` and ``record_transfer`` run inside a
        savepoint; a failing entry rolls back the entries before it.
    REPLAY_EQUALS_LIVE -- ``verify`` raises ConsistencyError on divergence
        (never corrects); ``verify_on_write`` checks every touched key.

Failure modes:
    - InsufficientStockError from the store (no row is written).
    - ConsistencyError from ``verify``.
"""

from decimal import Decimal
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.stock import (
    ZERO,
    LedgerEntry,
    TransactionType,
    TransferEntry,
)
from erp_kernel.exceptions import ConsistencyError
from erp_kernel.logging_config import get_logger
from erp_kernel.models.inventory import InventoryRecord
from erp_kernel.models.stock_transaction import StockTransaction
from erp_kernel.services.base import BaseService
from erp_kernel.services.inventory_store import InventoryStore

logger = get_logger("services.stock_ledger")

DEFAULT_TRANSACTION_PREFIXES: dict[TransactionType, str] = {
    TransactionType.IMPORT: "IMP",
    TransactionType.EXPORT: "EXP",
    TransactionType.TRANSFER_OUT: "TRO",
    TransactionType.TRANSFER_IN: "TRI",
    TransactionType.DISPOSAL: "DSP",
    TransactionType.ADJUSTMENT: "ADJ",
}


class StockLedger(BaseService[StockTransaction]):
    """
    Append stock transactions and keep inventory records in step.

    Contract:
        Every call either writes all of its transactions and applies all of
        their deltas, or raises with neither.

    Transaction codes are ``PREFIX-YYYYMMDD-<12 hex>`` derived from the row
    id, so writers on disjoint keys never contend on a shared counter.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        store: InventoryStore | None = None,
        prefixes: dict[TransactionType, str] | None = None,
        verify_on_write: bool = False,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._store = store or InventoryStore(session, self._clock)
        self._prefixes = {**DEFAULT_TRANSACTION_PREFIXES, **(prefixes or {})}
        self._verify_on_write = verify_on_write

    @property
    def store(self) -> InventoryStore:
        return self._store

    # =========================================================================
    # Writes
    # =========================================================================

    def record(self, entry: LedgerEntry, actor_id: UUID) -> StockTransaction:
        """
        Append one transaction and apply its delta.

        Raises:
            InsufficientStockError: the delta breaks the record invariants;
                no transaction row is written.
        """
        self._store.apply_delta(entry.warehouse_id, entry.product_id, entry.quantity_delta, ZERO)

        now = self._clock.now()
        txn_id = uuid4()
        txn = StockTransaction(
            id=txn_id,
            transaction_code=self._transaction_code(entry.transaction_type, now, txn_id),
            warehouse_id=entry.warehouse_id,
            product_id=entry.product_id,
            transaction_type=entry.transaction_type.value,
            quantity=entry.quantity,
            unit_cost=entry.unit_cost,
            total_value=entry.total_value,
            reference_type=entry.reference_type,
            reference_id=entry.reference_id,
            related_warehouse_id=entry.related_warehouse_id,
            reason=entry.reason,
            created_by_id=actor_id,
            created_at=now,
        )
        self.session.add(txn)
        self.session.flush()

        logger.info(
            "stock_transaction_recorded",
            extra={
                "transaction_id": str(txn.id),
                "transaction_code": txn.transaction_code,
                "transaction_type": entry.transaction_type.value,
                "warehouse_id": str(entry.warehouse_id),
                "product_id": str(entry.product_id),
                "quantity": entry.quantity,
                "reference_type": entry.reference_type,
                "reference_id": str(entry.reference_id) if entry.reference_id else None,
            },
        )

        if self._verify_on_write:
            self.verify(entry.warehouse_id, entry.product_id)
        return txn

    def record_many(self, entries: Sequence[LedgerEntry], actor_id: UUID) -> list[StockTransaction]:
        """
        Append several transactions as one unit.

        Touched keys are locked in sorted order first.  Entries are then
        applied in the given order inside a savepoint.
        """
        if not entries:
            return []
        self._store.lock_many(
            (e.key for e in entries),
            create=False,
        )
        with self.session.begin_nested():
            return [self.record(entry, actor_id) for entry in entries]

    def record_transfer(
        self,
        transfer: TransferEntry,
        actor_id: UUID,
    ) -> tuple[StockTransaction, StockTransaction]:
        """
        Write the transfer_out / transfer_in pair sharing one reference id.

        Both legs succeed or neither does.
        """
        reference_id = transfer.reference_id or uuid4()
        out_leg, in_leg = transfer.legs(reference_id)
        out_txn, in_txn = self.record_many([out_leg, in_leg], actor_id)
        logger.info(
            "stock_transfer_recorded",
            extra={
                "reference_id": str(reference_id),
                "from_warehouse_id": str(transfer.from_warehouse_id),
                "to_warehouse_id": str(transfer.to_warehouse_id),
                "product_id": str(transfer.product_id),
                "quantity": transfer.quantity,
            },
        )
        return out_txn, in_txn

    def _transaction_code(self, transaction_type: TransactionType, now, txn_id: UUID) -> str:
        return f"{self._prefixes[transaction_type]}-{now:%Y%m%d}-{txn_id.hex[:12].upper()}"

    # =========================================================================
    # Replay
    # =========================================================================

    def history(self, warehouse_id: UUID, product_id: UUID) -> list[StockTransaction]:
        """All transactions of a key in replay order."""
        return list(
            self.session.execute(
                select(StockTransaction)
                .where(
                    StockTransaction.warehouse_id == warehouse_id,
                    StockTransaction.product_id == product_id,
                )
                .order_by(StockTransaction.created_at, StockTransaction.id)
            ).scalars()
        )

    def replay(self, warehouse_id: UUID, product_id: UUID) -> Decimal:
        """Quantity of a key recomputed from zero by summing its history."""
        total = ZERO
        for txn in self.history(warehouse_id, product_id):
            total += txn.quantity_delta
        return total

    def verify(self, warehouse_id: UUID, product_id: UUID) -> Decimal:
        """
        Check replay against the live record.

        Returns:
            The agreed quantity.

        Raises:
            ConsistencyError: replay and live record disagree.
        """
        replayed = self.replay(warehouse_id, product_id)
        live_record = self.session.execute(
            select(InventoryRecord).where(
                InventoryRecord.warehouse_id == warehouse_id,
                InventoryRecord.product_id == product_id,
            )
        ).scalar_one_or_none()
        live = live_record.quantity if live_record is not None else ZERO

        if replayed != live:
            logger.critical(
                "ledger_replay_mismatch",
                extra={
                    "warehouse_id": str(warehouse_id),
                    "product_id": str(product_id),
                    "live_quantity": live,
                    "replayed_quantity": replayed,
                },
            )
            raise ConsistencyError(
                warehouse_id=str(warehouse_id),
                product_id=str(product_id),
                live_quantity=live,
                replayed_quantity=replayed,
            )
        return live
