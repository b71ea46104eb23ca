"""
erp_services.reconciliation_service -- ledger replay checks and holds.

Responsibility:
    Compares every inventory record against the replay of its stock
    transaction history.  A divergence is never corrected automatically:
    the key is frozen with a ``ReconciliationHold`` until an operator
    fixes the data and releases the hold.

Architecture position:
    Services -- orchestration over kernel services (StockLedger,
    InventoryStore, TransactionSelector).  Owns its transactions.

Invariants enforced:
    - REPLAY_EQUALS_LIVE: a mismatch is recorded and surfaced, never hidden.
    - At most one open hold per key.
    - A key is checked under its row lock, so a writer committing between
      the replay and the live read cannot fake a divergence.
    - Quantities are never written here.

Failure modes:
    - ConsistencyError from ``reconcile_key`` when the key diverges (the
      hold is committed before the error is raised).
    - ConflictError when releasing a hold that is already released.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.stock import ZERO
from erp_kernel.exceptions import ConflictError, ConsistencyError, NotFoundError
from erp_kernel.logging_config import get_logger
from erp_kernel.models.inventory import InventoryRecord
from erp_kernel.models.reconciliation import ReconciliationHold
from erp_kernel.selectors.transaction_selector import TransactionSelector
from erp_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.reconciliation")


@dataclass(frozen=True)
class KeyDiscrepancy:
    warehouse_id: UUID
    product_id: UUID
    live_quantity: Decimal
    replayed_quantity: Decimal
    hold_id: UUID

    @property
    def difference(self) -> Decimal:
        return self.live_quantity - self.replayed_quantity


@dataclass(frozen=True)
class ReconciliationReport:
    checked: int
    discrepancies: tuple[KeyDiscrepancy, ...]

    @property
    def is_clean(self) -> bool:
        return not self.discrepancies


@dataclass(frozen=True)
class HoldRecord:
    id: UUID
    warehouse_id: UUID
    product_id: UUID
    live_quantity: Decimal
    replayed_quantity: Decimal
    detected_at: datetime
    released_at: datetime | None
    released_by_id: UUID | None
    resolution_note: str | None

    @classmethod
    def from_model(cls, hold: ReconciliationHold) -> HoldRecord:
        return cls(
            id=hold.id,
            warehouse_id=hold.warehouse_id,
            product_id=hold.product_id,
            live_quantity=hold.live_quantity,
            replayed_quantity=hold.replayed_quantity,
            detected_at=hold.detected_at,
            released_at=hold.released_at,
            released_by_id=hold.released_by_id,
            resolution_note=hold.resolution_note,
        )


class ReconciliationService:
    """Replay-vs-live reconciliation with hold management."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._ledger = StockLedger(session, self._clock)
        self._transactions = TransactionSelector(session)

    def reconcile_key(self, warehouse_id: UUID, product_id: UUID, actor_id: UUID) -> Decimal:
        """
        Check one key.

        Returns:
            The agreed quantity.

        Raises:
            ConsistencyError: replay and live record differ; an open hold now
                exists for the key (committed before raising).
        """
        try:
            discrepancy = self._check(warehouse_id, product_id, actor_id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        if discrepancy is not None:
            raise ConsistencyError(
                warehouse_id=str(warehouse_id),
                product_id=str(product_id),
                live_quantity=discrepancy.live_quantity,
                replayed_quantity=discrepancy.replayed_quantity,
            )
        return self._ledger.store.get_or_empty(warehouse_id, product_id).quantity

    def reconcile_all(self, actor_id: UUID) -> ReconciliationReport:
        """Check every key that has a record or ledger history."""
        try:
            record_keys = self._session.execute(
                select(InventoryRecord.warehouse_id, InventoryRecord.product_id)
            ).all()
            keys = sorted({(r[0], r[1]) for r in record_keys} | set(self._transactions.keys()))

            discrepancies = []
            for warehouse_id, product_id in keys:
                discrepancy = self._check(warehouse_id, product_id, actor_id)
                if discrepancy is not None:
                    discrepancies.append(discrepancy)

            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "reconciliation_completed",
            extra={"checked": len(keys), "discrepancies": len(discrepancies)},
        )
        return ReconciliationReport(checked=len(keys), discrepancies=tuple(discrepancies))

    def release_hold(self, hold_id: UUID, actor_id: UUID, note: str) -> HoldRecord:
        """Lift a hold after the key was fixed by hand."""
        try:
            hold = self._session.get(ReconciliationHold, hold_id, with_for_update=True)
            if hold is None:
                raise NotFoundError("ReconciliationHold", str(hold_id))
            if not hold.is_open:
                raise ConflictError(
                    "ReconciliationHold", str(hold_id), "released", "hold is already released"
                )
            hold.released_at = self._clock.now()
            hold.released_by_id = actor_id
            hold.resolution_note = note
            self._session.flush()
            logger.warning(
                "reconciliation_hold_released",
                extra={
                    "hold_id": str(hold.id),
                    "warehouse_id": str(hold.warehouse_id),
                    "product_id": str(hold.product_id),
                    "actor_id": str(actor_id),
                },
            )
            self._session.commit()
            return HoldRecord.from_model(hold)
        except Exception:
            self._session.rollback()
            raise

    def open_holds(self) -> list[HoldRecord]:
        holds = self._session.execute(
            select(ReconciliationHold)
            .where(ReconciliationHold.released_at.is_(None))
            .order_by(ReconciliationHold.detected_at)
        ).scalars()
        return [HoldRecord.from_model(h) for h in holds]

    def _check(self, warehouse_id: UUID, product_id: UUID, actor_id: UUID) -> KeyDiscrepancy | None:
        # Holding the row lock keeps writers out between the two reads
        record = self._ledger.store.lock(warehouse_id, product_id)
        replayed = self._ledger.replay(warehouse_id, product_id)
        if record is None and replayed != ZERO:
            # First receipt into the key committed after the lock attempt
            record = self._ledger.store.lock(warehouse_id, product_id)
            replayed = self._ledger.replay(warehouse_id, product_id)
        live = record.quantity if record is not None else ZERO
        if replayed == live:
            return None

        hold = self._session.execute(
            select(ReconciliationHold).where(
                ReconciliationHold.warehouse_id == warehouse_id,
                ReconciliationHold.product_id == product_id,
                ReconciliationHold.released_at.is_(None),
            )
        ).scalars().first()
        if hold is None:
            hold = ReconciliationHold(
                warehouse_id=warehouse_id,
                product_id=product_id,
                live_quantity=live,
                replayed_quantity=replayed,
                detected_at=self._clock.now(),
                detected_by_id=actor_id,
            )
            self._session.add(hold)
            self._session.flush()

        logger.critical(
            "ledger_replay_mismatch",
            extra={
                "warehouse_id": str(warehouse_id),
                "product_id": str(product_id),
                "live_quantity": live,
                "replayed_quantity": replayed,
                "hold_id": str(hold.id),
            },
        )
        return KeyDiscrepancy(
            warehouse_id=warehouse_id,
            product_id=product_id,
            live_quantity=live,
            replayed_quantity=replayed,
            hold_id=hold.id,
        )
