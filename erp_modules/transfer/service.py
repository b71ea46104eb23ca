"""
Transfer Module Service (``erp_modules.transfer.service``).

Responsibility
--------------
Moves stock between warehouses.  Approval reserves every line at the
source; completion releases those reservations and writes one paired
transfer_out / transfer_in per line through ``StockLedger.record_transfer``.

Invariants
----------
- Each public method owns its transaction (commit / rollback + re-raise).
- A transfer pair is all-or-nothing, and so is the whole completion.
- Every pair references the transfer document id.
- Completion locks the source and destination keys of every line in one
  sorted pass, so crossing transfers cannot deadlock.

Failure Modes
-------------
- ``ValidationError`` for identical warehouses or an empty transfer.
- ``InsufficientStockError`` at creation or edit (fail fast) or approval.
- ``ConflictError`` when editing or deleting a transfer that left pending.
"""

from __future__ import annotations

from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.stock import InventoryKey, StockLine, TransferEntry
from erp_kernel.exceptions import InsufficientStockError, ValidationError
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.selectors.inventory_selector import InventorySelector
from erp_kernel.services.reservation_manager import ReservationManager
from erp_kernel.services.sequence_service import SequenceService
from erp_kernel.services.stock_ledger import StockLedger
from erp_modules._document_helpers import (
    apply_transition,
    get_document,
    load_products,
    lock_document,
    log_transition,
    require_editable,
    require_products,
    require_warehouse,
)
from erp_modules.transfer.config import TransferConfig
from erp_modules.transfer.models import (
    StockTransfer,
    TransferCompleteResult,
    TransferLineInput,
    TransferStatus,
)
from erp_modules.transfer.orm import StockTransferDetailModel, StockTransferModel
from erp_modules.transfer.workflows import TRANSFER_WORKFLOW

logger = get_logger("modules.transfer.service")

ENTITY_TYPE = "StockTransfer"
REFERENCE_TYPE = "stock_transfer"


class StockTransferService:
    """Inter-warehouse transfers over reservations and paired ledger entries."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: TransferConfig | None = None,
        ledger: StockLedger | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or TransferConfig()
        self._ledger = ledger or StockLedger(session, self._clock)
        self._reservations = ReservationManager(session, self._ledger.store)
        self._sequences = SequenceService(session)
        self._inventory = InventorySelector(session)

    def create(
        self,
        from_warehouse_id: UUID,
        to_warehouse_id: UUID,
        lines: Sequence[TransferLineInput],
        actor_id: UUID,
        notes: str | None = None,
    ) -> StockTransfer:
        """
        Create a pending transfer.

        Availability at the source is checked up front so that an obviously
        impossible transfer is refused before it is persisted.  Nothing is
        reserved until approval.

        Raises:
            ValidationError, NotFoundError, InsufficientStockError.
        """
        try:
            self._validate_route(from_warehouse_id, to_warehouse_id, lines)
            self._require_available(from_warehouse_id, lines)

            transfer = StockTransferModel(
                transfer_code=self._sequences.next_document_code(
                    self._config.transfer_prefix, self._clock.today()
                ),
                from_warehouse_id=from_warehouse_id,
                to_warehouse_id=to_warehouse_id,
                status=TRANSFER_WORKFLOW.initial_state,
                notes=notes,
                created_by_id=actor_id,
            )
            transfer.lines = self._build_lines(lines, actor_id)
            self._session.add(transfer)
            self._session.flush()

            logger.info(
                "stock_transfer_created",
                extra={
                    "transfer_id": str(transfer.id),
                    "transfer_code": transfer.transfer_code,
                    "from_warehouse_id": str(from_warehouse_id),
                    "to_warehouse_id": str(to_warehouse_id),
                    "line_count": len(transfer.lines),
                },
            )
            self._session.commit()
            return transfer.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def update(
        self,
        transfer_id: UUID,
        actor_id: UUID,
        from_warehouse_id: UUID | None = None,
        to_warehouse_id: UUID | None = None,
        lines: Sequence[TransferLineInput] | None = None,
        notes: str | None = None,
    ) -> StockTransfer:
        """
        Edit a pending transfer.

        Changing the route or the lines re-checks availability at the
        (possibly new) source.  Nothing is reserved until approval.

        Raises:
            ConflictError: the transfer is not pending.
            ValidationError, NotFoundError, InsufficientStockError.
        """
        try:
            transfer = lock_document(self._session, StockTransferModel, transfer_id, ENTITY_TYPE)
            require_editable(transfer, TransferStatus.PENDING.value, ENTITY_TYPE, "update")

            new_from = from_warehouse_id or transfer.from_warehouse_id
            new_to = to_warehouse_id or transfer.to_warehouse_id
            reroute = (new_from, new_to) != (transfer.from_warehouse_id, transfer.to_warehouse_id)
            if reroute or lines is not None:
                checked = lines if lines is not None else [
                    TransferLineInput(l.product_id, l.quantity, l.notes) for l in transfer.lines
                ]
                self._validate_route(new_from, new_to, checked)
                self._require_available(new_from, checked)
                transfer.from_warehouse_id = new_from
                transfer.to_warehouse_id = new_to
            if lines is not None:
                transfer.lines.clear()
                self._session.flush()
                transfer.lines.extend(self._build_lines(lines, actor_id))
            if notes is not None:
                transfer.notes = notes
            transfer.updated_by_id = actor_id
            self._session.flush()

            logger.info(
                "stock_transfer_updated",
                extra={
                    "transfer_id": str(transfer.id),
                    "transfer_code": transfer.transfer_code,
                    "from_warehouse_id": str(transfer.from_warehouse_id),
                    "to_warehouse_id": str(transfer.to_warehouse_id),
                    "line_count": len(transfer.lines),
                },
            )
            self._session.commit()
            return transfer.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def delete(self, transfer_id: UUID, actor_id: UUID) -> None:
        """Remove a pending transfer; it holds no reservations yet."""
        try:
            transfer = lock_document(self._session, StockTransferModel, transfer_id, ENTITY_TYPE)
            require_editable(transfer, TransferStatus.PENDING.value, ENTITY_TYPE, "delete")
            transfer_code = transfer.transfer_code
            self._session.delete(transfer)
            self._session.flush()
            logger.info(
                "stock_transfer_deleted",
                extra={
                    "transfer_id": str(transfer_id),
                    "transfer_code": transfer_code,
                    "actor_id": str(actor_id),
                },
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

    def approve(self, transfer_id: UUID, actor_id: UUID) -> StockTransfer:
        """pending -> in_transit: reserve every line at the source."""
        try:
            transfer = lock_document(self._session, StockTransferModel, transfer_id, ENTITY_TYPE)
            transition = apply_transition(TRANSFER_WORKFLOW, transfer, "approve", actor_id)
            if transition is None:
                self._session.commit()
                return transfer.to_dto()

            with LogContext.bind(reference_id=transfer.id, actor_id=actor_id):
                self._reservations.reserve_lines(self._stock_lines(transfer))
                transfer.status = transition.to_state
                transfer.approved_by_id = actor_id
                transfer.approved_at = self._clock.now()
                transfer.updated_by_id = actor_id
                self._session.flush()
                log_transition(TRANSFER_WORKFLOW, transfer, transition, actor_id)

            self._session.commit()
            return transfer.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def complete(self, transfer_id: UUID, actor_id: UUID) -> TransferCompleteResult:
        """
        in_transit -> completed.

        For each line the source reservation is released and a
        transfer_out / transfer_in pair is written.  All pairs commit
        together or not at all.
        """
        try:
            transfer = lock_document(self._session, StockTransferModel, transfer_id, ENTITY_TYPE)
            transition = apply_transition(TRANSFER_WORKFLOW, transfer, "complete", actor_id)
            if transition is None:
                self._session.commit()
                return TransferCompleteResult(transfer=transfer.to_dto(), stock_transactions=())

            products = load_products(self._session, (l.product_id for l in transfer.lines))
            txns = []
            with LogContext.bind(reference_id=transfer.id, actor_id=actor_id):
                # Both ends of every line, in one sorted pass, before any write
                self._ledger.store.lock_many(self._touched_keys(transfer), create=True)
                self._reservations.release_lines(self._stock_lines(transfer))
                for line in transfer.lines:
                    txns.extend(
                        self._ledger.record_transfer(
                            TransferEntry(
                                from_warehouse_id=transfer.from_warehouse_id,
                                to_warehouse_id=transfer.to_warehouse_id,
                                product_id=line.product_id,
                                quantity=line.quantity,
                                unit_cost=products[line.product_id].standard_cost,
                                reference_type=REFERENCE_TYPE,
                                reference_id=transfer.id,
                            ),
                            actor_id,
                        )
                    )

                transfer.status = transition.to_state
                transfer.completed_at = self._clock.now()
                transfer.updated_by_id = actor_id
                self._session.flush()
                log_transition(TRANSFER_WORKFLOW, transfer, transition, actor_id)

            self._session.commit()
            return TransferCompleteResult(
                transfer=transfer.to_dto(),
                stock_transactions=tuple(t.to_dto() for t in txns),
            )
        except Exception:
            self._session.rollback()
            raise

    def cancel(self, transfer_id: UUID, actor_id: UUID) -> StockTransfer:
        """Cancel; an in-transit transfer releases its source reservations."""
        try:
            transfer = lock_document(self._session, StockTransferModel, transfer_id, ENTITY_TYPE)
            transition = apply_transition(TRANSFER_WORKFLOW, transfer, "cancel", actor_id)
            if transition is None:
                self._session.commit()
                return transfer.to_dto()

            with LogContext.bind(reference_id=transfer.id, actor_id=actor_id):
                if transition.from_state == TransferStatus.IN_TRANSIT.value:
                    self._reservations.release_lines(self._stock_lines(transfer))
                transfer.status = transition.to_state
                transfer.cancelled_at = self._clock.now()
                transfer.updated_by_id = actor_id
                self._session.flush()
                log_transition(TRANSFER_WORKFLOW, transfer, transition, actor_id)

            self._session.commit()
            return transfer.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def get(self, transfer_id: UUID) -> StockTransfer:
        return get_document(self._session, StockTransferModel, transfer_id, ENTITY_TYPE).to_dto()

    def list_transfers(self, status: TransferStatus | None = None) -> list[StockTransfer]:
        stmt = select(StockTransferModel).order_by(StockTransferModel.transfer_code)
        if status is not None:
            stmt = stmt.where(StockTransferModel.status == status.value)
        return [t.to_dto() for t in self._session.execute(stmt).scalars()]

    def _validate_route(
        self,
        from_warehouse_id: UUID,
        to_warehouse_id: UUID,
        lines: Sequence[TransferLineInput],
    ) -> None:
        if from_warehouse_id == to_warehouse_id:
            raise ValidationError(
                "to_warehouse_id", "source and destination warehouse must differ"
            )
        if not lines:
            raise ValidationError("lines", "at least one line is required")
        require_warehouse(self._session, from_warehouse_id)
        require_warehouse(self._session, to_warehouse_id)
        require_products(self._session, (l.product_id for l in lines))

    def _require_available(
        self, from_warehouse_id: UUID, lines: Sequence[TransferLineInput]
    ) -> None:
        report = self._inventory.check_availability(
            from_warehouse_id, [(l.product_id, l.quantity) for l in lines]
        )
        if not report.all_available:
            short = report.shortages[0]
            raise InsufficientStockError(
                warehouse_id=str(from_warehouse_id),
                product_id=str(short.product_id),
                requested=short.requested,
                available=short.available,
            )

    @staticmethod
    def _build_lines(
        lines: Sequence[TransferLineInput], actor_id: UUID
    ) -> list[StockTransferDetailModel]:
        return [
            StockTransferDetailModel(
                line_number=number,
                product_id=line.product_id,
                quantity=line.quantity,
                notes=line.notes,
                created_by_id=actor_id,
            )
            for number, line in enumerate(lines, start=1)
        ]

    @staticmethod
    def _stock_lines(transfer: StockTransferModel) -> list[StockLine]:
        return [
            StockLine(transfer.from_warehouse_id, line.product_id, line.quantity)
            for line in transfer.lines
        ]

    @staticmethod
    def _touched_keys(transfer: StockTransferModel) -> list[InventoryKey]:
        keys = []
        for line in transfer.lines:
            keys.append(InventoryKey(transfer.from_warehouse_id, line.product_id))
            keys.append(InventoryKey(transfer.to_warehouse_id, line.product_id))
        return keys
