"""
Sales Module Service (``erp_modules.sales.service``).

Responsibility
--------------
Orchestrates the sales order lifecycle over the kernel stock services:
``ReservationManager`` for holds taken at creation, ``StockLedger`` for
the exports written at approval and the re-imports written when a
prepared order is cancelled.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

Invariants
----------
- Each public method owns its transaction boundary: ``session.commit()``
  on success, ``session.rollback()`` and re-raise on any failure.  Kernel
  services only flush.
- Status changes go through ``SALES_ORDER_WORKFLOW``; a repeated action
  whose target is the current state is a no-op.
- The document row is locked before its status is read, so concurrent
  approve/cancel calls on one order serialize.

Failure Modes
-------------
- ``ValidationError`` / ``NotFoundError`` before any write.
- ``InsufficientStockError`` from a reservation or export; the whole call
  rolls back (no line keeps a partial effect).
- ``IllegalTransitionError`` for an action not legal from the current state.
- ``CompensationFailedError`` when re-importing the exports of a prepared
  order fails; the order stays ``preparing``.

Usage::

    service = SalesOrderService(session, clock)
    order = service.create(
        customer_id=customer_id, warehouse_id=warehouse_id,
        lines=[SalesOrderLineInput(product_id, Decimal("40"), Decimal("9.90"))],
        actor_id=actor_id,
    )
    order = service.approve(order.id, actor_id)
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.stock import ZERO, LedgerEntry, StockLine, TransactionType, require_positive
from erp_kernel.exceptions import (
    CompensationFailedError,
    ConflictError,
    ErpKernelError,
    ValidationError,
)
from erp_kernel.logging_config import LogContext, get_logger
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
from erp_modules.sales.config import SalesConfig
from erp_modules.sales.models import (
    SalesOrder,
    SalesOrderLineInput,
    SalesOrderStatus,
    compute_order_totals,
    compute_payment_status,
)
from erp_modules.sales.orm import SalesOrderDetailModel, SalesOrderModel
from erp_modules.sales.workflows import SALES_ORDER_WORKFLOW

logger = get_logger("modules.sales.service")

ENTITY_TYPE = "SalesOrder"
REFERENCE_TYPE = "sales_order"
CANCEL_REFERENCE_TYPE = "sales_order_cancel"


class SalesOrderService:
    """
    Orchestrates sales orders through reservation, export and reversal.

    Contract:
        Every public method either commits all of its effects (document rows,
        reservations, stock transactions) or rolls back all of them.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: SalesConfig | None = None,
        ledger: StockLedger | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or SalesConfig()
        self._ledger = ledger or StockLedger(session, self._clock)
        self._reservations = ReservationManager(session, self._ledger.store)
        self._sequences = SequenceService(session)

    # =========================================================================
    # Creation and editing
    # =========================================================================

    def create(
        self,
        customer_id: UUID,
        warehouse_id: UUID,
        lines: Sequence[SalesOrderLineInput],
        actor_id: UUID,
        shipping_fee: Decimal = ZERO,
        discount_amount: Decimal = ZERO,
        notes: str | None = None,
    ) -> SalesOrder:
        """
        Create a pending order and reserve every line.

        Preconditions:
            - At least one line; line fields validated by SalesOrderLineInput.
            - Warehouse and every product exist and are active.

        Postconditions:
            - Order persisted as ``pending`` with a fresh ``SO-YYYYMMDD-NNN``
              code, and ``reserved_quantity`` raised by each line's quantity.
            - On any failure nothing persists: no order, no reservation.

        Raises:
            ValidationError, NotFoundError, InsufficientStockError.
        """
        try:
            if not lines:
                raise ValidationError("lines", "at least one line is required")
            require_warehouse(self._session, warehouse_id)
            for line_warehouse_id in {l.warehouse_id for l in lines if l.warehouse_id}:
                require_warehouse(self._session, line_warehouse_id)
            require_products(self._session, (l.product_id for l in lines))
            totals = compute_order_totals(lines, shipping_fee, discount_amount)

            order = SalesOrderModel(
                order_code=self._sequences.next_document_code(
                    self._config.order_prefix, self._clock.today()
                ),
                customer_id=customer_id,
                warehouse_id=warehouse_id,
                status=SALES_ORDER_WORKFLOW.initial_state,
                payment_status=compute_payment_status(ZERO, totals.total_amount).value,
                subtotal=totals.subtotal,
                shipping_fee=totals.shipping_fee,
                discount_amount=totals.discount_amount,
                total_amount=totals.total_amount,
                paid_amount=ZERO,
                notes=notes,
                created_by_id=actor_id,
            )
            order.lines = [
                SalesOrderDetailModel.from_input(line, number, warehouse_id, actor_id)
                for number, line in enumerate(lines, start=1)
            ]
            self._session.add(order)
            self._session.flush()

            with LogContext.bind(order_id=order.id, actor_id=actor_id):
                self._reservations.reserve_lines(self._stock_lines(order))
                logger.info(
                    "sales_order_created",
                    extra={
                        "order_code": order.order_code,
                        "customer_id": str(customer_id),
                        "line_count": len(order.lines),
                        "total_amount": order.total_amount,
                    },
                )

            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def update(
        self,
        order_id: UUID,
        actor_id: UUID,
        lines: Sequence[SalesOrderLineInput] | None = None,
        shipping_fee: Decimal | None = None,
        discount_amount: Decimal | None = None,
        notes: str | None = None,
    ) -> SalesOrder:
        """
        Edit a pending order.

        When ``lines`` is given the old reservations are released and the
        new lines reserved in the same transaction; if the new lines cannot
        be reserved the order keeps its old lines and reservations.

        Raises:
            ConflictError: the order is not pending.
        """
        try:
            order = lock_document(self._session, SalesOrderModel, order_id, ENTITY_TYPE)
            require_editable(order, SalesOrderStatus.PENDING.value, ENTITY_TYPE, "update")

            if lines is not None:
                if not lines:
                    raise ValidationError("lines", "at least one line is required")
                require_products(self._session, (l.product_id for l in lines))
                self._reservations.release_lines(self._stock_lines(order))
                order.lines.clear()
                self._session.flush()
                order.lines.extend(
                    SalesOrderDetailModel.from_input(line, number, order.warehouse_id, actor_id)
                    for number, line in enumerate(lines, start=1)
                )
                self._session.flush()
                self._reservations.reserve_lines(self._stock_lines(order))

            totals = compute_order_totals(
                lines if lines is not None else self._line_inputs(order),
                order.shipping_fee if shipping_fee is None else shipping_fee,
                order.discount_amount if discount_amount is None else discount_amount,
            )
            if order.paid_amount > totals.total_amount:
                raise ValidationError(
                    "total_amount",
                    f"new total {totals.total_amount} is below the paid amount {order.paid_amount}",
                )
            order.subtotal = totals.subtotal
            order.shipping_fee = totals.shipping_fee
            order.discount_amount = totals.discount_amount
            order.total_amount = totals.total_amount
            order.payment_status = compute_payment_status(
                order.paid_amount, order.total_amount
            ).value
            if notes is not None:
                order.notes = notes
            order.updated_by_id = actor_id
            self._session.flush()

            logger.info(
                "sales_order_updated",
                extra={
                    "order_id": str(order.id),
                    "order_code": order.order_code,
                    "lines_replaced": lines is not None,
                    "total_amount": order.total_amount,
                },
            )
            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def delete(self, order_id: UUID, actor_id: UUID) -> None:
        """Remove a pending order, releasing its reservations."""
        try:
            order = lock_document(self._session, SalesOrderModel, order_id, ENTITY_TYPE)
            require_editable(order, SalesOrderStatus.PENDING.value, ENTITY_TYPE, "delete")
            self._reservations.release_lines(self._stock_lines(order))
            order_code = order.order_code
            self._session.delete(order)
            self._session.flush()
            logger.info(
                "sales_order_deleted",
                extra={
                    "order_id": str(order_id),
                    "order_code": order_code,
                    "actor_id": str(actor_id),
                },
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Transitions
    # =========================================================================

    def approve(self, order_id: UUID, actor_id: UUID) -> SalesOrder:
        """
        pending -> preparing: convert every reservation into an export.

        Preconditions:
            - Order is pending (approving a preparing order is a no-op).

        Postconditions:
            - For each line: reserved_quantity and quantity both drop by the
              line quantity, and one ``export`` transaction references the
              order.
            - If any line cannot be exported the whole approval rolls back:
              the order stays pending with all reservations intact.

        Raises:
            IllegalTransitionError: order is completed or cancelled.
            InsufficientStockError: a line could not be exported.
        """
        try:
            order = lock_document(self._session, SalesOrderModel, order_id, ENTITY_TYPE)
            transition = apply_transition(SALES_ORDER_WORKFLOW, order, "approve", actor_id)
            if transition is None:
                self._session.commit()
                return order.to_dto()

            with LogContext.bind(order_id=order.id, actor_id=actor_id):
                stock_lines = self._stock_lines(order)
                self._reservations.release_lines(stock_lines)
                txns = self._ledger.record_many(
                    self._entries(order, TransactionType.EXPORT, REFERENCE_TYPE),
                    actor_id,
                )

                order.status = transition.to_state
                order.approved_by_id = actor_id
                order.approved_at = self._clock.now()
                order.updated_by_id = actor_id
                self._session.flush()
                log_transition(SALES_ORDER_WORKFLOW, order, transition, actor_id)
                logger.info(
                    "sales_order_approved",
                    extra={
                        "order_code": order.order_code,
                        "transaction_codes": [t.transaction_code for t in txns],
                    },
                )

            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def complete(self, order_id: UUID, actor_id: UUID) -> SalesOrder:
        """preparing -> completed.  No stock mutation."""
        try:
            order = lock_document(self._session, SalesOrderModel, order_id, ENTITY_TYPE)
            transition = apply_transition(SALES_ORDER_WORKFLOW, order, "complete", actor_id)
            if transition is None:
                self._session.commit()
                return order.to_dto()

            order.status = transition.to_state
            order.completed_at = self._clock.now()
            order.updated_by_id = actor_id
            self._session.flush()
            log_transition(SALES_ORDER_WORKFLOW, order, transition, actor_id)

            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def cancel(
        self,
        order_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> SalesOrder:
        """
        Cancel a pending or preparing order.

        From pending every reservation is released.  From preparing the
        exports already written are reversed by importing the same
        quantities back (reference type ``sales_order_cancel``).
        Cancelling a cancelled order returns it unchanged.

        Raises:
            IllegalTransitionError: the order is completed.
            CompensationFailedError: re-importing the exports failed; the
                order stays preparing.
        """
        try:
            order = lock_document(self._session, SalesOrderModel, order_id, ENTITY_TYPE)
            transition = apply_transition(SALES_ORDER_WORKFLOW, order, "cancel", actor_id)
            if transition is None:
                self._session.commit()
                return order.to_dto()

            with LogContext.bind(order_id=order.id, actor_id=actor_id):
                if transition.from_state == SalesOrderStatus.PENDING.value:
                    self._reservations.release_lines(self._stock_lines(order))
                else:
                    self._reverse_exports(order, actor_id)

                order.status = transition.to_state
                order.cancelled_at = self._clock.now()
                order.cancel_reason = reason
                order.updated_by_id = actor_id
                self._session.flush()
                log_transition(SALES_ORDER_WORKFLOW, order, transition, actor_id)

            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def _reverse_exports(self, order: SalesOrderModel, actor_id: UUID) -> None:
        try:
            txns = self._ledger.record_many(
                self._entries(order, TransactionType.IMPORT, CANCEL_REFERENCE_TYPE),
                actor_id,
            )
        except ErpKernelError as exc:
            logger.error(
                "sales_order_reversal_failed",
                extra={"order_code": order.order_code, "error_code": exc.code},
                exc_info=True,
            )
            raise CompensationFailedError(
                ENTITY_TYPE, str(order.id), order.status, exc
            ) from exc
        logger.info(
            "sales_order_exports_reversed",
            extra={
                "order_code": order.order_code,
                "transaction_codes": [t.transaction_code for t in txns],
            },
        )

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(self, order_id: UUID, amount: Decimal, actor_id: UUID) -> SalesOrder:
        """
        Add ``amount`` to the paid amount and recompute the payment status.

        Raises:
            ValidationError: non-positive amount, or the payment would exceed
                the order total (unless the config allows overpayment).
            ConflictError: the order is cancelled.
        """
        try:
            require_positive("amount", amount)
            order = lock_document(self._session, SalesOrderModel, order_id, ENTITY_TYPE)
            if order.status == SalesOrderStatus.CANCELLED.value:
                raise ConflictError(
                    ENTITY_TYPE, str(order.id), order.status, "cannot record a payment"
                )
            new_paid = order.paid_amount + amount
            if new_paid > order.total_amount and not self._config.allow_overpayment:
                raise ValidationError(
                    "amount",
                    f"payment of {amount} exceeds the balance due "
                    f"({order.total_amount - order.paid_amount})",
                )
            order.paid_amount = new_paid
            order.payment_status = compute_payment_status(new_paid, order.total_amount).value
            order.updated_by_id = actor_id
            self._session.flush()
            logger.info(
                "sales_order_payment_recorded",
                extra={
                    "order_id": str(order.id),
                    "amount": amount,
                    "paid_amount": new_paid,
                    "payment_status": order.payment_status,
                },
            )
            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, order_id: UUID) -> SalesOrder:
        return get_document(self._session, SalesOrderModel, order_id, ENTITY_TYPE).to_dto()

    def list_orders(
        self,
        status: SalesOrderStatus | None = None,
        customer_id: UUID | None = None,
        warehouse_id: UUID | None = None,
    ) -> list[SalesOrder]:
        stmt = select(SalesOrderModel).order_by(SalesOrderModel.order_code)
        if status is not None:
            stmt = stmt.where(SalesOrderModel.status == status.value)
        if customer_id is not None:
            stmt = stmt.where(SalesOrderModel.customer_id == customer_id)
        if warehouse_id is not None:
            stmt = stmt.where(SalesOrderModel.warehouse_id == warehouse_id)
        return [order.to_dto() for order in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _stock_lines(order: SalesOrderModel) -> list[StockLine]:
        return [
            StockLine(line.warehouse_id, line.product_id, line.quantity)
            for line in order.lines
        ]

    @staticmethod
    def _line_inputs(order: SalesOrderModel) -> list[SalesOrderLineInput]:
        return [
            SalesOrderLineInput(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                discount_percent=line.discount_percent,
                tax_rate=line.tax_rate,
                warehouse_id=line.warehouse_id,
            )
            for line in order.lines
        ]

    def _entries(
        self,
        order: SalesOrderModel,
        transaction_type: TransactionType,
        reference_type: str,
    ) -> list[LedgerEntry]:
        products = load_products(self._session, (l.product_id for l in order.lines))
        return [
            LedgerEntry(
                warehouse_id=line.warehouse_id,
                product_id=line.product_id,
                transaction_type=transaction_type,
                quantity=line.quantity,
                unit_cost=products[line.product_id].standard_cost,
                reference_type=reference_type,
                reference_id=order.id,
                reason=f"{reference_type} {order.order_code}",
            )
            for line in order.lines
        ]
