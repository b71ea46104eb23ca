"""
Production Module Service (``erp_modules.production.service``).

Responsibility
--------------
Orchestrates production orders over the kernel ledger: planned materials
are resolved from an approved BOM at creation, exported at start, the
finished product is imported at completion, and a cancelled run returns
its materials.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper around
``BomService.requirements_for``, ``StockLedger`` and
``InventorySelector``.

Invariants
----------
- Each public method owns its transaction (commit / rollback + re-raise).
- Creation never moves stock.  Start exports every material or none.
- Only a pending order can be edited or deleted; a new planned quantity
  re-plans the materials from the BOM.
- A cancel from in_progress re-imports exactly the issued quantities in
  the same transaction as the status change.  If that fails the order
  stays in_progress and ``CompensationFailedError`` is raised.

Failure Modes
-------------
- ``ValidationError`` for a BOM that is not approved, bad quantities, or
  usage figures naming a material that is not on the order.
- ``InsufficientStockError`` at start; nothing is exported.
- ``IllegalTransitionError`` for actions not legal from the current state.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.stock import (
    ZERO,
    AvailabilityLine,
    AvailabilityReport,
    LedgerEntry,
    TransactionType,
    require_positive,
)
from erp_kernel.exceptions import (
    CompensationFailedError,
    ErpKernelError,
    ValidationError,
)
from erp_kernel.logging_config import LogContext, get_logger
from erp_kernel.selectors.inventory_selector import InventorySelector
from erp_kernel.services.sequence_service import SequenceService
from erp_kernel.services.stock_ledger import StockLedger
from erp_modules._document_helpers import (
    apply_transition,
    get_document,
    load_products,
    lock_document,
    log_transition,
    require_editable,
    require_warehouse,
)
from erp_modules.bom.config import BomConfig
from erp_modules.bom.orm import BillOfMaterialsModel
from erp_modules.bom.service import BomService
from erp_modules.production.config import ProductionConfig
from erp_modules.production.models import (
    MaterialUsage,
    ProductionCancelResult,
    ProductionCompleteResult,
    ProductionOrder,
    ProductionOrderCreated,
    ProductionOrderStatus,
    ProductionStartResult,
    WastageReport,
    WastageReportLine,
)
from erp_modules.production.orm import ProductionOrderMaterialModel, ProductionOrderModel
from erp_modules.production.workflows import PRODUCTION_ORDER_WORKFLOW

logger = get_logger("modules.production.service")

ENTITY_TYPE = "ProductionOrder"
REFERENCE_TYPE = "production_order"
CANCEL_REFERENCE_TYPE = "production_order_cancel"


class ProductionOrderService:
    """
    Orchestrates production orders through material export and output import.

    Contract:
        Every public method either commits all of its effects or rolls
        back all of them.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ProductionConfig | None = None,
        bom_config: BomConfig | None = None,
        ledger: StockLedger | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ProductionConfig()
        self._ledger = ledger or StockLedger(session, self._clock)
        self._boms = BomService(session, self._clock, bom_config)
        self._sequences = SequenceService(session)
        self._inventory = InventorySelector(session)

    # =========================================================================
    # Creation
    # =========================================================================

    def create(
        self,
        bom_id: UUID,
        planned_quantity: Decimal,
        warehouse_id: UUID,
        actor_id: UUID,
        material_warehouses: dict[UUID, UUID] | None = None,
        notes: str | None = None,
    ) -> ProductionOrderCreated:
        """
        Plan a production run from an approved BOM.

        Args:
            material_warehouses: Optional per-material source warehouse;
                materials not listed are taken from ``warehouse_id``.

        Postconditions:
            - Order persisted as ``pending`` with ``MO-YYYYMMDD-NNN`` code and
              one planned material per BOM line.
            - No stock moves.  The returned availability report flags
              shortages without blocking creation.

        Raises:
            ValidationError: BOM not approved or planned quantity not positive.
            NotFoundError: unknown BOM or warehouse.
        """
        try:
            require_positive("planned_quantity", planned_quantity)
            require_warehouse(self._session, warehouse_id)
            material_warehouses = material_warehouses or {}
            for source_id in set(material_warehouses.values()):
                require_warehouse(self._session, source_id)

            bom = get_document(self._session, BillOfMaterialsModel, bom_id, "BillOfMaterials")

            order = ProductionOrderModel(
                order_code=self._sequences.next_document_code(
                    self._config.order_prefix, self._clock.today()
                ),
                bom_id=bom.id,
                finished_product_id=bom.finished_product_id,
                warehouse_id=warehouse_id,
                status=PRODUCTION_ORDER_WORKFLOW.initial_state,
                planned_quantity=planned_quantity,
                notes=notes,
                created_by_id=actor_id,
            )
            order.materials = self._plan_materials(
                bom, planned_quantity, warehouse_id, material_warehouses, actor_id
            )
            self._session.add(order)
            self._session.flush()

            availability = self._availability(order)
            logger.info(
                "production_order_created",
                extra={
                    "order_id": str(order.id),
                    "order_code": order.order_code,
                    "bom_id": str(bom.id),
                    "planned_quantity": planned_quantity,
                    "material_count": len(order.materials),
                    "all_materials_available": availability.all_available,
                },
            )
            self._log_shortages(order, availability)

            self._session.commit()
            return ProductionOrderCreated(order=order.to_dto(), availability=availability)
        except Exception:
            self._session.rollback()
            raise

    def update(
        self,
        order_id: UUID,
        actor_id: UUID,
        planned_quantity: Decimal | None = None,
        notes: str | None = None,
    ) -> ProductionOrder:
        """
        Edit a pending order.

        A new planned quantity re-plans every material from the BOM, keeping
        each material's source warehouse.  Shortages are logged, not raised.

        Raises:
            ConflictError: the order is not pending.
            ValidationError: non-positive quantity, or the BOM is no longer
                approved.
        """
        try:
            order = lock_document(self._session, ProductionOrderModel, order_id, ENTITY_TYPE)
            require_editable(order, ProductionOrderStatus.PENDING.value, ENTITY_TYPE, "update")

            if planned_quantity is not None:
                require_positive("planned_quantity", planned_quantity)
                sources = {m.material_id: m.warehouse_id for m in order.materials}
                bom = get_document(
                    self._session, BillOfMaterialsModel, order.bom_id, "BillOfMaterials"
                )
                order.materials.clear()
                self._session.flush()
                order.materials.extend(
                    self._plan_materials(bom, planned_quantity, order.warehouse_id, sources, actor_id)
                )
                order.planned_quantity = planned_quantity
            if notes is not None:
                order.notes = notes
            order.updated_by_id = actor_id
            self._session.flush()

            logger.info(
                "production_order_updated",
                extra={
                    "order_id": str(order.id),
                    "order_code": order.order_code,
                    "planned_quantity": order.planned_quantity,
                    "replanned": planned_quantity is not None,
                },
            )
            if planned_quantity is not None:
                self._log_shortages(order, self._availability(order))

            self._session.commit()
            return order.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def delete(self, order_id: UUID, actor_id: UUID) -> None:
        """Remove a pending order.  Nothing was issued, so no stock moves."""
        try:
            order = lock_document(self._session, ProductionOrderModel, order_id, ENTITY_TYPE)
            require_editable(order, ProductionOrderStatus.PENDING.value, ENTITY_TYPE, "delete")
            order_code = order.order_code
            self._session.delete(order)
            self._session.flush()
            logger.info(
                "production_order_deleted",
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

    def start(
        self,
        order_id: UUID,
        actor_id: UUID,
        materials: Sequence[MaterialUsage] = (),
    ) -> ProductionStartResult:
        """
        pending -> in_progress: export every material.

        Each material is exported at its warehouse; the quantity is the one
        given in ``materials`` or, when absent, the planned quantity.  A
        material with quantity zero is not exported.

        Raises:
            InsufficientStockError: some material is short; nothing is
                exported and the order stays pending.
        """
        try:
            order = lock_document(self._session, ProductionOrderModel, order_id, ENTITY_TYPE)
            transition = apply_transition(PRODUCTION_ORDER_WORKFLOW, order, "start", actor_id)
            if transition is None:
                self._session.commit()
                return ProductionStartResult(order=order.to_dto(), stock_transactions=())

            overrides = self._usage_by_material(order, materials)
            costs = self._standard_costs(order)
            entries = []
            for material in order.materials:
                material.issued_quantity = overrides.get(
                    material.material_id, material.planned_quantity
                )
                if material.issued_quantity > ZERO:
                    entries.append(
                        LedgerEntry(
                            warehouse_id=material.warehouse_id,
                            product_id=material.material_id,
                            transaction_type=TransactionType.EXPORT,
                            quantity=material.issued_quantity,
                            unit_cost=costs[material.material_id],
                            reference_type=REFERENCE_TYPE,
                            reference_id=order.id,
                            reason=f"material issue {order.order_code}",
                        )
                    )

            with LogContext.bind(order_id=order.id, actor_id=actor_id):
                txns = self._ledger.record_many(entries, actor_id)

                order.status = transition.to_state
                order.started_at = self._clock.now()
                order.updated_by_id = actor_id
                self._session.flush()
                log_transition(PRODUCTION_ORDER_WORKFLOW, order, transition, actor_id)

            self._session.commit()
            return ProductionStartResult(
                order=order.to_dto(),
                stock_transactions=tuple(t.to_dto() for t in txns),
            )
        except Exception:
            self._session.rollback()
            raise

    def complete(
        self,
        order_id: UUID,
        actual_quantity: Decimal,
        actor_id: UUID,
        materials: Sequence[MaterialUsage] = (),
    ) -> ProductionCompleteResult:
        """
        in_progress -> completed: import the finished product.

        Args:
            actual_quantity: Finished units produced (>= 0).  Zero output
                writes no import.
            materials: Optional consumption figures; materials not listed
                consumed what was issued at start.

        Postconditions:
            - ``total_wastage = planned_quantity - actual_quantity`` (negative
              for overproduction, which is flagged in the log).
            - Per material ``wastage = planned - actual consumption``.

        Raises:
            ValidationError: negative output, or overproduction when the
                config forbids it.
        """
        try:
            if not isinstance(actual_quantity, Decimal) or actual_quantity < ZERO:
                raise ValidationError("actual_quantity", f"must be a non-negative Decimal, got {actual_quantity}")
            order = lock_document(self._session, ProductionOrderModel, order_id, ENTITY_TYPE)
            transition = apply_transition(PRODUCTION_ORDER_WORKFLOW, order, "complete", actor_id)
            if transition is None:
                self._session.commit()
                return ProductionCompleteResult(
                    order=order.to_dto(),
                    stock_transaction=None,
                    total_wastage=order.total_wastage,
                )

            total_wastage = order.planned_quantity - actual_quantity
            if total_wastage < ZERO:
                logger.warning(
                    "production_overproduction",
                    extra={
                        "order_code": order.order_code,
                        "planned_quantity": order.planned_quantity,
                        "actual_quantity": actual_quantity,
                    },
                )
                if not self._config.allow_overproduction:
                    raise ValidationError(
                        "actual_quantity",
                        f"{actual_quantity} exceeds the planned {order.planned_quantity}",
                    )

            consumption = self._usage_by_material(order, materials)
            for material in order.materials:
                issued = material.issued_quantity if material.issued_quantity is not None else ZERO
                material.actual_quantity = consumption.get(material.material_id, issued)
                material.wastage = material.planned_quantity - material.actual_quantity

            with LogContext.bind(order_id=order.id, actor_id=actor_id):
                txn = None
                if actual_quantity > ZERO:
                    costs = self._standard_costs(order)
                    txn = self._ledger.record(
                        LedgerEntry(
                            warehouse_id=order.warehouse_id,
                            product_id=order.finished_product_id,
                            transaction_type=TransactionType.IMPORT,
                            quantity=actual_quantity,
                            unit_cost=costs[order.finished_product_id],
                            reference_type=REFERENCE_TYPE,
                            reference_id=order.id,
                            reason=f"production output {order.order_code}",
                        ),
                        actor_id,
                    )

                order.actual_quantity = actual_quantity
                order.total_wastage = total_wastage
                order.status = transition.to_state
                order.completed_at = self._clock.now()
                order.updated_by_id = actor_id
                self._session.flush()
                log_transition(PRODUCTION_ORDER_WORKFLOW, order, transition, actor_id)
                logger.info(
                    "production_order_completed",
                    extra={
                        "order_code": order.order_code,
                        "actual_quantity": actual_quantity,
                        "total_wastage": total_wastage,
                    },
                )

            self._session.commit()
            return ProductionCompleteResult(
                order=order.to_dto(),
                stock_transaction=txn.to_dto() if txn is not None else None,
                total_wastage=total_wastage,
            )
        except Exception:
            self._session.rollback()
            raise

    def cancel(
        self,
        order_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> ProductionCancelResult:
        """
        Cancel a pending or in-progress order.

        From pending nothing moves.  From in_progress every issued material
        is imported back before the status changes.  Cancelling a cancelled
        order is a no-op.

        Raises:
            IllegalTransitionError: the order is completed.
            CompensationFailedError: the material rollback failed; the order
                stays in_progress.
        """
        try:
            order = lock_document(self._session, ProductionOrderModel, order_id, ENTITY_TYPE)
            transition = apply_transition(PRODUCTION_ORDER_WORKFLOW, order, "cancel", actor_id)
            if transition is None:
                self._session.commit()
                return ProductionCancelResult(order=order.to_dto())

            with LogContext.bind(order_id=order.id, actor_id=actor_id):
                rollback = []
                if transition.from_state == ProductionOrderStatus.IN_PROGRESS.value:
                    rollback = self._return_materials(order, actor_id)

                order.status = transition.to_state
                order.cancelled_at = self._clock.now()
                order.cancel_reason = reason
                order.updated_by_id = actor_id
                self._session.flush()
                log_transition(PRODUCTION_ORDER_WORKFLOW, order, transition, actor_id)

            self._session.commit()
            return ProductionCancelResult(
                order=order.to_dto(),
                material_rollback=tuple(t.to_dto() for t in rollback),
            )
        except Exception:
            self._session.rollback()
            raise

    def _return_materials(self, order: ProductionOrderModel, actor_id: UUID):
        costs = self._standard_costs(order)
        entries = [
            LedgerEntry(
                warehouse_id=m.warehouse_id,
                product_id=m.material_id,
                transaction_type=TransactionType.IMPORT,
                quantity=m.issued_quantity,
                unit_cost=costs[m.material_id],
                reference_type=CANCEL_REFERENCE_TYPE,
                reference_id=order.id,
                reason=f"material return {order.order_code}",
            )
            for m in order.materials
            if m.issued_quantity is not None and m.issued_quantity > ZERO
        ]
        try:
            txns = self._ledger.record_many(entries, actor_id)
        except ErpKernelError as exc:
            logger.error(
                "production_material_rollback_failed",
                extra={"order_code": order.order_code, "error_code": exc.code},
                exc_info=True,
            )
            raise CompensationFailedError(
                ENTITY_TYPE, str(order.id), order.status, exc
            ) from exc
        logger.info(
            "production_materials_returned",
            extra={
                "order_code": order.order_code,
                "transaction_codes": [t.transaction_code for t in txns],
            },
        )
        return txns

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, order_id: UUID) -> ProductionOrder:
        return get_document(self._session, ProductionOrderModel, order_id, ENTITY_TYPE).to_dto()

    def list_orders(self, status: ProductionOrderStatus | None = None) -> list[ProductionOrder]:
        stmt = select(ProductionOrderModel).order_by(ProductionOrderModel.order_code)
        if status is not None:
            stmt = stmt.where(ProductionOrderModel.status == status.value)
        return [order.to_dto() for order in self._session.execute(stmt).scalars()]

    def wastage_report(self, order_id: UUID) -> WastageReport:
        """
        Planned vs actual material use, with wastage cost at standard cost.

        Before completion the actual figure of a material is what was issued
        (zero for a pending order).
        """
        order = get_document(self._session, ProductionOrderModel, order_id, ENTITY_TYPE)
        products = load_products(self._session, (m.material_id for m in order.materials))
        lines = []
        for m in order.materials:
            if m.actual_quantity is not None:
                actual = m.actual_quantity
            elif m.issued_quantity is not None:
                actual = m.issued_quantity
            else:
                actual = ZERO
            product = products[m.material_id]
            lines.append(
                WastageReportLine(
                    material_id=m.material_id,
                    sku=product.sku,
                    unit=m.unit,
                    planned_quantity=m.planned_quantity,
                    actual_quantity=actual,
                    standard_cost=product.standard_cost,
                )
            )
        return WastageReport(
            order_id=order.id,
            order_code=order.order_code,
            status=ProductionOrderStatus(order.status),
            planned_quantity=order.planned_quantity,
            actual_quantity=order.actual_quantity,
            lines=tuple(lines),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _plan_materials(
        self,
        bom: BillOfMaterialsModel,
        planned_quantity: Decimal,
        warehouse_id: UUID,
        material_warehouses: dict[UUID, UUID],
        actor_id: UUID,
    ) -> list[ProductionOrderMaterialModel]:
        requirements = self._boms.requirements_for(bom, planned_quantity)
        return [
            ProductionOrderMaterialModel(
                line_number=number,
                material_id=r.material_id,
                warehouse_id=material_warehouses.get(r.material_id, warehouse_id),
                unit=r.unit,
                planned_quantity=r.required_quantity,
                created_by_id=actor_id,
            )
            for number, r in enumerate(requirements.materials, start=1)
        ]

    @staticmethod
    def _log_shortages(order: ProductionOrderModel, availability: AvailabilityReport) -> None:
        if availability.all_available:
            return
        logger.warning(
            "production_order_material_shortage",
            extra={
                "order_code": order.order_code,
                "shortages": {
                    str(line.product_id): str(line.shortfall)
                    for line in availability.shortages
                },
            },
        )

    def _availability(self, order: ProductionOrderModel) -> AvailabilityReport:
        lines = []
        for m in order.materials:
            snapshot = self._inventory.snapshot(m.warehouse_id, m.material_id)
            lines.append(
                AvailabilityLine(
                    product_id=m.material_id,
                    requested=m.planned_quantity,
                    available=snapshot.available_quantity,
                )
            )
        return AvailabilityReport(warehouse_id=order.warehouse_id, lines=tuple(lines))

    @staticmethod
    def _usage_by_material(
        order: ProductionOrderModel,
        usage: Sequence[MaterialUsage],
    ) -> dict[UUID, Decimal]:
        known = {m.material_id for m in order.materials}
        figures: dict[UUID, Decimal] = {}
        for item in usage:
            if item.material_id not in known:
                raise ValidationError(
                    "materials", f"material {item.material_id} is not on order {order.order_code}"
                )
            if item.material_id in figures:
                raise ValidationError(
                    "materials", f"material {item.material_id} is listed more than once"
                )
            figures[item.material_id] = item.quantity
        return figures

    def _standard_costs(self, order: ProductionOrderModel) -> dict[UUID, Decimal]:
        ids = [m.material_id for m in order.materials] + [order.finished_product_id]
        return {pid: p.standard_cost for pid, p in load_products(self._session, ids).items()}
