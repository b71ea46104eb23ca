"""
erp_services.operations -- Synchronous entry point for callers outside the core.

Responsibility:
    One method per business operation.  Each call opens its own session
    from the configured factory, builds the module service it needs with
    policy taken from ``ErpConfig``, lets that service commit or roll back,
    and closes the session.  Cache invalidation keys are emitted only after
    the service has committed.

Architecture position:
    Services layer.  May import from erp_modules/, erp_kernel/ and
    erp_config/.  Contains no business rules of its own.

Usage:
    from erp_kernel.db.engine import get_session_factory
    from erp_services.operations import ErpOperations

    ops = ErpOperations(get_session_factory(), config=get_active_config())
    order = ops.create_sales_order(customer_id, warehouse_id, lines, actor_id)
    ops.approve_sales_order(order.id, actor_id)
"""

from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal
from typing import Callable, Generator, Iterable, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from erp_config.schema import ErpConfig
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.stock import (
    ZERO,
    AvailabilityReport,
    StockTransactionRecord,
    TransactionType,
)
from erp_kernel.selectors.inventory_selector import InventorySelector, LowStockAlert
from erp_kernel.services.stock_ledger import StockLedger
from erp_modules.bom.config import BomConfig
from erp_modules.bom.models import BillOfMaterials, BomMaterialInput, BomRequirements
from erp_modules.bom.service import BomService
from erp_modules.production.config import ProductionConfig
from erp_modules.production.models import (
    MaterialUsage,
    ProductionCancelResult,
    ProductionCompleteResult,
    ProductionOrder,
    ProductionOrderCreated,
    ProductionStartResult,
    WastageReport,
)
from erp_modules.production.service import ProductionOrderService
from erp_modules.sales.config import SalesConfig
from erp_modules.sales.models import SalesOrder, SalesOrderLineInput
from erp_modules.sales.service import SalesOrderService
from erp_modules.stock.models import StocktakeCount, StocktakeResult
from erp_modules.stock.service import StockOperationsService
from erp_modules.transfer.config import TransferConfig
from erp_modules.transfer.models import (
    StockTransfer,
    TransferCompleteResult,
    TransferLineInput,
)
from erp_modules.transfer.service import StockTransferService
from erp_services.cache import (
    CacheInvalidator,
    NullCacheInvalidator,
    bom_key,
    emit_invalidation,
    inventory_key,
    production_order_key,
    sales_order_key,
    transfer_key,
)
from erp_services.reconciliation_service import (
    HoldRecord,
    ReconciliationReport,
    ReconciliationService,
)


def _sales_order_keys(order: SalesOrder) -> list[str]:
    keys = [sales_order_key(order.id)]
    keys.extend(inventory_key(l.warehouse_id, l.product_id) for l in order.lines)
    return keys


def _production_order_keys(
    order: ProductionOrder,
    txns: Iterable[StockTransactionRecord | None],
) -> list[str]:
    """The order plus only the inventory keys its transactions touched."""
    return [production_order_key(order.id)] + _transaction_keys(t for t in txns if t is not None)


def _transfer_keys(transfer: StockTransfer) -> list[str]:
    keys = [transfer_key(transfer.id)]
    for line in transfer.lines:
        keys.append(inventory_key(transfer.from_warehouse_id, line.product_id))
        keys.append(inventory_key(transfer.to_warehouse_id, line.product_id))
    return keys


def _transaction_keys(txns: Iterable[StockTransactionRecord]) -> list[str]:
    return [inventory_key(t.warehouse_id, t.product_id) for t in txns]


class ErpOperations:
    """
    Session-per-operation facade over the module services.

    Args:
        session_factory: Zero-argument callable returning a new ``Session``
            (typically ``erp_kernel.db.engine.get_session_factory()``).
        config: Numbering and inventory policy; defaults to ``ErpConfig()``.
        clock: Time source shared by every service.
        cache: Receives invalidation keys after each successful commit.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        config: ErpConfig | None = None,
        clock: Clock | None = None,
        cache: CacheInvalidator | None = None,
    ):
        self._session_factory = session_factory
        self._config = config or ErpConfig()
        self._clock = clock or SystemClock()
        self._cache = cache or NullCacheInvalidator()

        numbering = self._config.numbering
        policy = self._config.inventory
        self._sales_config = SalesConfig(
            order_prefix=numbering.sales_order,
            allow_overpayment=policy.allow_overpayment,
        )
        self._production_config = ProductionConfig(
            order_prefix=numbering.production_order,
            allow_overproduction=policy.allow_overproduction,
        )
        self._transfer_config = TransferConfig(transfer_prefix=numbering.transfer)
        self._bom_config = BomConfig(
            default_efficiency_rate=policy.default_efficiency_rate,
            default_increment=policy.default_increment,
            unit_increments=dict(policy.unit_increments),
        )
        self._transaction_prefixes = {
            TransactionType(name): prefix for name, prefix in numbering.transactions.items()
        }

    # =========================================================================
    # Plumbing
    # =========================================================================

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    def _ledger(self, session: Session) -> StockLedger:
        return StockLedger(
            session,
            self._clock,
            prefixes=self._transaction_prefixes,
            verify_on_write=self._config.inventory.verify_on_write,
        )

    def _sales(self, session: Session) -> SalesOrderService:
        return SalesOrderService(session, self._clock, self._sales_config, self._ledger(session))

    def _production(self, session: Session) -> ProductionOrderService:
        return ProductionOrderService(
            session,
            self._clock,
            self._production_config,
            self._bom_config,
            self._ledger(session),
        )

    def _transfers(self, session: Session) -> StockTransferService:
        return StockTransferService(session, self._clock, self._transfer_config, self._ledger(session))

    def _stock(self, session: Session) -> StockOperationsService:
        return StockOperationsService(session, self._clock, self._ledger(session))

    def _invalidate(self, keys: Iterable[str]) -> None:
        emit_invalidation(self._cache, keys)

    # =========================================================================
    # Inventory reads
    # =========================================================================

    def check_availability(
        self,
        warehouse_id: UUID,
        items: Sequence[tuple[UUID, Decimal]],
    ) -> AvailabilityReport:
        with self._session() as session:
            return InventorySelector(session).check_availability(warehouse_id, items)

    def low_stock_alerts(self, warehouse_id: UUID | None = None) -> list[LowStockAlert]:
        with self._session() as session:
            return InventorySelector(session).low_stock_alerts(warehouse_id)

    # =========================================================================
    # Sales orders
    # =========================================================================

    def create_sales_order(
        self,
        customer_id: UUID,
        warehouse_id: UUID,
        lines: Sequence[SalesOrderLineInput],
        actor_id: UUID,
        shipping_fee: Decimal = ZERO,
        discount_amount: Decimal = ZERO,
        notes: str | None = None,
    ) -> SalesOrder:
        with self._session() as session:
            order = self._sales(session).create(
                customer_id, warehouse_id, lines, actor_id,
                shipping_fee=shipping_fee, discount_amount=discount_amount, notes=notes,
            )
        self._invalidate(_sales_order_keys(order))
        return order

    def update_sales_order(
        self,
        order_id: UUID,
        actor_id: UUID,
        lines: Sequence[SalesOrderLineInput] | None = None,
        shipping_fee: Decimal | None = None,
        discount_amount: Decimal | None = None,
        notes: str | None = None,
    ) -> SalesOrder:
        with self._session() as session:
            service = self._sales(session)
            before = service.get(order_id)
            order = service.update(
                order_id, actor_id, lines=lines, shipping_fee=shipping_fee,
                discount_amount=discount_amount, notes=notes,
            )
        self._invalidate(_sales_order_keys(before) + _sales_order_keys(order))
        return order

    def delete_sales_order(self, order_id: UUID, actor_id: UUID) -> None:
        with self._session() as session:
            service = self._sales(session)
            before = service.get(order_id)
            service.delete(order_id, actor_id)
        self._invalidate(_sales_order_keys(before))

    def approve_sales_order(self, order_id: UUID, actor_id: UUID) -> SalesOrder:
        with self._session() as session:
            order = self._sales(session).approve(order_id, actor_id)
        self._invalidate(_sales_order_keys(order))
        return order

    def complete_sales_order(self, order_id: UUID, actor_id: UUID) -> SalesOrder:
        with self._session() as session:
            order = self._sales(session).complete(order_id, actor_id)
        self._invalidate([sales_order_key(order.id)])
        return order

    def cancel_sales_order(
        self,
        order_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> SalesOrder:
        with self._session() as session:
            order = self._sales(session).cancel(order_id, actor_id, reason=reason)
        self._invalidate(_sales_order_keys(order))
        return order

    def record_payment(self, order_id: UUID, amount: Decimal, actor_id: UUID) -> SalesOrder:
        with self._session() as session:
            order = self._sales(session).record_payment(order_id, amount, actor_id)
        self._invalidate([sales_order_key(order.id)])
        return order

    def get_sales_order(self, order_id: UUID) -> SalesOrder:
        with self._session() as session:
            return self._sales(session).get(order_id)

    # =========================================================================
    # Bills of materials
    # =========================================================================

    def create_bom(
        self,
        bom_code: str,
        finished_product_id: UUID,
        output_quantity: Decimal,
        materials: Sequence[BomMaterialInput],
        actor_id: UUID,
        efficiency_rate: Decimal | None = None,
        version: str | None = None,
        notes: str | None = None,
    ) -> BillOfMaterials:
        with self._session() as session:
            bom = BomService(session, self._clock, self._bom_config).create(
                bom_code, finished_product_id, output_quantity, materials, actor_id,
                efficiency_rate=efficiency_rate, version=version, notes=notes,
            )
        self._invalidate([bom_key(bom.id)])
        return bom

    def approve_bom(self, bom_id: UUID, actor_id: UUID) -> BillOfMaterials:
        with self._session() as session:
            bom = BomService(session, self._clock, self._bom_config).approve(bom_id, actor_id)
        self._invalidate([bom_key(bom.id)])
        return bom

    def deactivate_bom(self, bom_id: UUID, actor_id: UUID) -> BillOfMaterials:
        with self._session() as session:
            bom = BomService(session, self._clock, self._bom_config).deactivate(bom_id, actor_id)
        self._invalidate([bom_key(bom.id)])
        return bom

    def new_bom_version(self, bom_id: UUID, actor_id: UUID, notes: str | None = None) -> BillOfMaterials:
        with self._session() as session:
            bom = BomService(session, self._clock, self._bom_config).new_version(
                bom_id, actor_id, notes=notes
            )
        self._invalidate([bom_key(bom.id)])
        return bom

    def resolve_bom_requirements(self, bom_id: UUID, target_output_quantity: Decimal) -> BomRequirements:
        with self._session() as session:
            return BomService(session, self._clock, self._bom_config).resolve_requirements(
                bom_id, target_output_quantity
            )

    # =========================================================================
    # Production orders
    # =========================================================================

    def create_production_order(
        self,
        bom_id: UUID,
        planned_quantity: Decimal,
        warehouse_id: UUID,
        actor_id: UUID,
        material_warehouses: dict[UUID, UUID] | None = None,
        notes: str | None = None,
    ) -> ProductionOrderCreated:
        with self._session() as session:
            created = self._production(session).create(
                bom_id, planned_quantity, warehouse_id, actor_id,
                material_warehouses=material_warehouses, notes=notes,
            )
        self._invalidate([production_order_key(created.order.id)])
        return created

    def update_production_order(
        self,
        order_id: UUID,
        actor_id: UUID,
        planned_quantity: Decimal | None = None,
        notes: str | None = None,
    ) -> ProductionOrder:
        with self._session() as session:
            order = self._production(session).update(
                order_id, actor_id, planned_quantity=planned_quantity, notes=notes
            )
        self._invalidate([production_order_key(order.id)])
        return order

    def delete_production_order(self, order_id: UUID, actor_id: UUID) -> None:
        with self._session() as session:
            self._production(session).delete(order_id, actor_id)
        self._invalidate([production_order_key(order_id)])

    def start_production(
        self,
        order_id: UUID,
        actor_id: UUID,
        materials: Sequence[MaterialUsage] = (),
    ) -> ProductionStartResult:
        with self._session() as session:
            result = self._production(session).start(order_id, actor_id, materials=materials)
        self._invalidate(_production_order_keys(result.order, result.stock_transactions))
        return result

    def complete_production(
        self,
        order_id: UUID,
        actual_quantity: Decimal,
        actor_id: UUID,
        materials: Sequence[MaterialUsage] = (),
    ) -> ProductionCompleteResult:
        with self._session() as session:
            result = self._production(session).complete(
                order_id, actual_quantity, actor_id, materials=materials
            )
        self._invalidate(_production_order_keys(result.order, [result.stock_transaction]))
        return result

    def cancel_production(
        self,
        order_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> ProductionCancelResult:
        with self._session() as session:
            result = self._production(session).cancel(order_id, actor_id, reason=reason)
        self._invalidate(_production_order_keys(result.order, result.material_rollback))
        return result

    def production_wastage_report(self, order_id: UUID) -> WastageReport:
        with self._session() as session:
            return self._production(session).wastage_report(order_id)

    # =========================================================================
    # Transfers
    # =========================================================================

    def create_transfer(
        self,
        from_warehouse_id: UUID,
        to_warehouse_id: UUID,
        lines: Sequence[TransferLineInput],
        actor_id: UUID,
        notes: str | None = None,
    ) -> StockTransfer:
        with self._session() as session:
            transfer = self._transfers(session).create(
                from_warehouse_id, to_warehouse_id, lines, actor_id, notes=notes
            )
        self._invalidate([transfer_key(transfer.id)])
        return transfer

    def update_transfer(
        self,
        transfer_id: UUID,
        actor_id: UUID,
        from_warehouse_id: UUID | None = None,
        to_warehouse_id: UUID | None = None,
        lines: Sequence[TransferLineInput] | None = None,
        notes: str | None = None,
    ) -> StockTransfer:
        with self._session() as session:
            transfer = self._transfers(session).update(
                transfer_id, actor_id, from_warehouse_id=from_warehouse_id,
                to_warehouse_id=to_warehouse_id, lines=lines, notes=notes,
            )
        self._invalidate([transfer_key(transfer.id)])
        return transfer

    def delete_transfer(self, transfer_id: UUID, actor_id: UUID) -> None:
        with self._session() as session:
            self._transfers(session).delete(transfer_id, actor_id)
        self._invalidate([transfer_key(transfer_id)])

    def approve_transfer(self, transfer_id: UUID, actor_id: UUID) -> StockTransfer:
        with self._session() as session:
            transfer = self._transfers(session).approve(transfer_id, actor_id)
        self._invalidate(_transfer_keys(transfer))
        return transfer

    def complete_transfer(self, transfer_id: UUID, actor_id: UUID) -> TransferCompleteResult:
        with self._session() as session:
            result = self._transfers(session).complete(transfer_id, actor_id)
        self._invalidate(_transfer_keys(result.transfer))
        return result

    def cancel_transfer(self, transfer_id: UUID, actor_id: UUID) -> StockTransfer:
        with self._session() as session:
            transfer = self._transfers(session).cancel(transfer_id, actor_id)
        self._invalidate(_transfer_keys(transfer))
        return transfer

    # =========================================================================
    # Direct stock operations
    # =========================================================================

    def receive_stock(
        self,
        warehouse_id: UUID,
        product_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
        unit_cost: Decimal | None = None,
        reason: str | None = None,
    ) -> StockTransactionRecord:
        with self._session() as session:
            txn = self._stock(session).receive(
                warehouse_id, product_id, quantity, actor_id, unit_cost=unit_cost, reason=reason
            )
        self._invalidate(_transaction_keys([txn]))
        return txn

    def dispose_stock(
        self,
        warehouse_id: UUID,
        product_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
        reason: str,
    ) -> StockTransactionRecord:
        with self._session() as session:
            txn = self._stock(session).dispose(warehouse_id, product_id, quantity, actor_id, reason)
        self._invalidate(_transaction_keys([txn]))
        return txn

    def adjust_stock(
        self,
        warehouse_id: UUID,
        product_id: UUID,
        quantity_delta: Decimal,
        actor_id: UUID,
        reason: str,
    ) -> StockTransactionRecord:
        with self._session() as session:
            txn = self._stock(session).adjust(warehouse_id, product_id, quantity_delta, actor_id, reason)
        self._invalidate(_transaction_keys([txn]))
        return txn

    def stocktake(
        self,
        warehouse_id: UUID,
        counts: Sequence[StocktakeCount],
        actor_id: UUID,
        reason: str | None = None,
    ) -> StocktakeResult:
        with self._session() as session:
            result = self._stock(session).stocktake(warehouse_id, counts, actor_id, reason=reason)
        self._invalidate(_transaction_keys(result.adjustments))
        return result

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def reconcile_key(self, warehouse_id: UUID, product_id: UUID, actor_id: UUID) -> Decimal:
        with self._session() as session:
            return ReconciliationService(session, self._clock).reconcile_key(
                warehouse_id, product_id, actor_id
            )

    def reconcile_all(self, actor_id: UUID) -> ReconciliationReport:
        with self._session() as session:
            return ReconciliationService(session, self._clock).reconcile_all(actor_id)

    def release_hold(self, hold_id: UUID, actor_id: UUID, note: str) -> HoldRecord:
        with self._session() as session:
            hold = ReconciliationService(session, self._clock).release_hold(hold_id, actor_id, note)
        self._invalidate([inventory_key(hold.warehouse_id, hold.product_id)])
        return hold
