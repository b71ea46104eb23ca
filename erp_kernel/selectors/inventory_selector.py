"""
Module: erp_kernel.selectors.inventory_selector
Responsibility: Read models over inventory records -- availability checks,
    per-product stock summaries and low-stock alerts.

Availability is always derived from quantity and reserved quantity at read
time.  A key without a record reads as zero stock.  Quantity comparisons
happen in Python on Decimal values, never in SQL, so results are identical
on every backend.
"""

from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import select

from erp_kernel.domain.stock import (
    ZERO,
    AvailabilityLine,
    AvailabilityReport,
    InventorySnapshot,
    require_positive,
)
from erp_kernel.models.catalog import Product
from erp_kernel.models.inventory import InventoryRecord
from erp_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ProductStockSummary:
    product_id: UUID
    records: tuple[InventorySnapshot, ...]

    @property
    def total_quantity(self) -> Decimal:
        return sum((r.quantity for r in self.records), ZERO)

    @property
    def total_reserved(self) -> Decimal:
        return sum((r.reserved_quantity for r in self.records), ZERO)

    @property
    def total_available(self) -> Decimal:
        return self.total_quantity - self.total_reserved


@dataclass(frozen=True)
class LowStockAlert:
    warehouse_id: UUID
    product_id: UUID
    sku: str
    available_quantity: Decimal
    min_stock_level: Decimal

    @property
    def deficit(self) -> Decimal:
        return self.min_stock_level - self.available_quantity


class InventorySelector(BaseSelector[InventoryRecord]):
    """Read-only inventory queries."""

    def snapshot(self, warehouse_id: UUID, product_id: UUID) -> InventorySnapshot:
        record = self.session.execute(
            select(InventoryRecord).where(
                InventoryRecord.warehouse_id == warehouse_id,
                InventoryRecord.product_id == product_id,
            )
        ).scalar_one_or_none()
        if record is None:
            return InventorySnapshot.empty(warehouse_id, product_id)
        return record.to_snapshot()

    def check_availability(
        self,
        warehouse_id: UUID,
        items: Iterable[tuple[UUID, Decimal]],
    ) -> AvailabilityReport:
        """
        Compare requested quantities with available stock in one warehouse.

        Items naming the same product are summed before comparing.
        """
        requested: OrderedDict[UUID, Decimal] = OrderedDict()
        for product_id, quantity in items:
            require_positive("quantity", quantity)
            requested[product_id] = requested.get(product_id, ZERO) + quantity

        if not requested:
            return AvailabilityReport(warehouse_id=warehouse_id, lines=())

        records = {
            r.product_id: r
            for r in self.session.execute(
                select(InventoryRecord).where(
                    InventoryRecord.warehouse_id == warehouse_id,
                    InventoryRecord.product_id.in_(list(requested)),
                )
            ).scalars()
        }
        lines = tuple(
            AvailabilityLine(
                product_id=product_id,
                requested=quantity,
                available=(
                    records[product_id].available_quantity
                    if product_id in records
                    else ZERO
                ),
            )
            for product_id, quantity in requested.items()
        )
        return AvailabilityReport(warehouse_id=warehouse_id, lines=lines)

    def product_summary(self, product_id: UUID) -> ProductStockSummary:
        rows = self.session.execute(
            select(InventoryRecord)
            .where(InventoryRecord.product_id == product_id)
            .order_by(InventoryRecord.warehouse_id)
        ).scalars()
        return ProductStockSummary(
            product_id=product_id,
            records=tuple(r.to_snapshot() for r in rows),
        )

    def low_stock_alerts(self, warehouse_id: UUID | None = None) -> list[LowStockAlert]:
        """Records whose available quantity is below the product minimum."""
        stmt = select(InventoryRecord, Product).join(
            Product, Product.id == InventoryRecord.product_id
        )
        if warehouse_id is not None:
            stmt = stmt.where(InventoryRecord.warehouse_id == warehouse_id)

        alerts = [
            LowStockAlert(
                warehouse_id=record.warehouse_id,
                product_id=record.product_id,
                sku=product.sku,
                available_quantity=record.available_quantity,
                min_stock_level=product.min_stock_level,
            )
            for record, product in self.session.execute(stmt).all()
            if product.min_stock_level > ZERO
            and record.available_quantity < product.min_stock_level
        ]
        return sorted(alerts, key=lambda a: (a.deficit, a.sku), reverse=True)
