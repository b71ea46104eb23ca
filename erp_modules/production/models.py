"""
Production Domain Models (``erp_modules.production.models``).

Responsibility
--------------
Frozen value objects for production orders, the results returned by each
workflow step, and the wastage report.

Architecture
------------
Layer: **Modules** -- pure domain data structures, no I/O.

Invariants
----------
- Output wastage is ``planned_quantity - actual_quantity``; negative
  wastage means overproduction and is reported, not rejected.
- Per-material wastage is ``planned - actual consumption``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from erp_kernel.db.types import HUNDRED, round_money
from erp_kernel.domain.stock import (
    ZERO,
    AvailabilityReport,
    StockTransactionRecord,
    require_non_negative,
)
from erp_kernel.logging_config import get_logger

logger = get_logger("modules.production.models")


class ProductionOrderStatus(Enum):
    """Production order processing states."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class MaterialUsage:
    """Actual quantity of one material exported at start or consumed by the run."""
    material_id: UUID
    quantity: Decimal

    def __post_init__(self):
        require_non_negative("quantity", self.quantity)


@dataclass(frozen=True)
class ProductionOrderMaterial:
    id: UUID
    material_id: UUID
    warehouse_id: UUID
    unit: str
    planned_quantity: Decimal
    issued_quantity: Decimal | None = None
    actual_quantity: Decimal | None = None
    wastage: Decimal | None = None


@dataclass(frozen=True)
class ProductionOrder:
    id: UUID
    order_code: str
    bom_id: UUID
    finished_product_id: UUID
    warehouse_id: UUID
    status: ProductionOrderStatus
    planned_quantity: Decimal
    materials: tuple[ProductionOrderMaterial, ...]
    actual_quantity: Decimal | None = None
    total_wastage: Decimal | None = None
    notes: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None

    @property
    def is_overproduction(self) -> bool:
        return self.total_wastage is not None and self.total_wastage < ZERO


@dataclass(frozen=True)
class ProductionOrderCreated:
    """A new order plus the availability of its planned materials.

    Shortages are informational: the order is created regardless.
    """
    order: ProductionOrder
    availability: AvailabilityReport


@dataclass(frozen=True)
class ProductionStartResult:
    order: ProductionOrder
    stock_transactions: tuple[StockTransactionRecord, ...]


@dataclass(frozen=True)
class ProductionCompleteResult:
    order: ProductionOrder
    stock_transaction: StockTransactionRecord | None
    total_wastage: Decimal

    @property
    def is_overproduction(self) -> bool:
        return self.total_wastage < ZERO


@dataclass(frozen=True)
class ProductionCancelResult:
    """``material_rollback`` lists the re-imports; empty when cancelled from pending."""
    order: ProductionOrder
    material_rollback: tuple[StockTransactionRecord, ...] = ()


@dataclass(frozen=True)
class WastageReportLine:
    material_id: UUID
    sku: str
    unit: str
    planned_quantity: Decimal
    actual_quantity: Decimal
    standard_cost: Decimal

    @property
    def wastage(self) -> Decimal:
        return self.planned_quantity - self.actual_quantity

    @property
    def wastage_percent(self) -> Decimal:
        if self.planned_quantity == ZERO:
            return ZERO
        return round_money(self.wastage / self.planned_quantity * HUNDRED)

    @property
    def wastage_cost(self) -> Decimal:
        return round_money(self.wastage * self.standard_cost)


@dataclass(frozen=True)
class WastageReport:
    order_id: UUID
    order_code: str
    status: ProductionOrderStatus
    planned_quantity: Decimal
    actual_quantity: Decimal | None
    lines: tuple[WastageReportLine, ...]

    @property
    def output_wastage(self) -> Decimal | None:
        if self.actual_quantity is None:
            return None
        return self.planned_quantity - self.actual_quantity

    @property
    def total_wastage_cost(self) -> Decimal:
        return sum((line.wastage_cost for line in self.lines), ZERO)
