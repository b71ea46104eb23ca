"""
Production Module (``erp_modules.production``).

Responsibility
--------------
Manufacturing orders: planned materials from an approved BOM, material
export at start, finished-goods import at completion, wastage reporting,
and cancellation with material rollback.
"""

from erp_modules.production.models import (
    MaterialUsage,
    ProductionCancelResult,
    ProductionCompleteResult,
    ProductionOrder,
    ProductionOrderCreated,
    ProductionOrderMaterial,
    ProductionOrderStatus,
    ProductionStartResult,
    WastageReport,
    WastageReportLine,
)
from erp_modules.production.service import ProductionOrderService
from erp_modules.production.workflows import PRODUCTION_ORDER_WORKFLOW

__all__ = [
    "MaterialUsage",
    "PRODUCTION_ORDER_WORKFLOW",
    "ProductionCancelResult",
    "ProductionCompleteResult",
    "ProductionOrder",
    "ProductionOrderCreated",
    "ProductionOrderMaterial",
    "ProductionOrderService",
    "ProductionOrderStatus",
    "ProductionStartResult",
    "WastageReport",
    "WastageReportLine",
]
