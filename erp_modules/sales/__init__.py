"""
Sales Module (``erp_modules.sales``).

Responsibility
--------------
Sales order lifecycle: creation with per-line stock reservation, approval
(reservation converted into export), completion, cancellation with stock
reversal, payment tracking.

Invariants
----------
- Each line reserves exactly once (create) and is then either released
  exactly once (cancel from pending) or converted exactly once into an
  export (approve).  The workflow table is what guarantees "exactly once".
- Every public service method owns its transaction.
"""

from erp_modules.sales.models import (
    PaymentStatus,
    SalesOrder,
    SalesOrderLine,
    SalesOrderLineInput,
    SalesOrderStatus,
)
from erp_modules.sales.service import SalesOrderService
from erp_modules.sales.workflows import SALES_ORDER_WORKFLOW

__all__ = [
    "PaymentStatus",
    "SALES_ORDER_WORKFLOW",
    "SalesOrder",
    "SalesOrderLine",
    "SalesOrderLineInput",
    "SalesOrderService",
    "SalesOrderStatus",
]
