"""Read-only query selectors for the ERP kernel."""

from erp_kernel.selectors.inventory_selector import (
    InventorySelector,
    LowStockAlert,
    ProductStockSummary,
)
from erp_kernel.selectors.transaction_selector import TransactionSelector

__all__ = [
    "InventorySelector",
    "LowStockAlert",
    "ProductStockSummary",
    "TransactionSelector",
]
