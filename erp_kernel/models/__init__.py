"""ORM models for the ERP kernel."""

from erp_kernel.models.catalog import Product, ProductType, Warehouse, WarehouseType
from erp_kernel.models.inventory import InventoryRecord
from erp_kernel.models.reconciliation import ReconciliationHold
from erp_kernel.models.stock_transaction import StockTransaction

__all__ = [
    "InventoryRecord",
    "Product",
    "ProductType",
    "ReconciliationHold",
    "StockTransaction",
    "Warehouse",
    "WarehouseType",
]
