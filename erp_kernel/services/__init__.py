"""Services for the ERP kernel (write side)."""

from erp_kernel.services.inventory_store import InventoryStore
from erp_kernel.services.reservation_manager import ReservationManager
from erp_kernel.services.sequence_service import SequenceService
from erp_kernel.services.stock_ledger import StockLedger

__all__ = [
    "InventoryStore",
    "ReservationManager",
    "SequenceService",
    "StockLedger",
]
