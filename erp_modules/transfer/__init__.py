"""
Transfer Module (``erp_modules.transfer``).

Responsibility
--------------
Warehouse-to-warehouse stock transfers: reservation at the source when the
transfer is approved, and a paired transfer_out / transfer_in ledger write
when the goods arrive.
"""

from erp_modules.transfer.models import (
    StockTransfer,
    StockTransferLine,
    TransferCompleteResult,
    TransferLineInput,
    TransferStatus,
)
from erp_modules.transfer.service import StockTransferService
from erp_modules.transfer.workflows import TRANSFER_WORKFLOW

__all__ = [
    "StockTransfer",
    "StockTransferLine",
    "StockTransferService",
    "TRANSFER_WORKFLOW",
    "TransferCompleteResult",
    "TransferLineInput",
    "TransferStatus",
]
