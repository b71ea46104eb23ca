"""
Transfer Domain Models (``erp_modules.transfer.models``).

Frozen value objects for warehouse transfers.  Pure data, no I/O.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from erp_kernel.domain.stock import StockTransactionRecord, require_positive
from erp_kernel.logging_config import get_logger

logger = get_logger("modules.transfer.models")


class TransferStatus(Enum):
    """Transfer processing states."""
    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TransferLineInput:
    product_id: UUID
    quantity: Decimal
    notes: str | None = None

    def __post_init__(self):
        require_positive("quantity", self.quantity)


@dataclass(frozen=True)
class StockTransferLine:
    id: UUID
    product_id: UUID
    quantity: Decimal
    notes: str | None = None


@dataclass(frozen=True)
class StockTransfer:
    id: UUID
    transfer_code: str
    from_warehouse_id: UUID
    to_warehouse_id: UUID
    status: TransferStatus
    lines: tuple[StockTransferLine, ...]
    notes: str | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None


@dataclass(frozen=True)
class TransferCompleteResult:
    """The completed transfer and its out/in transaction pairs, in line order."""
    transfer: StockTransfer
    stock_transactions: tuple[StockTransactionRecord, ...]
