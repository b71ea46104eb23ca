"""
Stock Operations Models (``erp_modules.stock.models``).
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from erp_kernel.domain.stock import StockTransactionRecord, require_non_negative


@dataclass(frozen=True)
class StocktakeCount:
    """Physically counted quantity of one product."""
    product_id: UUID
    counted_quantity: Decimal

    def __post_init__(self):
        require_non_negative("counted_quantity", self.counted_quantity)


@dataclass(frozen=True)
class StocktakeResult:
    """Adjustments written by a stocktake; products whose count matched are listed as unchanged."""
    warehouse_id: UUID
    adjustments: tuple[StockTransactionRecord, ...]
    unchanged_product_ids: tuple[UUID, ...]

    @property
    def adjusted_count(self) -> int:
        return len(self.adjustments)
