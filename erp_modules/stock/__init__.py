"""
Stock Operations Module (``erp_modules.stock``).

Direct stock movements outside any document workflow: goods receipt,
disposal, manual adjustment and stocktake.
"""

from erp_modules.stock.models import StocktakeCount, StocktakeResult
from erp_modules.stock.service import StockOperationsService

__all__ = [
    "StockOperationsService",
    "StocktakeCount",
    "StocktakeResult",
]
