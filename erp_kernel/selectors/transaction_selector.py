"""
Module: erp_kernel.selectors.transaction_selector
Responsibility: Read access to the stock ledger (per-key history, movements
    of one document).
"""

from uuid import UUID

from sqlalchemy import select

from erp_kernel.domain.stock import StockTransactionRecord
from erp_kernel.models.stock_transaction import StockTransaction
from erp_kernel.selectors.base import BaseSelector


class TransactionSelector(BaseSelector[StockTransaction]):
    """Queries over StockTransaction returning StockTransactionRecord DTOs."""

    def history(self, warehouse_id: UUID, product_id: UUID) -> list[StockTransactionRecord]:
        """Transactions of one key in replay order."""
        rows = self.session.execute(
            select(StockTransaction)
            .where(
                StockTransaction.warehouse_id == warehouse_id,
                StockTransaction.product_id == product_id,
            )
            .order_by(StockTransaction.created_at, StockTransaction.id)
        ).scalars()
        return [row.to_dto() for row in rows]

    def by_reference(self, reference_type: str, reference_id: UUID) -> list[StockTransactionRecord]:
        """Transactions written on behalf of one document."""
        rows = self.session.execute(
            select(StockTransaction)
            .where(
                StockTransaction.reference_type == reference_type,
                StockTransaction.reference_id == reference_id,
            )
            .order_by(StockTransaction.created_at, StockTransaction.id)
        ).scalars()
        return [row.to_dto() for row in rows]

    def by_code(self, transaction_code: str) -> StockTransactionRecord | None:
        row = self.session.execute(
            select(StockTransaction).where(StockTransaction.transaction_code == transaction_code)
        ).scalar_one_or_none()
        return row.to_dto() if row is not None else None

    def keys(self) -> list[tuple[UUID, UUID]]:
        """Every (warehouse, product) pair that has ledger history."""
        rows = self.session.execute(
            select(StockTransaction.warehouse_id, StockTransaction.product_id).distinct()
        ).all()
        return sorted((row[0], row[1]) for row in rows)
