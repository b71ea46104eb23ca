"""
Module: erp_kernel.models.stock_transaction
Responsibility: The append-only stock ledger.  One row per quantity-changing
    event; the full history of a key replays to its live quantity.
Architecture position: Kernel > Models.  Imports only from db/ and domain/.

Invariants enforced:
    - Rows are never updated or deleted (ORM listeners in db/immutability.py,
      PostgreSQL triggers in db/sql/01_stock_transaction.sql).
    - quantity > 0 for every type but adjustment; adjustment is nonzero and
      signed.  Enforced by LedgerEntry before the row is built.
    - Indexed by (warehouse_id, product_id, created_at) for replay.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import Base, UUIDString
from erp_kernel.db.types import Money, Quantity
from erp_kernel.domain.stock import InventoryKey, StockTransactionRecord, TransactionType


class StockTransaction(Base):
    """Immutable record of a single stock movement."""

    __tablename__ = "stock_transactions"

    __table_args__ = (
        Index(
            "idx_stock_txn_key_created",
            "warehouse_id",
            "product_id",
            "created_at",
        ),
        Index("idx_stock_txn_reference", "reference_type", "reference_id"),
        Index("idx_stock_txn_type", "transaction_type"),
    )

    transaction_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    # TransactionType value
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    # Positive except for adjustments, which are signed
    quantity: Mapped[Quantity] = mapped_column(nullable=False)
    unit_cost: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))
    total_value: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    # Counterparty warehouse of a transfer leg
    related_warehouse_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=True
    )
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    # Set from the injected clock, not the server, so replays are deterministic
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    @property
    def type(self) -> TransactionType:
        return TransactionType(self.transaction_type)

    @property
    def quantity_delta(self) -> Decimal:
        """Signed effect of this transaction on the record's quantity."""
        return self.type.signed_delta(self.quantity)

    @property
    def key(self) -> InventoryKey:
        return InventoryKey(self.warehouse_id, self.product_id)

    def __repr__(self) -> str:
        return (
            f"<StockTransaction {self.transaction_code} {self.transaction_type} "
            f"{self.quantity}>"
        )

    def to_dto(self) -> StockTransactionRecord:
        return StockTransactionRecord(
            id=self.id,
            transaction_code=self.transaction_code,
            warehouse_id=self.warehouse_id,
            product_id=self.product_id,
            transaction_type=self.type,
            quantity=self.quantity,
            unit_cost=self.unit_cost,
            total_value=self.total_value,
            reference_type=self.reference_type,
            reference_id=self.reference_id,
            related_warehouse_id=self.related_warehouse_id,
            reason=self.reason,
            created_by_id=self.created_by_id,
            created_at=self.created_at,
        )
