"""
Module: erp_kernel.models.reconciliation
Responsibility: Holds placed on inventory keys whose ledger replay diverged
    from the live record.
Architecture position: Kernel > Models.

Invariants enforced:
    - While a hold is open (released_at IS NULL) the key refuses every
      mutation (InventoryStore raises ReconciliationHoldError).
    - Quantities are never corrected automatically; an operator fixes the
      data out of band and releases the hold with a note.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import Base, UUIDString
from erp_kernel.db.types import Quantity


class ReconciliationHold(Base):
    """A freeze on one (warehouse, product) key."""

    __tablename__ = "reconciliation_holds"

    __table_args__ = (
        Index("idx_recon_hold_key", "warehouse_id", "product_id"),
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    live_quantity: Mapped[Quantity] = mapped_column(nullable=False)
    replayed_quantity: Mapped[Quantity] = mapped_column(nullable=False)
    detected_at: Mapped[datetime] = mapped_column(nullable=False)
    detected_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    released_at: Mapped[datetime | None] = mapped_column(nullable=True)
    released_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    resolution_note: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    @property
    def is_open(self) -> bool:
        return self.released_at is None

    @property
    def difference(self) -> Decimal:
        return self.live_quantity - self.replayed_quantity

    def __repr__(self) -> str:
        state = "open" if self.is_open else "released"
        return f"<ReconciliationHold {self.warehouse_id}/{self.product_id} {state}>"
