"""
Module: erp_kernel.models.inventory
Responsibility: The authoritative (warehouse, product) stock record.
Architecture position: Kernel > Models.  Imports only from db/ and models/.

Invariants enforced:
    - Unique per (warehouse_id, product_id).
    - quantity >= 0, reserved_quantity >= 0, reserved_quantity <= quantity
      (check constraints here; InventoryStore.apply_delta rejects the delta
      before it ever reaches the database).
    - available_quantity is derived at read time, never stored.

Mutation:
    Only InventoryStore.apply_delta writes these columns.  The ledger and the
    reservation manager are its only callers.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import Base, UUIDString
from erp_kernel.db.types import Quantity
from erp_kernel.domain.stock import InventoryKey, InventorySnapshot


class InventoryRecord(Base):
    """Per (warehouse, product) quantity / reserved quantity pair."""

    __tablename__ = "inventory_records"

    __table_args__ = (
        UniqueConstraint("warehouse_id", "product_id", name="uq_inventory_warehouse_product"),
        CheckConstraint("CAST(quantity AS NUMERIC) >= 0", name="ck_inventory_quantity_non_negative"),
        CheckConstraint(
            "CAST(reserved_quantity AS NUMERIC) >= 0",
            name="ck_inventory_reserved_non_negative",
        ),
        CheckConstraint(
            "CAST(reserved_quantity AS NUMERIC) <= CAST(quantity AS NUMERIC)",
            name="ck_inventory_reserved_within_quantity",
        ),
        Index("idx_inventory_product", "product_id"),
    )

    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    quantity: Mapped[Quantity] = mapped_column(nullable=False, default=Decimal("0"))
    reserved_quantity: Mapped[Quantity] = mapped_column(nullable=False, default=Decimal("0"))
    last_movement_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def available_quantity(self) -> Decimal:
        return self.quantity - self.reserved_quantity

    @property
    def key(self) -> InventoryKey:
        return InventoryKey(self.warehouse_id, self.product_id)

    def to_snapshot(self) -> InventorySnapshot:
        return InventorySnapshot(
            warehouse_id=self.warehouse_id,
            product_id=self.product_id,
            quantity=self.quantity,
            reserved_quantity=self.reserved_quantity,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryRecord {self.warehouse_id}/{self.product_id} "
            f"qty={self.quantity} reserved={self.reserved_quantity}>"
        )
