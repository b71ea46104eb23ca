"""
Module: erp_modules.transfer.orm
Responsibility: SQLAlchemy ORM persistence models for stock transfers.

Architecture position: Modules > Transfer > ORM.  Inherits from TrackedBase.

Invariants enforced:
    - transfer_code unique; source and destination differ.
    - Line quantity > 0.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TrackedBase, UUIDString
from erp_kernel.db.types import Quantity


class StockTransferModel(TrackedBase):
    """
    ORM model for a transfer header.

    Maps to: erp_modules.transfer.models.StockTransfer (frozen dataclass).
    """

    __tablename__ = "stock_transfers"

    __table_args__ = (
        Index("idx_stock_transfer_status", "status"),
        CheckConstraint("from_warehouse_id <> to_warehouse_id", name="ck_stock_transfer_distinct_warehouses"),
    )

    transfer_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    from_warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )
    to_warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    lines: Mapped[list["StockTransferDetailModel"]] = relationship(
        back_populates="transfer",
        cascade="all, delete-orphan",
        order_by="StockTransferDetailModel.line_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen StockTransfer DTO."""
        from erp_modules.transfer.models import StockTransfer, TransferStatus
        return StockTransfer(
            id=self.id,
            transfer_code=self.transfer_code,
            from_warehouse_id=self.from_warehouse_id,
            to_warehouse_id=self.to_warehouse_id,
            status=TransferStatus(self.status),
            lines=tuple(line.to_dto() for line in self.lines),
            notes=self.notes,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
            completed_at=self.completed_at,
            cancelled_at=self.cancelled_at,
        )

    def __repr__(self) -> str:
        return f"<StockTransferModel {self.transfer_code} status={self.status}>"


class StockTransferDetailModel(TrackedBase):
    """ORM model for one transfer line."""

    __tablename__ = "stock_transfer_details"

    __table_args__ = (
        CheckConstraint("CAST(quantity AS NUMERIC) > 0", name="ck_stock_transfer_detail_quantity_positive"),
    )

    stock_transfer_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stock_transfers.id", ondelete="CASCADE"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    quantity: Mapped[Quantity] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    transfer: Mapped[StockTransferModel] = relationship(back_populates="lines")

    def to_dto(self):
        from erp_modules.transfer.models import StockTransferLine
        return StockTransferLine(
            id=self.id,
            product_id=self.product_id,
            quantity=self.quantity,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<StockTransferDetailModel product={self.product_id} qty={self.quantity}>"
