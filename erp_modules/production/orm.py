"""
Module: erp_modules.production.orm
Responsibility: SQLAlchemy ORM persistence models for production orders
    and their planned materials.

Architecture position: Modules > Production > ORM.  Inherits from
    TrackedBase.  References the BOM it was planned from.

Invariants enforced:
    - order_code unique; planned_quantity > 0.
    - issued_quantity records what was exported at start, so a cancel can
      re-import exactly that amount.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TrackedBase, UUIDString
from erp_kernel.db.types import Quantity


class ProductionOrderModel(TrackedBase):
    """
    ORM model for a production order.

    Maps to: erp_modules.production.models.ProductionOrder (frozen dataclass).
    """

    __tablename__ = "production_orders"

    __table_args__ = (
        Index("idx_production_order_status", "status"),
        Index("idx_production_order_bom", "bom_id"),
        CheckConstraint("CAST(planned_quantity AS NUMERIC) > 0", name="ck_production_planned_positive"),
    )

    order_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    bom_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("bills_of_materials.id"), nullable=False
    )
    finished_product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
    planned_quantity: Mapped[Quantity] = mapped_column(nullable=False)
    actual_quantity: Mapped[Quantity | None] = mapped_column(nullable=True)
    total_wastage: Mapped[Quantity | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    materials: Mapped[list["ProductionOrderMaterialModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="ProductionOrderMaterialModel.line_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen ProductionOrder DTO."""
        from erp_modules.production.models import ProductionOrder, ProductionOrderStatus
        return ProductionOrder(
            id=self.id,
            order_code=self.order_code,
            bom_id=self.bom_id,
            finished_product_id=self.finished_product_id,
            warehouse_id=self.warehouse_id,
            status=ProductionOrderStatus(self.status),
            planned_quantity=self.planned_quantity,
            materials=tuple(m.to_dto() for m in self.materials),
            actual_quantity=self.actual_quantity,
            total_wastage=self.total_wastage,
            notes=self.notes,
            started_at=self.started_at,
            completed_at=self.completed_at,
            cancelled_at=self.cancelled_at,
            cancel_reason=self.cancel_reason,
        )

    def __repr__(self) -> str:
        return f"<ProductionOrderModel {self.order_code} status={self.status}>"


class ProductionOrderMaterialModel(TrackedBase):
    """
    ORM model for one planned material of a production order.

    Maps to: erp_modules.production.models.ProductionOrderMaterial.
    """

    __tablename__ = "production_order_materials"

    __table_args__ = (
        Index("idx_production_material_order", "production_order_id"),
    )

    production_order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("production_orders.id", ondelete="CASCADE"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(nullable=False)
    material_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    planned_quantity: Mapped[Quantity] = mapped_column(nullable=False)
    issued_quantity: Mapped[Quantity | None] = mapped_column(nullable=True)
    actual_quantity: Mapped[Quantity | None] = mapped_column(nullable=True)
    wastage: Mapped[Quantity | None] = mapped_column(nullable=True)

    order: Mapped[ProductionOrderModel] = relationship(back_populates="materials")

    def to_dto(self):
        from erp_modules.production.models import ProductionOrderMaterial
        return ProductionOrderMaterial(
            id=self.id,
            material_id=self.material_id,
            warehouse_id=self.warehouse_id,
            unit=self.unit,
            planned_quantity=self.planned_quantity,
            issued_quantity=self.issued_quantity,
            actual_quantity=self.actual_quantity,
            wastage=self.wastage,
        )

    def __repr__(self) -> str:
        return (
            f"<ProductionOrderMaterialModel {self.material_id} "
            f"planned={self.planned_quantity} issued={self.issued_quantity}>"
        )
