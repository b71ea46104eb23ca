"""
Module: erp_modules.bom.orm
Responsibility: SQLAlchemy ORM persistence models for bills of materials.

Architecture position: Modules > BOM > ORM.  Inherits from TrackedBase.

Invariants enforced:
    - (bom_code, version) unique: each version of a recipe is its own row.
    - output_quantity > 0; 0 < efficiency_rate <= 100; material quantity > 0.
    - Status stored as String(50) (BomStatus value).

Failure modes:
    - IntegrityError on a duplicate (bom_code, version), translated to
      DuplicateCodeError by BomService.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TrackedBase, UUIDString
from erp_kernel.db.types import Percent, Quantity


class BillOfMaterialsModel(TrackedBase):
    """
    ORM model for a BOM header.

    Maps to: erp_modules.bom.models.BillOfMaterials (frozen dataclass).
    """

    __tablename__ = "bills_of_materials"

    __table_args__ = (
        UniqueConstraint("bom_code", "version", name="uq_bom_code_version"),
        Index("idx_bom_finished_product", "finished_product_id"),
        Index("idx_bom_status", "status"),
        CheckConstraint("CAST(output_quantity AS NUMERIC) > 0", name="ck_bom_output_positive"),
        CheckConstraint(
            "CAST(efficiency_rate AS NUMERIC) > 0 AND CAST(efficiency_rate AS NUMERIC) <= 100",
            name="ck_bom_efficiency_range",
        ),
    )

    bom_code: Mapped[str] = mapped_column(String(50), nullable=False)
    version: Mapped[str] = mapped_column(String(20), nullable=False)
    finished_product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    output_quantity: Mapped[Quantity] = mapped_column(nullable=False)
    efficiency_rate: Mapped[Percent] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    materials: Mapped[list["BomMaterialModel"]] = relationship(
        back_populates="bom",
        cascade="all, delete-orphan",
        order_by="BomMaterialModel.line_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen BillOfMaterials DTO."""
        from erp_modules.bom.models import BillOfMaterials, BomStatus
        return BillOfMaterials(
            id=self.id,
            bom_code=self.bom_code,
            version=self.version,
            finished_product_id=self.finished_product_id,
            output_quantity=self.output_quantity,
            efficiency_rate=self.efficiency_rate,
            status=BomStatus(self.status),
            materials=tuple(m.to_dto() for m in self.materials),
            notes=self.notes,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
        )

    def __repr__(self) -> str:
        return f"<BillOfMaterialsModel {self.bom_code} v{self.version} status={self.status}>"


class BomMaterialModel(TrackedBase):
    """
    ORM model for one material line of a BOM.

    Maps to: erp_modules.bom.models.BomMaterial (frozen dataclass).
    """

    __tablename__ = "bom_materials"

    __table_args__ = (
        UniqueConstraint("bom_id", "material_id", name="uq_bom_material"),
        CheckConstraint("CAST(quantity AS NUMERIC) > 0", name="ck_bom_material_quantity_positive"),
    )

    bom_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("bills_of_materials.id", ondelete="CASCADE"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    material_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    quantity: Mapped[Quantity] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    material_type: Mapped[str] = mapped_column(String(50), nullable=False, default="raw_material")
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    bom: Mapped[BillOfMaterialsModel] = relationship(back_populates="materials")

    def to_dto(self):
        """Convert ORM model to frozen BomMaterial DTO."""
        from erp_modules.bom.models import BomMaterial, MaterialType
        return BomMaterial(
            id=self.id,
            line_number=self.line_number,
            material_id=self.material_id,
            quantity=self.quantity,
            unit=self.unit,
            material_type=MaterialType(self.material_type),
            notes=self.notes,
        )

    @classmethod
    def from_input(cls, material, line_number: int, created_by_id: UUID) -> "BomMaterialModel":
        """Create ORM model from a BomMaterialInput."""
        return cls(
            line_number=line_number,
            material_id=material.material_id,
            quantity=material.quantity,
            unit=material.unit,
            material_type=material.material_type.value,
            notes=material.notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<BomMaterialModel {self.material_id} qty={self.quantity} {self.unit}>"
