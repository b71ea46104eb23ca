"""
BOM Domain Models (``erp_modules.bom.models``).

Responsibility
--------------
Frozen value objects for bills of materials and the pure requirement
arithmetic:

    required = ceil_to_increment(quantity * target / output / (efficiency / 100))

Architecture
------------
Layer: **Modules** -- pure domain data structures, no I/O.

Invariants
----------
- ``output_quantity > 0``; ``0 < efficiency_rate <= 100``.
- Material quantities are positive.
- Requirements are never rounded to nearest: under-provisioning a
  production run is not acceptable.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from erp_kernel.db.types import HUNDRED, ceil_to_increment
from erp_kernel.domain.stock import ZERO, require_positive
from erp_kernel.exceptions import ValidationError
from erp_kernel.logging_config import get_logger

logger = get_logger("modules.bom.models")


class BomStatus(Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    INACTIVE = "inactive"


class MaterialType(Enum):
    RAW_MATERIAL = "raw_material"
    PACKAGING = "packaging"


def validate_efficiency_rate(efficiency_rate: Decimal) -> Decimal:
    require_positive("efficiency_rate", efficiency_rate)
    if efficiency_rate > HUNDRED:
        raise ValidationError(
            "efficiency_rate", f"must be in (0, 100], got {efficiency_rate}"
        )
    return efficiency_rate


def next_minor_version(version: str) -> str:
    """``"1.0"`` -> ``"1.1"``; ``"2.9"`` -> ``"2.10"``."""
    major, _, minor = version.partition(".")
    if not major.isdigit() or not minor.isdigit():
        raise ValidationError("version", f"expected MAJOR.MINOR, got '{version}'")
    return f"{int(major)}.{int(minor) + 1}"


def version_key(version: str) -> tuple[int, int]:
    major, _, minor = version.partition(".")
    return int(major), int(minor or 0)


def scale_requirement(
    material_quantity: Decimal,
    output_quantity: Decimal,
    efficiency_rate: Decimal,
    target_output_quantity: Decimal,
) -> Decimal:
    """Exact (unrounded) material quantity for ``target_output_quantity``."""
    return (
        material_quantity
        * target_output_quantity
        / output_quantity
        / (efficiency_rate / HUNDRED)
    )


@dataclass(frozen=True)
class BomMaterialInput:
    """A material line supplied when creating or updating a BOM."""
    material_id: UUID
    quantity: Decimal
    unit: str = "unit"
    material_type: MaterialType = MaterialType.RAW_MATERIAL
    notes: str | None = None

    def __post_init__(self):
        try:
            require_positive("quantity", self.quantity)
        except ValidationError:
            logger.warning(
                "bom_material_quantity_invalid",
                extra={
                    "material_id": str(self.material_id),
                    "quantity": str(self.quantity),
                },
            )
            raise
        if not self.unit:
            raise ValidationError("unit", "unit of measure is required")


@dataclass(frozen=True)
class BomMaterial:
    id: UUID
    line_number: int
    material_id: UUID
    quantity: Decimal
    unit: str
    material_type: MaterialType
    notes: str | None = None


@dataclass(frozen=True)
class BillOfMaterials:
    """
    A versioned recipe: ``output_quantity`` units of the finished product
    consume ``materials`` at ``efficiency_rate`` percent yield.
    """
    id: UUID
    bom_code: str
    version: str
    finished_product_id: UUID
    output_quantity: Decimal
    efficiency_rate: Decimal
    status: BomStatus
    materials: tuple[BomMaterial, ...]
    notes: str | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None

    @property
    def is_approved(self) -> bool:
        return self.status is BomStatus.APPROVED


@dataclass(frozen=True)
class MaterialRequirement:
    """
    Quantity of one material needed for a production run.

    ``exact_quantity`` is the unrounded figure; ``required_quantity`` is
    rounded up to ``increment``.
    """
    material_id: UUID
    unit: str
    material_type: MaterialType
    base_quantity: Decimal
    exact_quantity: Decimal
    required_quantity: Decimal
    increment: Decimal

    @classmethod
    def resolve(
        cls,
        material_id: UUID,
        unit: str,
        material_type: MaterialType,
        base_quantity: Decimal,
        output_quantity: Decimal,
        efficiency_rate: Decimal,
        target_output_quantity: Decimal,
        increment: Decimal,
    ) -> "MaterialRequirement":
        exact = scale_requirement(
            base_quantity, output_quantity, efficiency_rate, target_output_quantity
        )
        return cls(
            material_id=material_id,
            unit=unit,
            material_type=material_type,
            base_quantity=base_quantity,
            exact_quantity=exact,
            required_quantity=ceil_to_increment(exact, increment),
            increment=increment,
        )


@dataclass(frozen=True)
class BomRequirements:
    bom_id: UUID
    bom_code: str
    version: str
    finished_product_id: UUID
    target_output_quantity: Decimal
    materials: tuple[MaterialRequirement, ...]

    def quantity_of(self, material_id: UUID) -> Decimal:
        for requirement in self.materials:
            if requirement.material_id == material_id:
                return requirement.required_quantity
        return ZERO
