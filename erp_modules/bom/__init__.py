"""
Bill of Materials Module (``erp_modules.bom``).

Responsibility
--------------
BOM lifecycle (draft, approved, inactive, versioning) and the material
requirement resolver used by production orders.

Invariants
----------
- Approved BOMs are immutable; changes go through ``new_version``.
- Requirements are always rounded UP to the material unit's increment.
"""

from erp_modules.bom.models import (
    BillOfMaterials,
    BomMaterial,
    BomMaterialInput,
    BomRequirements,
    BomStatus,
    MaterialRequirement,
    MaterialType,
)
from erp_modules.bom.service import BomService
from erp_modules.bom.workflows import BOM_WORKFLOW

__all__ = [
    "BOM_WORKFLOW",
    "BillOfMaterials",
    "BomMaterial",
    "BomMaterialInput",
    "BomRequirements",
    "BomService",
    "BomStatus",
    "MaterialRequirement",
    "MaterialType",
]
