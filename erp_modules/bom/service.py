"""
BOM Module Service (``erp_modules.bom.service``).

Responsibility
--------------
Bill of materials lifecycle and requirement resolution.

Architecture
------------
Layer: **Modules**.  Writes only BOM rows; never touches stock.  Each
lifecycle method owns its transaction.  ``resolve_requirements`` is a
read and does not commit.

Invariants
----------
- Only draft BOMs are editable; approved BOMs change through
  ``new_version``.
- ``resolve_requirements`` rejects any BOM that is not approved.
- The finished product never appears among its own materials.

Failure Modes
-------------
- ``DuplicateCodeError`` on an existing (bom_code, version).
- ``ConflictError`` for edits outside draft; ``IllegalTransitionError``
  for lifecycle actions not legal from the current status.
- ``ValidationError`` for bad quantities, efficiency, or approving a BOM
  without materials.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.domain.stock import require_positive
from erp_kernel.exceptions import ConflictError, DuplicateCodeError, ValidationError
from erp_kernel.logging_config import get_logger
from erp_modules._document_helpers import (
    apply_transition,
    get_document,
    load_products,
    lock_document,
    log_transition,
)
from erp_modules.bom.config import BomConfig
from erp_modules.bom.models import (
    BillOfMaterials,
    BomMaterialInput,
    BomRequirements,
    BomStatus,
    MaterialRequirement,
    MaterialType,
    next_minor_version,
    validate_efficiency_rate,
    version_key,
)
from erp_modules.bom.orm import BillOfMaterialsModel, BomMaterialModel
from erp_modules.bom.workflows import BOM_WORKFLOW

logger = get_logger("modules.bom.service")

ENTITY_TYPE = "BillOfMaterials"


class BomService:
    """Bill of materials lifecycle and resolver."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: BomConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or BomConfig()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create(
        self,
        bom_code: str,
        finished_product_id: UUID,
        output_quantity: Decimal,
        materials: Sequence[BomMaterialInput],
        actor_id: UUID,
        efficiency_rate: Decimal | None = None,
        version: str | None = None,
        notes: str | None = None,
    ) -> BillOfMaterials:
        """
        Create a draft BOM.

        Raises:
            ValidationError: bad quantity / efficiency, duplicate material,
                or the finished product listed as a material.
            NotFoundError: unknown finished product or material.
            DuplicateCodeError: (bom_code, version) already exists.
        """
        try:
            if not bom_code:
                raise ValidationError("bom_code", "BOM code is required")
            version = version or self._config.initial_version
            efficiency_rate = (
                self._config.default_efficiency_rate if efficiency_rate is None else efficiency_rate
            )
            require_positive("output_quantity", output_quantity)
            validate_efficiency_rate(efficiency_rate)
            self._validate_materials(finished_product_id, materials)

            existing = self._session.execute(
                select(BillOfMaterialsModel.id).where(
                    BillOfMaterialsModel.bom_code == bom_code,
                    BillOfMaterialsModel.version == version,
                )
            ).scalar_one_or_none()
            if existing is not None:
                raise DuplicateCodeError(ENTITY_TYPE, f"{bom_code} v{version}")

            bom = BillOfMaterialsModel(
                bom_code=bom_code,
                version=version,
                finished_product_id=finished_product_id,
                output_quantity=output_quantity,
                efficiency_rate=efficiency_rate,
                status=BOM_WORKFLOW.initial_state,
                notes=notes,
                created_by_id=actor_id,
            )
            bom.materials = [
                BomMaterialModel.from_input(m, number, actor_id)
                for number, m in enumerate(materials, start=1)
            ]
            self._insert(bom)

            logger.info(
                "bom_created",
                extra={
                    "bom_id": str(bom.id),
                    "bom_code": bom_code,
                    "version": version,
                    "material_count": len(bom.materials),
                },
            )
            self._session.commit()
            return bom.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def update(
        self,
        bom_id: UUID,
        actor_id: UUID,
        output_quantity: Decimal | None = None,
        efficiency_rate: Decimal | None = None,
        materials: Sequence[BomMaterialInput] | None = None,
        notes: str | None = None,
    ) -> BillOfMaterials:
        """Edit a draft BOM.  Raises ConflictError once approved."""
        try:
            bom = lock_document(self._session, BillOfMaterialsModel, bom_id, ENTITY_TYPE)
            if bom.status != BomStatus.DRAFT.value:
                raise ConflictError(
                    ENTITY_TYPE, str(bom.id), bom.status,
                    "only draft BOMs can be edited; create a new version",
                )
            if output_quantity is not None:
                bom.output_quantity = require_positive("output_quantity", output_quantity)
            if efficiency_rate is not None:
                bom.efficiency_rate = validate_efficiency_rate(efficiency_rate)
            if materials is not None:
                self._validate_materials(bom.finished_product_id, materials)
                bom.materials.clear()
                self._session.flush()
                bom.materials.extend(
                    BomMaterialModel.from_input(m, number, actor_id)
                    for number, m in enumerate(materials, start=1)
                )
            if notes is not None:
                bom.notes = notes
            bom.updated_by_id = actor_id
            self._session.flush()

            logger.info(
                "bom_updated",
                extra={
                    "bom_id": str(bom.id),
                    "bom_code": bom.bom_code,
                    "materials_replaced": materials is not None,
                },
            )
            self._session.commit()
            return bom.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def approve(self, bom_id: UUID, actor_id: UUID) -> BillOfMaterials:
        """draft -> approved.  Requires at least one material."""
        try:
            bom = lock_document(self._session, BillOfMaterialsModel, bom_id, ENTITY_TYPE)
            transition = apply_transition(BOM_WORKFLOW, bom, "approve", actor_id)
            if transition is None:
                self._session.commit()
                return bom.to_dto()
            if not bom.materials:
                raise ValidationError("materials", "a BOM needs at least one material to be approved")

            bom.status = transition.to_state
            bom.approved_by_id = actor_id
            bom.approved_at = self._clock.now()
            bom.updated_by_id = actor_id
            self._session.flush()
            log_transition(BOM_WORKFLOW, bom, transition, actor_id)

            self._session.commit()
            return bom.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def deactivate(self, bom_id: UUID, actor_id: UUID) -> BillOfMaterials:
        """approved -> inactive."""
        try:
            bom = lock_document(self._session, BillOfMaterialsModel, bom_id, ENTITY_TYPE)
            transition = apply_transition(BOM_WORKFLOW, bom, "deactivate", actor_id)
            if transition is None:
                self._session.commit()
                return bom.to_dto()

            bom.status = transition.to_state
            bom.updated_by_id = actor_id
            self._session.flush()
            log_transition(BOM_WORKFLOW, bom, transition, actor_id)

            self._session.commit()
            return bom.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def new_version(self, bom_id: UUID, actor_id: UUID, notes: str | None = None) -> BillOfMaterials:
        """
        Copy an approved BOM into a new draft.

        The new version is the next minor version after the highest existing
        version of the same ``bom_code``.
        """
        try:
            source = get_document(self._session, BillOfMaterialsModel, bom_id, ENTITY_TYPE)
            if source.status != BomStatus.APPROVED.value:
                raise ConflictError(
                    ENTITY_TYPE, str(source.id), source.status,
                    "only approved BOMs can be versioned",
                )
            versions = self._session.execute(
                select(BillOfMaterialsModel.version).where(
                    BillOfMaterialsModel.bom_code == source.bom_code
                )
            ).scalars().all()
            latest = max(versions, key=version_key)

            bom = BillOfMaterialsModel(
                bom_code=source.bom_code,
                version=next_minor_version(latest),
                finished_product_id=source.finished_product_id,
                output_quantity=source.output_quantity,
                efficiency_rate=source.efficiency_rate,
                status=BOM_WORKFLOW.initial_state,
                notes=notes if notes is not None else source.notes,
                created_by_id=actor_id,
            )
            bom.materials = [
                BomMaterialModel(
                    line_number=m.line_number,
                    material_id=m.material_id,
                    quantity=m.quantity,
                    unit=m.unit,
                    material_type=m.material_type,
                    notes=m.notes,
                    created_by_id=actor_id,
                )
                for m in source.materials
            ]
            self._insert(bom)

            logger.info(
                "bom_version_created",
                extra={
                    "bom_id": str(bom.id),
                    "source_bom_id": str(source.id),
                    "bom_code": bom.bom_code,
                    "version": bom.version,
                },
            )
            self._session.commit()
            return bom.to_dto()
        except Exception:
            self._session.rollback()
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, bom_id: UUID) -> BillOfMaterials:
        return get_document(self._session, BillOfMaterialsModel, bom_id, ENTITY_TYPE).to_dto()

    def list_boms(
        self,
        finished_product_id: UUID | None = None,
        status: BomStatus | None = None,
    ) -> list[BillOfMaterials]:
        stmt = select(BillOfMaterialsModel).order_by(
            BillOfMaterialsModel.bom_code, BillOfMaterialsModel.created_at
        )
        if finished_product_id is not None:
            stmt = stmt.where(BillOfMaterialsModel.finished_product_id == finished_product_id)
        if status is not None:
            stmt = stmt.where(BillOfMaterialsModel.status == status.value)
        return [bom.to_dto() for bom in self._session.execute(stmt).scalars()]

    def resolve_requirements(
        self,
        bom_id: UUID,
        target_output_quantity: Decimal,
    ) -> BomRequirements:
        """
        Material quantities needed to produce ``target_output_quantity``.

        Each material is scaled by ``target / output_quantity``, divided by
        ``efficiency_rate / 100`` and rounded UP to its unit's increment.

        Example: output 100, efficiency 95, 50 kg of flour per batch,
        target 100 -> 52.63... -> 53 kg (increment 1).

        Raises:
            ValidationError: target not positive, or the BOM is not approved.
            NotFoundError: unknown BOM.
        """
        bom = get_document(self._session, BillOfMaterialsModel, bom_id, ENTITY_TYPE)
        return self.requirements_for(bom, target_output_quantity)

    def requirements_for(
        self,
        bom: BillOfMaterialsModel,
        target_output_quantity: Decimal,
    ) -> BomRequirements:
        """Resolve an already loaded BOM (used inside production transactions)."""
        require_positive("target_output_quantity", target_output_quantity)
        if bom.status != BomStatus.APPROVED.value:
            raise ValidationError(
                "bom_id",
                f"BOM {bom.bom_code} v{bom.version} is {bom.status}; only approved BOMs can be resolved",
            )
        requirements = tuple(
            MaterialRequirement.resolve(
                material_id=m.material_id,
                unit=m.unit,
                material_type=MaterialType(m.material_type),
                base_quantity=m.quantity,
                output_quantity=bom.output_quantity,
                efficiency_rate=bom.efficiency_rate,
                target_output_quantity=target_output_quantity,
                increment=self._config.increment_for(m.unit),
            )
            for m in bom.materials
        )
        logger.debug(
            "bom_requirements_resolved",
            extra={
                "bom_id": str(bom.id),
                "target_output_quantity": target_output_quantity,
                "requirements": {
                    str(r.material_id): str(r.required_quantity) for r in requirements
                },
            },
        )
        return BomRequirements(
            bom_id=bom.id,
            bom_code=bom.bom_code,
            version=bom.version,
            finished_product_id=bom.finished_product_id,
            target_output_quantity=target_output_quantity,
            materials=requirements,
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _validate_materials(
        self,
        finished_product_id: UUID,
        materials: Sequence[BomMaterialInput],
    ) -> None:
        material_ids = [m.material_id for m in materials]
        if len(set(material_ids)) != len(material_ids):
            raise ValidationError("materials", "a material may appear only once per BOM")
        if finished_product_id in material_ids:
            raise ValidationError(
                "materials", "the finished product cannot be one of its own materials"
            )
        load_products(self._session, [finished_product_id, *material_ids])

    def _insert(self, bom: BillOfMaterialsModel) -> None:
        """Flush a new BOM, translating a (code, version) race into DuplicateCodeError."""
        savepoint = self._session.begin_nested()
        try:
            self._session.add(bom)
            self._session.flush()
        except IntegrityError as exc:
            savepoint.rollback()
            raise DuplicateCodeError(ENTITY_TYPE, f"{bom.bom_code} v{bom.version}") from exc
        savepoint.commit()
