"""
Bill of materials lifecycle, versioning and requirement resolution.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from erp_kernel.exceptions import (
    ConflictError,
    DuplicateCodeError,
    IllegalTransitionError,
    NotFoundError,
    ValidationError,
)
from erp_kernel.models.catalog import ProductType
from erp_modules.bom import BomMaterialInput, BomService, BomStatus
from erp_modules.bom.config import BomConfig
from erp_modules.bom.models import MaterialType, next_minor_version


@pytest.fixture
def bom_service(session, deterministic_clock):
    return BomService(session, deterministic_clock)


@pytest.fixture
def bread_products(create_product):
    bread = create_product("BREAD", unit="unit", product_type=ProductType.FINISHED_PRODUCT)
    flour = create_product("FLOUR", unit="kg", product_type=ProductType.RAW_MATERIAL)
    bag = create_product("BAG", unit="unit", product_type=ProductType.PACKAGING)
    return bread, flour, bag


def _bread_bom(service, products, actor_id, **kwargs):
    bread, flour, bag = products
    return service.create(
        bom_code=kwargs.pop("bom_code", "BOM-BREAD"),
        finished_product_id=bread.id,
        output_quantity=Decimal("100"),
        materials=[
            BomMaterialInput(flour.id, Decimal("50"), unit="kg"),
            BomMaterialInput(bag.id, Decimal("100"), material_type=MaterialType.PACKAGING),
        ],
        actor_id=actor_id,
        efficiency_rate=kwargs.pop("efficiency_rate", Decimal("95")),
        **kwargs,
    )


class TestLifecycle:

    def test_create_is_draft(self, bom_service, bread_products, test_actor_id):
        bom = _bread_bom(bom_service, bread_products, test_actor_id)
        assert bom.status == BomStatus.DRAFT
        assert bom.version == "1.0"
        assert [m.line_number for m in bom.materials] == [1, 2]

    def test_approve_and_deactivate(self, bom_service, bread_products, test_actor_id):
        bom = _bread_bom(bom_service, bread_products, test_actor_id)

        approved = bom_service.approve(bom.id, test_actor_id)
        assert approved.is_approved
        assert approved.approved_by_id == test_actor_id

        assert bom_service.approve(bom.id, test_actor_id).status == BomStatus.APPROVED
        assert bom_service.deactivate(bom.id, test_actor_id).status == BomStatus.INACTIVE

    def test_deactivate_draft_is_illegal(self, bom_service, bread_products, test_actor_id):
        bom = _bread_bom(bom_service, bread_products, test_actor_id)
        with pytest.raises(IllegalTransitionError):
            bom_service.deactivate(bom.id, test_actor_id)

    def test_approve_requires_materials(self, bom_service, bread_products, test_actor_id):
        bread, _, _ = bread_products
        bom = bom_service.create("BOM-EMPTY", bread.id, Decimal("1"), [], test_actor_id)

        with pytest.raises(ValidationError):
            bom_service.approve(bom.id, test_actor_id)
        assert bom_service.get(bom.id).status == BomStatus.DRAFT

    def test_duplicate_code_and_version(self, bom_service, bread_products, test_actor_id):
        _bread_bom(bom_service, bread_products, test_actor_id)
        with pytest.raises(DuplicateCodeError):
            _bread_bom(bom_service, bread_products, test_actor_id)

    def test_finished_product_cannot_be_material(self, bom_service, bread_products, test_actor_id):
        bread, flour, _ = bread_products
        with pytest.raises(ValidationError):
            bom_service.create(
                "BOM-LOOP", bread.id, Decimal("1"),
                [BomMaterialInput(bread.id, Decimal("1")), BomMaterialInput(flour.id, Decimal("1"))],
                test_actor_id,
            )

    def test_duplicate_material_rejected(self, bom_service, bread_products, test_actor_id):
        bread, flour, _ = bread_products
        with pytest.raises(ValidationError):
            bom_service.create(
                "BOM-DUP", bread.id, Decimal("1"),
                [BomMaterialInput(flour.id, Decimal("1")), BomMaterialInput(flour.id, Decimal("2"))],
                test_actor_id,
            )

    def test_unknown_material(self, bom_service, bread_products, test_actor_id):
        bread, _, _ = bread_products
        with pytest.raises(NotFoundError):
            bom_service.create(
                "BOM-GHOST", bread.id, Decimal("1"),
                [BomMaterialInput(uuid4(), Decimal("1"))],
                test_actor_id,
            )

    @pytest.mark.parametrize("rate", [Decimal("0"), Decimal("100.5"), Decimal("-1")])
    def test_efficiency_rate_bounds(self, bom_service, bread_products, test_actor_id, rate):
        with pytest.raises(ValidationError):
            _bread_bom(bom_service, bread_products, test_actor_id, efficiency_rate=rate)

    def test_update_draft_only(self, bom_service, bread_products, test_actor_id):
        bom = _bread_bom(bom_service, bread_products, test_actor_id)
        updated = bom_service.update(bom.id, test_actor_id, output_quantity=Decimal("50"))
        assert updated.output_quantity == Decimal("50")

        bom_service.approve(bom.id, test_actor_id)
        with pytest.raises(ConflictError):
            bom_service.update(bom.id, test_actor_id, notes="too late")


class TestVersioning:

    def test_new_version_copies_materials(self, bom_service, bread_products, test_actor_id):
        bom = _bread_bom(bom_service, bread_products, test_actor_id)
        bom_service.approve(bom.id, test_actor_id)

        v2 = bom_service.new_version(bom.id, test_actor_id)

        assert v2.version == "1.1"
        assert v2.status == BomStatus.DRAFT
        assert v2.bom_code == bom.bom_code
        assert [(m.material_id, m.quantity) for m in v2.materials] == [
            (m.material_id, m.quantity) for m in bom.materials
        ]

    def test_version_follows_highest_existing(self, bom_service, bread_products, test_actor_id):
        bom = _bread_bom(bom_service, bread_products, test_actor_id)
        bom_service.approve(bom.id, test_actor_id)
        bom_service.new_version(bom.id, test_actor_id)

        # Versioning the old approved BOM again skips past 1.1.
        assert bom_service.new_version(bom.id, test_actor_id).version == "1.2"

    def test_draft_cannot_be_versioned(self, bom_service, bread_products, test_actor_id):
        bom = _bread_bom(bom_service, bread_products, test_actor_id)
        with pytest.raises(ConflictError):
            bom_service.new_version(bom.id, test_actor_id)

    @pytest.mark.parametrize("version,expected", [("1.0", "1.1"), ("2.9", "2.10"), ("3.10", "3.11")])
    def test_next_minor_version(self, version, expected):
        assert next_minor_version(version) == expected

    def test_next_minor_version_rejects_garbage(self):
        with pytest.raises(ValidationError):
            next_minor_version("v1")


class TestRequirements:

    def test_rounds_up_to_unit_increment(self, bom_service, bread_products, test_actor_id):
        _, flour, bag = bread_products
        bom = _bread_bom(bom_service, bread_products, test_actor_id)
        bom_service.approve(bom.id, test_actor_id)

        requirements = bom_service.resolve_requirements(bom.id, Decimal("100"))

        # 50 * 100 / 100 / 0.95 = 52.63... -> 53 kg
        assert requirements.quantity_of(flour.id) == Decimal("53")
        flour_req = requirements.materials[0]
        assert Decimal("52.63") < flour_req.exact_quantity < Decimal("52.64")
        # 100 / 0.95 = 105.26... -> 106 bags
        assert requirements.quantity_of(bag.id) == Decimal("106")

    def test_unit_increment_from_config(self, session, deterministic_clock, bread_products,
                                        test_actor_id):
        service = BomService(
            session, deterministic_clock, config=BomConfig(unit_increments={"kg": Decimal("0.01")}),
        )
        _, flour, _ = bread_products
        bom = _bread_bom(service, bread_products, test_actor_id)
        service.approve(bom.id, test_actor_id)

        assert service.resolve_requirements(bom.id, Decimal("100")).quantity_of(flour.id) == Decimal("52.64")

    def test_draft_bom_cannot_be_resolved(self, bom_service, bread_products, test_actor_id):
        bom = _bread_bom(bom_service, bread_products, test_actor_id)
        with pytest.raises(ValidationError):
            bom_service.resolve_requirements(bom.id, Decimal("10"))

    def test_target_must_be_positive(self, bom_service, bread_products, test_actor_id):
        bom = _bread_bom(bom_service, bread_products, test_actor_id)
        bom_service.approve(bom.id, test_actor_id)
        with pytest.raises(ValidationError):
            bom_service.resolve_requirements(bom.id, Decimal("0"))

    def test_full_efficiency_scales_linearly(self, bom_service, bread_products, test_actor_id):
        _, flour, _ = bread_products
        bom = _bread_bom(bom_service, bread_products, test_actor_id, efficiency_rate=Decimal("100"))
        bom_service.approve(bom.id, test_actor_id)

        assert bom_service.resolve_requirements(bom.id, Decimal("30")).quantity_of(flour.id) == Decimal("15")
