"""
Module: erp_kernel.models.catalog
Responsibility: Master data the ledger keys on -- warehouses and products.
Architecture position: Kernel > Models.  Imports only from db/.

Invariants enforced:
    - Warehouse.code and Product.sku are unique.
    - min_stock_level and standard_cost are non-negative (check constraints).
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from erp_kernel.db.base import TrackedBase
from erp_kernel.db.types import Money, Quantity


class WarehouseType(str, Enum):
    RAW_MATERIAL = "raw_material"
    PACKAGING = "packaging"
    FINISHED_PRODUCT = "finished_product"
    GOODS = "goods"


class ProductType(str, Enum):
    RAW_MATERIAL = "raw_material"
    PACKAGING = "packaging"
    FINISHED_PRODUCT = "finished_product"
    GOODS = "goods"


class Warehouse(TrackedBase):
    """A physical stock location."""

    __tablename__ = "warehouses"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    warehouse_type: Mapped[str] = mapped_column(
        String(30), nullable=False, default=WarehouseType.GOODS.value
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Warehouse {self.code}>"


class Product(TrackedBase):
    """
    A stock-keeping unit.

    ``unit`` drives the rounding increment used when BOM requirements are
    resolved for this product as a material.
    """

    __tablename__ = "products"

    __table_args__ = (
        CheckConstraint("CAST(min_stock_level AS NUMERIC) >= 0", name="ck_product_min_stock_non_negative"),
        CheckConstraint("CAST(standard_cost AS NUMERIC) >= 0", name="ck_product_standard_cost_non_negative"),
    )

    sku: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    product_type: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ProductType.GOODS.value
    )
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="unit")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    min_stock_level: Mapped[Quantity] = mapped_column(nullable=False, default=Decimal("0"))
    standard_cost: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))

    def __repr__(self) -> str:
        return f"<Product {self.sku}>"
