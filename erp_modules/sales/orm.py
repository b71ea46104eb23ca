"""
Module: erp_modules.sales.orm
Responsibility: SQLAlchemy ORM persistence models for the Sales module.
    Maps sales orders and their lines to relational tables.

Architecture position: Modules > Sales > ORM.  Inherits from TrackedBase
    (erp_kernel.db.base).  Products and warehouses are referenced with
    foreign keys; customers are an external entity referenced by UUID only.

Invariants enforced:
    - All quantity and money fields are ExactDecimal -- NEVER float.
    - Status enums stored as String(50) values.
    - order_code unique; (sales_order_id, line_number) unique.

Failure modes:
    - IntegrityError on duplicate order_code (prevented by SequenceService).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_kernel.db.base import TrackedBase, UUIDString
from erp_kernel.db.types import Money, Percent, Quantity


# =============================================================================
# SalesOrderModel
# =============================================================================

class SalesOrderModel(TrackedBase):
    """
    ORM model for a sales order header.

    Maps to: erp_modules.sales.models.SalesOrder (frozen dataclass).
    """

    __tablename__ = "sales_orders"

    __table_args__ = (
        Index("idx_sales_order_status", "status"),
        Index("idx_sales_order_customer", "customer_id"),
        CheckConstraint("CAST(total_amount AS NUMERIC) >= 0", name="ck_sales_order_total_non_negative"),
        CheckConstraint("CAST(paid_amount AS NUMERIC) >= 0", name="ck_sales_order_paid_non_negative"),
    )

    order_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    customer_id: Mapped[UUID] = mapped_column(nullable=False)
    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )

    # Status (SalesOrderStatus / PaymentStatus enums stored as string)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
    payment_status: Mapped[str] = mapped_column(String(50), nullable=False, default="unpaid")

    # Totals
    subtotal: Mapped[Money] = mapped_column(nullable=False)
    shipping_fee: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))
    discount_amount: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))
    total_amount: Mapped[Money] = mapped_column(nullable=False)
    paid_amount: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0"))

    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    # Lifecycle stamps
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    lines: Mapped[list["SalesOrderDetailModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="SalesOrderDetailModel.line_number",
    )

    def to_dto(self):
        """Convert ORM model to frozen SalesOrder DTO."""
        from erp_modules.sales.models import PaymentStatus, SalesOrder, SalesOrderStatus
        return SalesOrder(
            id=self.id,
            order_code=self.order_code,
            customer_id=self.customer_id,
            warehouse_id=self.warehouse_id,
            status=SalesOrderStatus(self.status),
            payment_status=PaymentStatus(self.payment_status),
            subtotal=self.subtotal,
            shipping_fee=self.shipping_fee,
            discount_amount=self.discount_amount,
            total_amount=self.total_amount,
            paid_amount=self.paid_amount,
            lines=tuple(line.to_dto() for line in self.lines),
            notes=self.notes,
            created_by_id=self.created_by_id,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
            completed_at=self.completed_at,
            cancelled_at=self.cancelled_at,
            cancel_reason=self.cancel_reason,
        )

    def __repr__(self) -> str:
        return f"<SalesOrderModel {self.order_code} status={self.status}>"


# =============================================================================
# SalesOrderDetailModel
# =============================================================================

class SalesOrderDetailModel(TrackedBase):
    """
    ORM model for one sales order line.

    Maps to: erp_modules.sales.models.SalesOrderLine (frozen dataclass).
    """

    __tablename__ = "sales_order_details"

    __table_args__ = (
        UniqueConstraint("sales_order_id", "line_number", name="uq_sales_order_line_number"),
        Index("idx_sales_order_detail_product", "product_id"),
        CheckConstraint("CAST(quantity AS NUMERIC) > 0", name="ck_sales_order_detail_quantity_positive"),
    )

    sales_order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("sales_orders.id", ondelete="CASCADE"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )
    quantity: Mapped[Quantity] = mapped_column(nullable=False)
    unit_price: Mapped[Money] = mapped_column(nullable=False)
    discount_percent: Mapped[Percent] = mapped_column(nullable=False, default=Decimal("0"))
    tax_rate: Mapped[Percent] = mapped_column(nullable=False, default=Decimal("0"))
    line_total: Mapped[Money] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    order: Mapped[SalesOrderModel] = relationship(back_populates="lines")

    def to_dto(self):
        """Convert ORM model to frozen SalesOrderLine DTO."""
        from erp_modules.sales.models import SalesOrderLine
        return SalesOrderLine(
            id=self.id,
            line_number=self.line_number,
            product_id=self.product_id,
            warehouse_id=self.warehouse_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            discount_percent=self.discount_percent,
            tax_rate=self.tax_rate,
            line_total=self.line_total,
            notes=self.notes,
        )

    @classmethod
    def from_input(cls, line, line_number: int, warehouse_id: UUID, created_by_id: UUID) -> "SalesOrderDetailModel":
        """Create ORM model from a SalesOrderLineInput."""
        return cls(
            line_number=line_number,
            product_id=line.product_id,
            warehouse_id=line.warehouse_id or warehouse_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            discount_percent=line.discount_percent,
            tax_rate=line.tax_rate,
            line_total=line.line_total,
            notes=line.notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<SalesOrderDetailModel #{self.line_number} product={self.product_id} "
            f"qty={self.quantity}>"
        )
