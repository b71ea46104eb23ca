"""
Sales Domain Models (``erp_modules.sales.models``).

Responsibility
--------------
Frozen value objects for sales orders: status enums, line input, the order
and line DTOs returned by the service, and the pure totals arithmetic.

Architecture
------------
Layer: **Modules** -- pure domain data structures, no I/O.

Invariants
----------
- Line input: quantity > 0, unit_price >= 0, 0 <= discount/tax <= 100.
- ``line_total = qty * price * (1 - discount/100) * (1 + tax/100)``,
  rounded half-up to 2 places.  Prices are inputs, never looked up.
- ``payment_status`` is derived from paid vs total amount.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Sequence
from uuid import UUID

from erp_kernel.db.types import HUNDRED, round_money
from erp_kernel.domain.stock import ZERO, StockLine, require_non_negative, require_positive
from erp_kernel.exceptions import ValidationError
from erp_kernel.logging_config import get_logger

logger = get_logger("modules.sales.models")


class SalesOrderStatus(Enum):
    """Sales order processing states."""
    PENDING = "pending"
    PREPARING = "preparing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


def _require_percent(field_name: str, value: Decimal) -> None:
    require_non_negative(field_name, value)
    if value > HUNDRED:
        raise ValidationError(field_name, f"must be between 0 and 100, got {value}")


@dataclass(frozen=True)
class SalesOrderLineInput:
    """
    A requested order line.

    ``warehouse_id`` defaults to the order's warehouse when omitted.
    """
    product_id: UUID
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal = ZERO
    tax_rate: Decimal = ZERO
    warehouse_id: UUID | None = None
    notes: str | None = None

    def __post_init__(self):
        try:
            require_positive("quantity", self.quantity)
            require_non_negative("unit_price", self.unit_price)
            _require_percent("discount_percent", self.discount_percent)
            _require_percent("tax_rate", self.tax_rate)
        except ValidationError as exc:
            logger.warning(
                "sales_order_line_invalid",
                extra={
                    "product_id": str(self.product_id),
                    "field": exc.field,
                    "reason": exc.reason,
                },
            )
            raise

    @property
    def line_total(self) -> Decimal:
        return compute_line_total(
            self.quantity, self.unit_price, self.discount_percent, self.tax_rate
        )


def compute_line_total(
    quantity: Decimal,
    unit_price: Decimal,
    discount_percent: Decimal = ZERO,
    tax_rate: Decimal = ZERO,
) -> Decimal:
    """
    Line amount after line discount and tax.

    >>> compute_line_total(Decimal("3"), Decimal("10"), Decimal("10"), Decimal("8"))
    Decimal('29.16')
    """
    gross = quantity * unit_price
    discounted = gross * (HUNDRED - discount_percent) / HUNDRED
    taxed = discounted * (HUNDRED + tax_rate) / HUNDRED
    return round_money(taxed)


def compute_payment_status(paid_amount: Decimal, total_amount: Decimal) -> PaymentStatus:
    if paid_amount >= total_amount:
        return PaymentStatus.PAID
    if paid_amount > ZERO:
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    shipping_fee: Decimal
    discount_amount: Decimal
    total_amount: Decimal


def compute_order_totals(
    lines: Sequence[SalesOrderLineInput],
    shipping_fee: Decimal = ZERO,
    discount_amount: Decimal = ZERO,
) -> OrderTotals:
    """
    Sum line totals and apply order-level shipping and discount.

    Raises:
        ValidationError: negative fees, or a discount larger than the order.
    """
    require_non_negative("shipping_fee", shipping_fee)
    require_non_negative("discount_amount", discount_amount)
    subtotal = sum((line.line_total for line in lines), ZERO)
    total = round_money(subtotal + shipping_fee - discount_amount)
    if total < ZERO:
        raise ValidationError(
            "discount_amount",
            f"discount {discount_amount} exceeds subtotal plus shipping ({subtotal + shipping_fee})",
        )
    return OrderTotals(
        subtotal=round_money(subtotal),
        shipping_fee=round_money(shipping_fee),
        discount_amount=round_money(discount_amount),
        total_amount=total,
    )


@dataclass(frozen=True)
class SalesOrderLine:
    """A persisted order line."""
    id: UUID
    line_number: int
    product_id: UUID
    warehouse_id: UUID
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal
    tax_rate: Decimal
    line_total: Decimal
    notes: str | None = None

    @property
    def stock_line(self) -> StockLine:
        return StockLine(self.warehouse_id, self.product_id, self.quantity)


@dataclass(frozen=True)
class SalesOrder:
    """
    A sales order and its lines.

    Contract: Immutable snapshot taken at the end of a service call.
    """
    id: UUID
    order_code: str
    customer_id: UUID
    warehouse_id: UUID
    status: SalesOrderStatus
    payment_status: PaymentStatus
    subtotal: Decimal
    shipping_fee: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    lines: tuple[SalesOrderLine, ...]
    notes: str | None = None
    created_by_id: UUID | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None

    @property
    def balance_due(self) -> Decimal:
        return self.total_amount - self.paid_amount

    @property
    def stock_lines(self) -> tuple[StockLine, ...]:
        return tuple(line.stock_line for line in self.lines)
