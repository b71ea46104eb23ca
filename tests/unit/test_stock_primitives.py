"""
Unit tests for stock value objects, decimal helpers and the error hierarchy.

No database.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from erp_kernel.db.types import ceil_to_increment, round_money
from erp_kernel.domain.stock import (
    AvailabilityLine,
    AvailabilityReport,
    InventoryKey,
    InventorySnapshot,
    LedgerEntry,
    StockLine,
    TransactionType,
    TransferEntry,
)
from erp_kernel.exceptions import (
    CompensationFailedError,
    ConflictError,
    ConsistencyError,
    DuplicateCodeError,
    ErpKernelError,
    IllegalTransitionError,
    InsufficientStockError,
    NotFoundError,
    ReconciliationHoldError,
    ValidationError,
)


class TestCeilToIncrement:

    def test_rounds_up_to_whole_units(self):
        assert ceil_to_increment(Decimal("52.63"), Decimal("1")) == Decimal("53")

    def test_exact_multiple_is_unchanged(self):
        assert ceil_to_increment(Decimal("50"), Decimal("1")) == Decimal("50")

    def test_fine_increment_keeps_value(self):
        assert ceil_to_increment(Decimal("52.63"), Decimal("0.01")) == Decimal("52.63")

    def test_never_rounds_down(self):
        assert ceil_to_increment(Decimal("10.0001"), Decimal("0.5")) == Decimal("10.5")

    def test_rejects_non_positive_increment(self):
        with pytest.raises(ValueError):
            ceil_to_increment(Decimal("1"), Decimal("0"))


class TestMoneyHelpers:

    def test_round_money_half_up(self):
        assert round_money(Decimal("29.165")) == Decimal("29.17")
        assert round_money(Decimal("29.164")) == Decimal("29.16")


class TestTransactionType:

    @pytest.mark.parametrize("txn_type,expected", [
        (TransactionType.IMPORT, Decimal("5")),
        (TransactionType.TRANSFER_IN, Decimal("5")),
        (TransactionType.EXPORT, Decimal("-5")),
        (TransactionType.TRANSFER_OUT, Decimal("-5")),
        (TransactionType.DISPOSAL, Decimal("-5")),
    ])
    def test_signed_delta_follows_direction(self, txn_type, expected):
        assert txn_type.signed_delta(Decimal("5")) == expected

    def test_adjustment_keeps_sign(self):
        assert TransactionType.ADJUSTMENT.signed_delta(Decimal("-3")) == Decimal("-3")
        assert TransactionType.ADJUSTMENT.signed_delta(Decimal("3")) == Decimal("3")


class TestLedgerEntry:

    def _entry(self, **overrides):
        fields = dict(
            warehouse_id=uuid4(),
            product_id=uuid4(),
            transaction_type=TransactionType.IMPORT,
            quantity=Decimal("10"),
            unit_cost=Decimal("2.5"),
        )
        fields.update(overrides)
        return LedgerEntry(**fields)

    def test_total_value(self):
        assert self._entry().total_value == Decimal("25.0")

    def test_negative_adjustment_total_value_is_positive(self):
        entry = self._entry(transaction_type=TransactionType.ADJUSTMENT, quantity=Decimal("-4"))
        assert entry.quantity_delta == Decimal("-4")
        assert entry.total_value == Decimal("10.0")

    @pytest.mark.parametrize("quantity", [Decimal("0"), Decimal("-1")])
    def test_non_adjustment_quantity_must_be_positive(self, quantity):
        with pytest.raises(ValidationError):
            self._entry(quantity=quantity)

    def test_zero_adjustment_rejected(self):
        with pytest.raises(ValidationError):
            self._entry(transaction_type=TransactionType.ADJUSTMENT, quantity=Decimal("0"))

    def test_float_quantity_rejected(self):
        with pytest.raises(ValidationError):
            self._entry(quantity=1.5)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            self._entry(transaction_type="import")

    def test_negative_unit_cost_rejected(self):
        with pytest.raises(ValidationError):
            self._entry(unit_cost=Decimal("-1"))


class TestTransferEntry:

    def test_legs_share_reference_and_point_at_each_other(self):
        source, dest, product, ref = uuid4(), uuid4(), uuid4(), uuid4()
        out_leg, in_leg = TransferEntry(source, dest, product, Decimal("3")).legs(ref)

        assert out_leg.transaction_type is TransactionType.TRANSFER_OUT
        assert in_leg.transaction_type is TransactionType.TRANSFER_IN
        assert out_leg.reference_id == in_leg.reference_id == ref
        assert out_leg.related_warehouse_id == dest
        assert in_leg.related_warehouse_id == source
        assert out_leg.quantity_delta + in_leg.quantity_delta == 0

    def test_same_warehouse_rejected(self):
        wh = uuid4()
        with pytest.raises(ValidationError):
            TransferEntry(wh, wh, uuid4(), Decimal("1"))


class TestSnapshotsAndAvailability:

    def test_available_quantity(self):
        snap = InventorySnapshot(uuid4(), uuid4(), Decimal("10"), Decimal("4"))
        assert snap.available_quantity == Decimal("6")

    def test_empty_snapshot(self):
        snap = InventorySnapshot.empty(uuid4(), uuid4())
        assert snap.quantity == snap.reserved_quantity == Decimal("0")

    def test_keys_sort_stably(self):
        a = InventoryKey(uuid4(), uuid4())
        b = InventoryKey(uuid4(), uuid4())
        assert sorted([a, b]) == sorted([b, a])

    def test_stock_line_requires_positive_quantity(self):
        with pytest.raises(ValidationError):
            StockLine(uuid4(), uuid4(), Decimal("0"))

    def test_report_shortages(self):
        ok = AvailabilityLine(uuid4(), Decimal("5"), Decimal("10"))
        short = AvailabilityLine(uuid4(), Decimal("5"), Decimal("2"))
        report = AvailabilityReport(uuid4(), (ok, short))

        assert not report.all_available
        assert report.shortages == (short,)
        assert short.shortfall == Decimal("3")
        assert ok.shortfall == Decimal("0")


class TestErrorHierarchy:

    def test_every_error_is_a_kernel_error_with_code(self):
        errors = [
            ValidationError("quantity", "bad"),
            InsufficientStockError("w", "p", Decimal("5"), Decimal("3")),
            NotFoundError("Product", "x"),
            ConflictError("SalesOrder", "x", "completed", "no"),
            IllegalTransitionError("SalesOrder", "x", "completed", "approve"),
            DuplicateCodeError("BillOfMaterials", "BOM-1"),
            ConsistencyError("w", "p", Decimal("1"), Decimal("2")),
            ReconciliationHoldError("w", "p", "h"),
        ]
        codes = {e.code for e in errors}
        assert all(isinstance(e, ErpKernelError) for e in errors)
        assert len(codes) == len(errors)

    def test_insufficient_stock_shortfall(self):
        err = InsufficientStockError("w", "p", Decimal("5"), Decimal("3"))
        assert err.shortfall == Decimal("2")
        assert err.code == "INSUFFICIENT_STOCK"

    def test_illegal_transition_is_a_conflict(self):
        err = IllegalTransitionError("SalesOrder", "x", "completed", "approve")
        assert isinstance(err, ConflictError)
        assert err.action == "approve"

    def test_compensation_failure_keeps_cause(self):
        cause = InsufficientStockError("w", "p", Decimal("5"), Decimal("3"))
        err = CompensationFailedError("ProductionOrder", "x", "in_progress", cause)
        assert err.cause is cause
        assert err.current_state == "in_progress"
        assert isinstance(err, ConflictError)

    def test_hold_error_is_a_consistency_error(self):
        assert isinstance(ReconciliationHoldError("w", "p", "h"), ConsistencyError)
