"""
Receipts, disposals, manual adjustments and stocktakes.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from erp_kernel.domain.stock import TransactionType
from erp_kernel.exceptions import InsufficientStockError, NotFoundError, ValidationError
from erp_kernel.selectors.inventory_selector import InventorySelector
from erp_kernel.selectors.transaction_selector import TransactionSelector
from erp_kernel.services.reservation_manager import ReservationManager
from erp_modules.stock import StockOperationsService, StocktakeCount


@pytest.fixture
def stock_ops(session, deterministic_clock, ledger):
    return StockOperationsService(session, deterministic_clock, ledger=ledger)


@pytest.fixture
def shelf(create_warehouse, create_product):
    return create_warehouse("WH-SHELF"), create_product("SKU-JAM", standard_cost=Decimal("2.25"))


def _snap(session, wh, product):
    return InventorySelector(session).snapshot(wh.id, product.id)


class TestReceive:

    def test_receive_uses_standard_cost(self, session, stock_ops, shelf, test_actor_id):
        wh, jam = shelf

        txn = stock_ops.receive(wh.id, jam.id, Decimal("12"), test_actor_id, reason="PO-77")

        assert txn.transaction_type == TransactionType.IMPORT
        assert txn.unit_cost == Decimal("2.25")
        assert txn.total_value == Decimal("27.00")
        assert txn.transaction_code.startswith("IMP-20240101-")
        assert _snap(session, wh, jam).quantity == Decimal("12")

    def test_receive_explicit_cost(self, stock_ops, shelf, test_actor_id):
        wh, jam = shelf
        txn = stock_ops.receive(wh.id, jam.id, Decimal("2"), test_actor_id, unit_cost=Decimal("3"))
        assert txn.unit_cost == Decimal("3")

    def test_receive_unknown_product(self, stock_ops, shelf, test_actor_id):
        wh, _ = shelf
        with pytest.raises(NotFoundError):
            stock_ops.receive(wh.id, uuid4(), Decimal("1"), test_actor_id)

    def test_receive_non_positive(self, stock_ops, shelf, test_actor_id):
        wh, jam = shelf
        with pytest.raises(ValidationError):
            stock_ops.receive(wh.id, jam.id, Decimal("0"), test_actor_id)


class TestDisposeAndAdjust:

    def test_dispose_free_stock(self, session, stock_ops, shelf, test_actor_id):
        wh, jam = shelf
        stock_ops.receive(wh.id, jam.id, Decimal("10"), test_actor_id)

        txn = stock_ops.dispose(wh.id, jam.id, Decimal("3"), test_actor_id, reason="broken jars")

        assert txn.transaction_type == TransactionType.DISPOSAL
        assert _snap(session, wh, jam).quantity == Decimal("7")

    def test_dispose_needs_reason(self, stock_ops, shelf, test_actor_id):
        wh, jam = shelf
        with pytest.raises(ValidationError):
            stock_ops.dispose(wh.id, jam.id, Decimal("1"), test_actor_id, reason="")

    def test_dispose_cannot_touch_reserved_stock(self, session, ledger, stock_ops, shelf,
                                                 test_actor_id):
        wh, jam = shelf
        stock_ops.receive(wh.id, jam.id, Decimal("10"), test_actor_id)
        ReservationManager(session, ledger.store).reserve(wh.id, jam.id, Decimal("8"))
        session.commit()

        with pytest.raises(InsufficientStockError):
            stock_ops.dispose(wh.id, jam.id, Decimal("3"), test_actor_id, reason="expired")

        snap = _snap(session, wh, jam)
        assert (snap.quantity, snap.reserved_quantity) == (Decimal("10"), Decimal("8"))

    def test_signed_adjustments(self, session, stock_ops, shelf, deterministic_clock, test_actor_id):
        wh, jam = shelf
        stock_ops.receive(wh.id, jam.id, Decimal("10"), test_actor_id)
        deterministic_clock.tick()
        stock_ops.adjust(wh.id, jam.id, Decimal("-4"), test_actor_id, reason="miscount")
        deterministic_clock.tick()
        stock_ops.adjust(wh.id, jam.id, Decimal("1.5"), test_actor_id, reason="found behind shelf")

        assert _snap(session, wh, jam).quantity == Decimal("7.5")
        history = TransactionSelector(session).history(wh.id, jam.id)
        assert [t.quantity_delta for t in history] == [Decimal("10"), Decimal("-4"), Decimal("1.5")]

    def test_adjust_below_zero(self, session, stock_ops, shelf, test_actor_id):
        wh, jam = shelf
        stock_ops.receive(wh.id, jam.id, Decimal("2"), test_actor_id)
        with pytest.raises(InsufficientStockError):
            stock_ops.adjust(wh.id, jam.id, Decimal("-3"), test_actor_id, reason="oops")
        assert _snap(session, wh, jam).quantity == Decimal("2")


class TestStocktake:

    def test_adjusts_only_differences(self, session, stock_ops, create_warehouse, create_product,
                                      test_actor_id):
        wh = create_warehouse()
        jam, honey, tea = create_product(), create_product(), create_product()
        stock_ops.receive(wh.id, jam.id, Decimal("10"), test_actor_id)
        stock_ops.receive(wh.id, honey.id, Decimal("5"), test_actor_id)

        result = stock_ops.stocktake(wh.id, [
            StocktakeCount(jam.id, Decimal("8")),
            StocktakeCount(honey.id, Decimal("5")),
            StocktakeCount(tea.id, Decimal("3")),
        ], test_actor_id)

        assert result.adjusted_count == 2
        assert result.unchanged_product_ids == (honey.id,)
        deltas = {t.product_id: t.quantity_delta for t in result.adjustments}
        assert deltas == {jam.id: Decimal("-2"), tea.id: Decimal("3")}
        assert all(t.reference_type == "stocktake" for t in result.adjustments)
        assert _snap(session, wh, tea).quantity == Decimal("3")

    def test_all_or_nothing(self, session, ledger, stock_ops, create_warehouse, create_product,
                            test_actor_id):
        wh = create_warehouse()
        jam, honey = create_product(), create_product()
        stock_ops.receive(wh.id, jam.id, Decimal("10"), test_actor_id)
        stock_ops.receive(wh.id, honey.id, Decimal("10"), test_actor_id)
        ReservationManager(session, ledger.store).reserve(wh.id, honey.id, Decimal("6"))
        session.commit()

        with pytest.raises(InsufficientStockError):
            stock_ops.stocktake(wh.id, [
                StocktakeCount(jam.id, Decimal("9")),
                StocktakeCount(honey.id, Decimal("4")),
            ], test_actor_id)

        assert _snap(session, wh, jam).quantity == Decimal("10")
        assert _snap(session, wh, honey).quantity == Decimal("10")

    def test_duplicate_count_rejected(self, stock_ops, shelf, test_actor_id):
        wh, jam = shelf
        with pytest.raises(ValidationError):
            stock_ops.stocktake(wh.id, [
                StocktakeCount(jam.id, Decimal("1")),
                StocktakeCount(jam.id, Decimal("2")),
            ], test_actor_id)

    def test_negative_count_rejected(self, shelf):
        _, jam = shelf
        with pytest.raises(ValidationError):
            StocktakeCount(jam.id, Decimal("-1"))
