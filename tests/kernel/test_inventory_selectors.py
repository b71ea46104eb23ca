"""
Read-side queries: availability, stock summaries, low-stock alerts and
transaction lookups.
"""

from decimal import Decimal

import pytest

from erp_kernel.domain.stock import LedgerEntry, TransactionType
from erp_kernel.exceptions import ValidationError
from erp_kernel.selectors.inventory_selector import InventorySelector
from erp_kernel.selectors.transaction_selector import TransactionSelector
from erp_kernel.services.reservation_manager import ReservationManager


@pytest.fixture
def selector(session):
    return InventorySelector(session)


class TestCheckAvailability:

    def test_mixed_report(self, selector, receive_stock, create_warehouse, create_product):
        wh = create_warehouse()
        plenty, scarce, absent = create_product(), create_product(), create_product()
        receive_stock(wh.id, plenty.id, Decimal("10"))
        receive_stock(wh.id, scarce.id, Decimal("1"))

        report = selector.check_availability(wh.id, [
            (plenty.id, Decimal("5")),
            (scarce.id, Decimal("2")),
            (absent.id, Decimal("1")),
        ])

        assert not report.all_available
        assert [line.product_id for line in report.shortages] == [scarce.id, absent.id]
        assert report.shortages[1].available == Decimal("0")

    def test_reservations_reduce_availability(self, session, selector, ledger, receive_stock,
                                              create_warehouse, create_product):
        wh, product = create_warehouse(), create_product()
        receive_stock(wh.id, product.id, Decimal("10"))
        ReservationManager(session, ledger.store).reserve(wh.id, product.id, Decimal("7"))

        report = selector.check_availability(wh.id, [(product.id, Decimal("4"))])

        assert not report.all_available
        assert report.lines[0].available == Decimal("3")

    def test_repeated_product_is_summed(self, selector, receive_stock, create_warehouse, create_product):
        wh, product = create_warehouse(), create_product()
        receive_stock(wh.id, product.id, Decimal("5"))

        report = selector.check_availability(wh.id, [
            (product.id, Decimal("3")),
            (product.id, Decimal("3")),
        ])

        assert len(report.lines) == 1
        assert report.lines[0].requested == Decimal("6")
        assert not report.all_available

    def test_empty_request(self, selector, create_warehouse):
        assert selector.check_availability(create_warehouse().id, []).all_available

    def test_non_positive_quantity_rejected(self, selector, create_warehouse, create_product):
        with pytest.raises(ValidationError):
            selector.check_availability(create_warehouse().id, [(create_product().id, Decimal("0"))])


class TestStockSummaries:

    def test_product_summary_across_warehouses(self, selector, receive_stock, create_warehouse, create_product):
        product = create_product()
        receive_stock(create_warehouse().id, product.id, Decimal("4"))
        receive_stock(create_warehouse().id, product.id, Decimal("6"))

        summary = selector.product_summary(product.id)

        assert summary.total_quantity == Decimal("10")
        assert summary.total_available == Decimal("10")
        assert len(summary.records) == 2

    def test_snapshot_of_unknown_key_is_empty(self, selector, create_warehouse, create_product):
        snapshot = selector.snapshot(create_warehouse().id, create_product().id)
        assert snapshot.quantity == Decimal("0")

    def test_low_stock_alerts(self, selector, receive_stock, create_warehouse, create_product):
        wh = create_warehouse()
        low = create_product("SKU-LOW", min_stock_level=Decimal("20"))
        ok = create_product("SKU-OK", min_stock_level=Decimal("5"))
        untracked = create_product("SKU-UNTRACKED")
        receive_stock(wh.id, low.id, Decimal("8"))
        receive_stock(wh.id, ok.id, Decimal("8"))
        receive_stock(wh.id, untracked.id, Decimal("1"))

        alerts = selector.low_stock_alerts(wh.id)

        assert [a.sku for a in alerts] == ["SKU-LOW"]
        assert alerts[0].deficit == Decimal("12")


class TestTransactionSelector:

    def test_lookup_by_reference_and_code(self, session, ledger, create_warehouse, create_product, test_actor_id):
        wh, product = create_warehouse(), create_product()
        txn = ledger.record(
            LedgerEntry(wh.id, product.id, TransactionType.IMPORT, Decimal("3"),
                        reference_type="purchase_receipt", reference_id=wh.id),
            test_actor_id,
        )
        transactions = TransactionSelector(session)

        [by_ref] = transactions.by_reference("purchase_receipt", wh.id)
        assert by_ref.id == txn.id
        assert transactions.by_code(txn.transaction_code).quantity == Decimal("3")
        assert transactions.by_code("IMP-19700101-NOPE") is None
        assert (wh.id, product.id) in transactions.keys()
        assert [t.id for t in transactions.history(wh.id, product.id)] == [txn.id]
