"""
Replay-vs-live reconciliation: detection, holds, blocked writes and release.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import update

from erp_kernel.domain.stock import LedgerEntry, TransactionType
from erp_kernel.exceptions import (
    ConflictError,
    ConsistencyError,
    NotFoundError,
    ReconciliationHoldError,
)
from erp_kernel.models.inventory import InventoryRecord
from erp_services.reconciliation_service import ReconciliationService


@pytest.fixture
def recon(session, deterministic_clock):
    return ReconciliationService(session, deterministic_clock)


@pytest.fixture
def stocked_key(create_warehouse, create_product, receive_stock):
    wh, product = create_warehouse(), create_product()
    receive_stock(wh.id, product.id, Decimal("10"))
    return wh.id, product.id


def _tamper(session, warehouse_id, product_id, quantity):
    """Change a live quantity behind the ledger's back."""
    session.execute(
        update(InventoryRecord)
        .where(
            InventoryRecord.warehouse_id == warehouse_id,
            InventoryRecord.product_id == product_id,
        )
        .values(quantity=quantity)
    )
    session.commit()


def _import(ledger, warehouse_id, product_id, quantity, actor_id):
    return ledger.record(
        LedgerEntry(
            warehouse_id=warehouse_id,
            product_id=product_id,
            transaction_type=TransactionType.IMPORT,
            quantity=quantity,
        ),
        actor_id,
    )


class TestReconcileKey:

    def test_clean_key_returns_quantity(self, recon, stocked_key, test_actor_id):
        assert recon.reconcile_key(*stocked_key, test_actor_id) == Decimal("10")
        assert recon.open_holds() == []

    def test_mismatch_places_hold(self, session, recon, stocked_key, test_actor_id, captured_logs):
        _tamper(session, *stocked_key, Decimal("13"))

        with pytest.raises(ConsistencyError) as exc_info:
            recon.reconcile_key(*stocked_key, test_actor_id)

        assert exc_info.value.live_quantity == Decimal("13")
        assert exc_info.value.replayed_quantity == Decimal("10")
        holds = recon.open_holds()
        assert len(holds) == 1
        assert (holds[0].warehouse_id, holds[0].product_id) == stocked_key
        assert any(
            r["message"] == "ledger_replay_mismatch" and r["level"] == "CRITICAL"
            for r in captured_logs()
        )

    def test_repeated_check_keeps_one_hold(self, session, recon, stocked_key, test_actor_id):
        _tamper(session, *stocked_key, Decimal("13"))
        for _ in range(2):
            with pytest.raises(ConsistencyError):
                recon.reconcile_key(*stocked_key, test_actor_id)
        assert len(recon.open_holds()) == 1

    def test_held_key_refuses_writes(self, session, recon, ledger, stocked_key, test_actor_id):
        _tamper(session, *stocked_key, Decimal("13"))
        with pytest.raises(ConsistencyError):
            recon.reconcile_key(*stocked_key, test_actor_id)

        with pytest.raises(ReconciliationHoldError):
            _import(ledger, *stocked_key, Decimal("1"), test_actor_id)
        session.rollback()


class TestReleaseHold:

    def test_release_after_fix_unblocks_key(self, session, recon, ledger, stocked_key,
                                            test_actor_id):
        _tamper(session, *stocked_key, Decimal("13"))
        with pytest.raises(ConsistencyError):
            recon.reconcile_key(*stocked_key, test_actor_id)
        hold = recon.open_holds()[0]

        _tamper(session, *stocked_key, Decimal("10"))
        released = recon.release_hold(hold.id, test_actor_id, "restored from ledger")

        assert released.released_by_id == test_actor_id
        assert released.resolution_note == "restored from ledger"
        assert recon.open_holds() == []
        _import(ledger, *stocked_key, Decimal("1"), test_actor_id)
        session.commit()
        assert recon.reconcile_key(*stocked_key, test_actor_id) == Decimal("11")

    def test_release_twice_conflicts(self, session, recon, stocked_key, test_actor_id):
        _tamper(session, *stocked_key, Decimal("13"))
        with pytest.raises(ConsistencyError):
            recon.reconcile_key(*stocked_key, test_actor_id)
        hold = recon.open_holds()[0]
        recon.release_hold(hold.id, test_actor_id, "fixed")

        with pytest.raises(ConflictError):
            recon.release_hold(hold.id, test_actor_id, "fixed again")

    def test_release_unknown_hold(self, recon, test_actor_id):
        with pytest.raises(NotFoundError):
            recon.release_hold(uuid4(), test_actor_id, "nothing")


class TestReconcileAll:

    def test_report_lists_only_divergent_keys(self, session, recon, create_warehouse, create_product,
                                              receive_stock, test_actor_id):
        wh = create_warehouse()
        good, bad = create_product(), create_product()
        receive_stock(wh.id, good.id, Decimal("5"))
        receive_stock(wh.id, bad.id, Decimal("5"))
        _tamper(session, wh.id, bad.id, Decimal("4"))

        report = recon.reconcile_all(test_actor_id)

        assert not report.is_clean
        assert [(d.warehouse_id, d.product_id) for d in report.discrepancies] == [(wh.id, bad.id)]
        assert report.discrepancies[0].difference == Decimal("-1")
        assert report.checked >= 2

    def test_clean_ledger(self, recon, stocked_key, test_actor_id):
        report = recon.reconcile_all(test_actor_id)
        assert report.is_clean
        assert report.checked >= 1
