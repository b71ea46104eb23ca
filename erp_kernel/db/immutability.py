"""
ORM-Level Immutability Enforcement for the stock ledger (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

The ledger is the only justification for every stock quantity.  If a
transaction row could be edited, replay would stop proving anything.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through Python/SQLAlchemy code
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/sql/*.sql (PostgreSQL triggers)
    - Catches raw SQL, bulk statements, direct psql access

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity             | When Immutable                | Why
-------------------|-------------------------------|------------------------------
StockTransaction   | ALWAYS (from creation)        | Replay source of truth
InventoryRecord    | DELETE while stock is nonzero | Quantity would vanish untraced

Mistakes are corrected with a new (adjustment or compensating) transaction,
never by editing history.

===============================================================================
USAGE
===============================================================================

    from erp_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

    unregister_immutability_listeners()  # TESTS ONLY
"""

from sqlalchemy import event

from erp_kernel.exceptions import ImmutabilityViolationError
from erp_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_stock_transaction_update(mapper, connection, target):
    """Stock transactions are never modified."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockTransaction",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockTransaction",
        entity_id=str(target.id),
        reason="Stock transactions are append-only and cannot be modified",
    )


def _check_stock_transaction_delete(mapper, connection, target):
    """Stock transactions are never deleted."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockTransaction",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockTransaction",
        entity_id=str(target.id),
        reason="Stock transactions are append-only and cannot be deleted",
    )


def _check_inventory_record_delete(mapper, connection, target):
    """An inventory record may only be deleted once it is empty."""
    if target.quantity == 0 and target.reserved_quantity == 0:
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "InventoryRecord",
            "entity_id": str(target.id),
            "operation": "DELETE",
            "quantity": target.quantity,
            "reserved_quantity": target.reserved_quantity,
        },
    )
    raise ImmutabilityViolationError(
        entity_type="InventoryRecord",
        entity_id=str(target.id),
        reason="Inventory records holding stock cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register all immutability event listeners (idempotent).

    Call after models are imported and before any database operations.
    """
    from erp_kernel.models.inventory import InventoryRecord
    from erp_kernel.models.stock_transaction import StockTransaction

    for target, name, fn in _listeners(StockTransaction, InventoryRecord):
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)


def _listeners(stock_transaction, inventory_record):
    return (
        (stock_transaction, "before_update", _check_stock_transaction_update),
        (stock_transaction, "before_delete", _check_stock_transaction_delete),
        (inventory_record, "before_delete", _check_inventory_record_delete),
    )


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the immutability listeners.

    WARNING: Only use this in tests that intentionally bypass protection.
    """
    from erp_kernel.models.inventory import InventoryRecord
    from erp_kernel.models.stock_transaction import StockTransaction

    for target, name, fn in _listeners(StockTransaction, InventoryRecord):
        _safe_remove_listener(target, name, fn)
