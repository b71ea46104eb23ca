"""
Kernel Invariants Contract.

These invariants are structural law for the stock ledger. No configuration
value or workflow may switch them off.

This module exists solely to declare them explicitly. Enforcement is
distributed across InventoryStore, StockLedger, ReservationManager, the
immutability listeners/triggers, and the workflow transition tables.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel.

    Each value names one structural guarantee that the kernel provides
    unconditionally.
    """

    NON_NEGATIVE_STOCK = "non_negative_stock"
    """quantity >= 0 and reserved_quantity >= 0 for every inventory record.
    Enforced by InventoryStore.apply_delta and DB check constraints."""

    RESERVED_WITHIN_QUANTITY = "reserved_within_quantity"
    """reserved_quantity <= quantity for every inventory record. Enforced
    by InventoryStore.apply_delta and a DB check constraint."""

    LEDGER_IS_SOLE_WRITER = "ledger_is_sole_writer"
    """Physical quantity only changes through StockLedger.record, which
    writes the justifying StockTransaction in the same transaction."""

    REPLAY_EQUALS_LIVE = "replay_equals_live"
    """Summing the signed stock transactions of a key reproduces its live
    quantity. Checked by StockLedger.verify and the reconciliation service;
    a divergence freezes the key."""

    APPEND_ONLY_LEDGER = "append_only_ledger"
    """Stock transactions are never updated or deleted. Enforced by ORM
    listeners (erp_kernel.db.immutability) and PostgreSQL triggers."""

    ALL_OR_NOTHING = "all_or_nothing"
    """A multi-line mutation either applies every line or none. Enforced by
    running each workflow step in one transaction (or savepoint)."""

    LEGAL_TRANSITIONS_ONLY = "legal_transitions_only"
    """Document status changes follow the workflow transition table.
    Enforced by Workflow.resolve."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "erp_services",
    "erp_config",
    "erp_modules",
)
