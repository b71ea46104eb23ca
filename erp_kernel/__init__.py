"""
ERP Kernel - inventory ledger core

An append-only stock ledger with:
- Per (warehouse, product) inventory records guarded by row locks
- Soft reservations that never move physical stock
- Replayable transaction history for reconciliation
- Explicit state machines for order workflows
"""

__version__ = "0.1.0"
