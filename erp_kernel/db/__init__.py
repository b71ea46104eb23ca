"""Database layer - engine, base classes, column types, immutability."""

from erp_kernel.db.base import UUID, Base, ExactDecimal, TrackedBase, UTCDateTime, UUIDString
from erp_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from erp_kernel.db.types import Money, Percent, Quantity

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UTCDateTime",
    "ExactDecimal",
    "UUID",
    "Money",
    "Percent",
    "Quantity",
]
