"""
ERP configuration schema.

Frozen dataclasses describing everything the system reads at start-up:
database connection, document numbering, inventory policy and log level.
The loader parses YAML into these types; nothing else in the system reads
configuration files or environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from erp_kernel.domain.stock import TransactionType

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def to_decimal(value: Any, name: str) -> Decimal:
    """YAML numbers arrive as int/float/str; route them through ``str``."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///erp.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    sqlite_busy_timeout: int = 30

    def __post_init__(self):
        if not self.url:
            raise ValueError("database url is required")
        for name in ("pool_size", "pool_timeout", "sqlite_busy_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.max_overflow < 0:
            raise ValueError("max_overflow must not be negative")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DatabaseConfig:
        return cls(
            url=data.get("url", "sqlite:///erp.db"),
            echo=bool(data.get("echo", False)),
            pool_size=int(data.get("pool_size", 20)),
            max_overflow=int(data.get("max_overflow", 10)),
            pool_timeout=int(data.get("pool_timeout", 30)),
            pool_recycle=int(data.get("pool_recycle", 1800)),
            sqlite_busy_timeout=int(data.get("sqlite_busy_timeout", 30)),
        )


# ---------------------------------------------------------------------------
# Numbering
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NumberingConfig:
    """Document code prefixes (``PREFIX-YYYYMMDD-NNN``) and ledger code prefixes."""

    sales_order: str = "SO"
    production_order: str = "MO"
    transfer: str = "TR"
    transactions: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("sales_order", "production_order", "transfer"):
            value = getattr(self, name)
            if not value or not value.isalnum():
                raise ValueError(f"numbering.{name} must be alphanumeric, got {value!r}")
        prefixes = [self.sales_order, self.production_order, self.transfer]
        if len(set(prefixes)) != len(prefixes):
            raise ValueError(f"document prefixes must be distinct, got {prefixes}")
        known_types = {t.value for t in TransactionType}
        for txn_type, prefix in self.transactions.items():
            if txn_type not in known_types:
                raise ValueError(
                    f"numbering.transactions has unknown transaction type {txn_type!r}"
                )
            if not prefix or not prefix.isalnum():
                raise ValueError(
                    f"numbering.transactions.{txn_type} must be alphanumeric, got {prefix!r}"
                )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NumberingConfig:
        return cls(
            sales_order=data.get("sales_order", "SO"),
            production_order=data.get("production_order", "MO"),
            transfer=data.get("transfer", "TR"),
            transactions=dict(data.get("transactions") or {}),
        )


# ---------------------------------------------------------------------------
# Inventory policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InventoryPolicy:
    """
    Stock-handling policy.

    ``unit_increments`` maps a unit of measure to the increment material
    requirements are rounded UP to; other units use ``default_increment``.
    ``verify_on_write`` replays a key after every ledger write (slow; meant
    for test and audit environments).
    """

    default_increment: Decimal = Decimal("1")
    unit_increments: dict[str, Decimal] = field(default_factory=dict)
    default_efficiency_rate: Decimal = Decimal("100")
    verify_on_write: bool = False
    allow_overpayment: bool = False
    allow_overproduction: bool = True

    def __post_init__(self):
        if self.default_increment <= 0:
            raise ValueError("inventory.default_increment must be positive")
        for unit, increment in self.unit_increments.items():
            if increment <= 0:
                raise ValueError(f"inventory.unit_increments.{unit} must be positive")
        if not (Decimal("0") < self.default_efficiency_rate <= Decimal("100")):
            raise ValueError("inventory.default_efficiency_rate must be in (0, 100]")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InventoryPolicy:
        return cls(
            default_increment=to_decimal(data.get("default_increment", "1"), "default_increment"),
            unit_increments={
                unit: to_decimal(value, f"unit_increments.{unit}")
                for unit, value in (data.get("unit_increments") or {}).items()
            },
            default_efficiency_rate=to_decimal(
                data.get("default_efficiency_rate", "100"), "default_efficiency_rate"
            ),
            verify_on_write=bool(data.get("verify_on_write", False)),
            allow_overpayment=bool(data.get("allow_overpayment", False)),
            allow_overproduction=bool(data.get("allow_overproduction", True)),
        )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ErpConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    numbering: NumberingConfig = field(default_factory=NumberingConfig)
    inventory: InventoryPolicy = field(default_factory=InventoryPolicy)
    log_level: str = "INFO"

    def __post_init__(self):
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}, got {self.log_level!r}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ErpConfig:
        return cls(
            database=DatabaseConfig.from_dict(data.get("database") or {}),
            numbering=NumberingConfig.from_dict(data.get("numbering") or {}),
            inventory=InventoryPolicy.from_dict(data.get("inventory") or {}),
            log_level=str(data.get("log_level", "INFO")).upper(),
        )
