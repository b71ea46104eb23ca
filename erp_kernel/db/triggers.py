"""
Module: erp_kernel.db.triggers
Responsibility: Loading, installing, and verifying PostgreSQL triggers that
    guard the stock ledger at the database level.  Complements the ORM
    listeners in db/immutability.py so raw SQL cannot rewrite history either.
Architecture position: Kernel > DB.  MUST NOT import from models/, services/,
    selectors/, domain/, or outer layers.

Invariants enforced:
    - stock_transactions rows: no UPDATE, no DELETE.
    - inventory_records rows: no DELETE while quantity or reserved is nonzero.

Failure modes:
    - PostgreSQL RAISE EXCEPTION (restrict_violation) on violation, surfaced
      by SQLAlchemy as IntegrityError or InternalError.
    - FileNotFoundError if SQL files are missing from the sql/ directory.
"""

from pathlib import Path

from sqlalchemy.engine import Engine

from erp_kernel.logging_config import get_logger

logger = get_logger("db.triggers")

SQL_DIR = Path(__file__).parent / "sql"

# Numbered for predictable install order
TRIGGER_FILES = [
    "01_stock_transaction.sql",
    "02_inventory_record.sql",
]

DROP_FILE = "99_drop_all.sql"

ALL_TRIGGER_NAMES = [
    "trg_stock_transaction_immutability_update",
    "trg_stock_transaction_immutability_delete",
    "trg_inventory_record_nonzero_delete",
]


def _load_sql_file(filename: str) -> str:
    return (SQL_DIR / filename).read_text(encoding="utf-8")


def _load_all_trigger_sql() -> str:
    """Concatenate all trigger files in numbered order."""
    sql_parts = []
    for filename in TRIGGER_FILES:
        sql_parts.append(f"-- Loading: {filename}")
        sql_parts.append(_load_sql_file(filename))
        sql_parts.append("")
    return "\n".join(sql_parts)


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install the ledger triggers (idempotent: CREATE OR REPLACE / DROP IF EXISTS).

    Preconditions: Tables exist.  Engine is connected to PostgreSQL.
    """
    with engine.connect() as conn:
        conn.exec_driver_sql(_load_all_trigger_sql())
        conn.commit()
    logger.info("ledger_triggers_installed", extra={"triggers": ALL_TRIGGER_NAMES})


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove the ledger triggers.

    Only for migrations and test teardown.  Re-install immediately after.
    """
    with engine.connect() as conn:
        conn.exec_driver_sql(_load_sql_file(DROP_FILE))
        conn.commit()
    logger.warning("ledger_triggers_uninstalled")


def get_installed_triggers(engine: Engine) -> list[str]:
    """Names of the ledger triggers currently present in pg_trigger."""
    trigger_list = ", ".join(f"'{name}'" for name in ALL_TRIGGER_NAMES)
    check_sql = (
        f"SELECT tgname FROM pg_trigger WHERE tgname IN ({trigger_list}) "
        f"ORDER BY tgname"
    )
    with engine.connect() as conn:
        return [row[0] for row in conn.exec_driver_sql(check_sql)]


def triggers_installed(engine: Engine) -> bool:
    """True iff every ledger trigger is installed."""
    return len(get_installed_triggers(engine)) == len(ALL_TRIGGER_NAMES)
