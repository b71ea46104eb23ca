"""
ORM model registry.

Importing every ORM module registers its tables on ``Base.metadata``.
``erp_kernel.db.engine.create_tables`` calls ``import_all_orm_models``
before ``create_all`` so that no table is missed.
"""

from erp_kernel.logging_config import get_logger

logger = get_logger("modules.orm_registry")


def import_all_orm_models() -> None:
    """Import all kernel and module ORM models."""
    import erp_kernel.models  # noqa: F401
    import erp_kernel.services.sequence_service  # noqa: F401
    import erp_modules.bom.orm  # noqa: F401
    import erp_modules.production.orm  # noqa: F401
    import erp_modules.sales.orm  # noqa: F401
    import erp_modules.transfer.orm  # noqa: F401

    logger.debug("orm_models_imported")
