"""
erp_services -- Package init and public API.

Responsibility:
    Orchestration above the modules: the session-per-operation facade used
    by external callers, ledger reconciliation, and the cache invalidation
    side channel.

Architecture position:
    Services -- the only layer that creates sessions from a factory.

    Dependency direction:
        erp_services/ -> erp_modules/, erp_kernel/, erp_config/  (allowed)
        erp_kernel/   -> erp_services/                           (FORBIDDEN)
        erp_modules/  -> erp_services/                           (FORBIDDEN)
"""

from erp_services.cache import (
    CacheInvalidator,
    NullCacheInvalidator,
    RecordingCacheInvalidator,
)
from erp_services.operations import ErpOperations
from erp_services.reconciliation_service import (
    HoldRecord,
    KeyDiscrepancy,
    ReconciliationReport,
    ReconciliationService,
)

__all__ = [
    "CacheInvalidator",
    "ErpOperations",
    "HoldRecord",
    "KeyDiscrepancy",
    "NullCacheInvalidator",
    "RecordingCacheInvalidator",
    "ReconciliationReport",
    "ReconciliationService",
]
