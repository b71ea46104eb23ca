"""
erp_services.cache -- cache invalidation side channel.

Responsibility:
    After a successful commit, ``ErpOperations`` announces which read-model
    keys went stale.  Whatever caches those reads (nothing, by default)
    drops them.  Correctness never depends on the cache: every operation
    reads the database.

Key scheme:
    ``inventory:{warehouse_id}:{product_id}``, ``sales_order:{id}``,
    ``production_order:{id}``, ``bom:{id}``, ``transfer:{id}``.
"""

from __future__ import annotations

import threading
from typing import Iterable, Protocol, runtime_checkable
from uuid import UUID

from erp_kernel.logging_config import get_logger

logger = get_logger("services.cache")


def inventory_key(warehouse_id: UUID, product_id: UUID) -> str:
    return f"inventory:{warehouse_id}:{product_id}"


def sales_order_key(order_id: UUID) -> str:
    return f"sales_order:{order_id}"


def production_order_key(order_id: UUID) -> str:
    return f"production_order:{order_id}"


def bom_key(bom_id: UUID) -> str:
    return f"bom:{bom_id}"


def transfer_key(transfer_id: UUID) -> str:
    return f"transfer:{transfer_id}"


@runtime_checkable
class CacheInvalidator(Protocol):
    """Receives the keys made stale by a committed operation."""

    def invalidate(self, keys: Iterable[str]) -> None: ...


class NullCacheInvalidator:
    """Default: there is no cache."""

    def invalidate(self, keys: Iterable[str]) -> None:
        return None


class RecordingCacheInvalidator:
    """Keeps every invalidation batch, for tests and diagnostics."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.batches: list[tuple[str, ...]] = []

    def invalidate(self, keys: Iterable[str]) -> None:
        batch = tuple(sorted(set(keys)))
        with self._lock:
            self.batches.append(batch)

    @property
    def keys(self) -> set[str]:
        with self._lock:
            return {key for batch in self.batches for key in batch}

    def clear(self) -> None:
        with self._lock:
            self.batches.clear()


def emit_invalidation(invalidator: CacheInvalidator, keys: Iterable[str]) -> None:
    """
    Send ``keys`` to the invalidator.

    A failing cache is logged and does not fail the already committed
    operation.
    """
    keys = tuple(sorted(set(keys)))
    if not keys:
        return
    try:
        invalidator.invalidate(keys)
    except Exception:
        logger.warning(
            "cache_invalidation_failed",
            extra={"keys": list(keys)},
            exc_info=True,
        )
        return
    logger.debug("cache_invalidated", extra={"keys": list(keys)})
