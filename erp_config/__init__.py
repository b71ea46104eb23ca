"""
erp_config -- single public entrypoint for ERP configuration.

Responsibility:
    ``get_active_config()`` returns the frozen ``ErpConfig`` the running
    process uses.  No other component reads configuration files or
    environment variables directly.

Architecture position:
    Configuration.  Sits beside ``erp_kernel`` and below ``erp_services``;
    the kernel and the modules never import it (services translate it into
    module config objects).

Failure modes:
    - ``ConfigLoadError`` -- missing or malformed YAML, or a schema violation.
"""

from __future__ import annotations

import logging
from pathlib import Path

from erp_config.loader import ConfigLoadError, load_config
from erp_config.schema import DatabaseConfig, ErpConfig, InventoryPolicy, NumberingConfig

_logger = logging.getLogger("erp_kernel.config")

_active_config: ErpConfig | None = None


def get_active_config(path: Path | str | None = None, reload: bool = False) -> ErpConfig:
    """
    The ONLY public configuration entrypoint.

    The first call loads and caches the configuration; later calls return
    the cached object unless ``reload`` is set or an explicit ``path`` is
    given.
    """
    global _active_config
    if _active_config is not None and not reload and path is None:
        return _active_config

    config = load_config(path)
    _active_config = config
    _logger.info(
        "erp_config_loaded",
        extra={
            "database_dialect": config.database.url.split(":", 1)[0],
            "log_level": config.log_level,
            "verify_on_write": config.inventory.verify_on_write,
        },
    )
    return config


def reset_active_config() -> None:
    """Forget the cached configuration (tests)."""
    global _active_config
    _active_config = None


__all__ = [
    "ConfigLoadError",
    "DatabaseConfig",
    "ErpConfig",
    "InventoryPolicy",
    "NumberingConfig",
    "get_active_config",
    "load_config",
    "reset_active_config",
]
