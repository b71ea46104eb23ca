"""
Production Configuration Schema.
"""

from dataclasses import dataclass

from erp_kernel.logging_config import get_logger

logger = get_logger("modules.production.config")


@dataclass
class ProductionConfig:
    """
    Configuration schema for the production module.

    ``allow_overproduction`` controls whether an actual output above the
    planned quantity is accepted (it is always flagged in the log).
    """

    order_prefix: str = "MO"
    allow_overproduction: bool = True

    def __post_init__(self):
        if not self.order_prefix or not self.order_prefix.isalnum():
            raise ValueError(
                f"order_prefix must be a non-empty alphanumeric string, got '{self.order_prefix}'"
            )
