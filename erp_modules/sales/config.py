"""
Sales Configuration Schema.

Defaults for sales order numbering and payment handling.
"""

from dataclasses import dataclass

from erp_kernel.logging_config import get_logger

logger = get_logger("modules.sales.config")


@dataclass
class SalesConfig:
    """
    Configuration schema for the sales module.

        config = SalesConfig(order_prefix="SO", allow_overpayment=False)
    """

    order_prefix: str = "SO"
    allow_overpayment: bool = False

    def __post_init__(self):
        if not self.order_prefix or not self.order_prefix.isalnum():
            raise ValueError(
                f"order_prefix must be a non-empty alphanumeric string, got '{self.order_prefix}'"
            )
        logger.debug(
            "sales_config_loaded",
            extra={
                "order_prefix": self.order_prefix,
                "allow_overpayment": self.allow_overpayment,
            },
        )
