"""
Transfer Configuration Schema.
"""

from dataclasses import dataclass

from erp_kernel.logging_config import get_logger

logger = get_logger("modules.transfer.config")


@dataclass
class TransferConfig:
    """Configuration schema for the transfer module."""

    transfer_prefix: str = "TR"

    def __post_init__(self):
        if not self.transfer_prefix or not self.transfer_prefix.isalnum():
            raise ValueError(
                f"transfer_prefix must be a non-empty alphanumeric string, got '{self.transfer_prefix}'"
            )
