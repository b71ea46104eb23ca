"""
BOM Configuration Schema.

Efficiency defaults and the rounding increment of each unit of measure.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from erp_kernel.logging_config import get_logger

logger = get_logger("modules.bom.config")


@dataclass
class BomConfig:
    """
    Configuration schema for the BOM module.

    ``unit_increments`` maps a unit of measure to the smallest quantity a
    requirement may be expressed in; requirements round up to it.  Units
    not listed use ``default_increment``:

        config = BomConfig(unit_increments={"kg": Decimal("0.01")})
    """

    default_efficiency_rate: Decimal = Decimal("100")
    default_increment: Decimal = Decimal("1")
    unit_increments: dict[str, Decimal] = field(default_factory=dict)
    initial_version: str = "1.0"

    def __post_init__(self):
        if not (Decimal("0") < self.default_efficiency_rate <= Decimal("100")):
            raise ValueError(
                f"default_efficiency_rate must be in (0, 100], got {self.default_efficiency_rate}"
            )
        if self.default_increment <= 0:
            raise ValueError(f"default_increment must be positive, got {self.default_increment}")
        for unit, increment in self.unit_increments.items():
            if increment <= 0:
                raise ValueError(f"increment for unit '{unit}' must be positive, got {increment}")

    def increment_for(self, unit: str) -> Decimal:
        return self.unit_increments.get(unit, self.default_increment)
