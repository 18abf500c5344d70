"""
Network structure constants and enumerations.
"""
from enum import Enum
from decimal import Decimal


class Topology(Enum):
    """Network topology type."""
    BINARY = "binary"
    UNILEVEL = "unilevel"


class Slot(Enum):
    """Binary child position."""
    LEFT = "left"
    RIGHT = "right"

    @property
    def other(self) -> "Slot":
        return Slot.RIGHT if self is Slot.LEFT else Slot.LEFT


class RateKind(Enum):
    """Commission rate kinds."""
    DIRECT_JOIN = "direct_join"
    LEVEL_OVERRIDE = "level_override"
    GROUP_VOLUME = "group_volume"
    PERFORMANCE = "performance"


class RewardType(Enum):
    """How a rate turns volume into money."""
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class CutoffStatus(Enum):
    """Monthly cutoff batch status."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


SALE_STATUS_COMPLETED = "completed"

# Defaults (overridable through system_config / .env)
DEFAULT_MAX_DEPTH = 6
DEFAULT_CUTOFF_DAY = 25

# Binary group volume bonus: fixed rates pay per full block of PV
GROUP_VOLUME_TIER_PV = Decimal("1000")

# PV derived from price when pv_calculation == 'percentage'
PV_PRICE_RATIO = Decimal("0.5")

CENT = Decimal("0.01")
