"""
Active network configuration.

Stored as key/value rows in system_config; seeded from .env through Config.
"""
from dataclasses import dataclass, replace
from typing import Dict, Mapping
import logging

from network_comp.config.constants import Topology, DEFAULT_MAX_DEPTH, DEFAULT_CUTOFF_DAY

logger = logging.getLogger(__name__)

# system_config keys
KEY_STRUCTURE = "mlm_structure"
KEY_BINARY_MAX_DEPTH = "binary_max_depth"
KEY_UNILEVEL_MAX_DEPTH = "unilevel_max_depth"
KEY_PERFORMANCE_BONUS = "performance_bonus_enabled"
KEY_PV_CALCULATION = "pv_calculation"
KEY_CUTOFF_DAY = "monthly_cutoff_day"

CONFIG_DESCRIPTIONS = {
    KEY_STRUCTURE: "MLM structure type: binary or unilevel",
    KEY_PV_CALCULATION: "PV calculation method: percentage or fixed",
    KEY_PERFORMANCE_BONUS: "Whether performance bonus is enabled",
    KEY_CUTOFF_DAY: "Day of month for commission cutoff",
    KEY_BINARY_MAX_DEPTH: "Maximum depth for binary structure",
    KEY_UNILEVEL_MAX_DEPTH: "Maximum depth for unilevel structure",
}


@dataclass(frozen=True)
class TopologyConfig:
    """Snapshot of the network configuration for one call."""
    activeTopology: str = Topology.BINARY.value
    binaryMaxDepth: int = DEFAULT_MAX_DEPTH
    unilevelMaxDepth: int = DEFAULT_MAX_DEPTH
    performanceBonusEnabled: bool = False
    pvCalculation: str = "percentage"
    monthlyCutoffDay: int = DEFAULT_CUTOFF_DAY

    def maxDepthFor(self, topology: str) -> int:
        if topology == Topology.BINARY.value:
            return self.binaryMaxDepth
        return self.unilevelMaxDepth

    def toMapping(self) -> Dict[str, str]:
        """Serialize to system_config key/value strings."""
        return {
            KEY_STRUCTURE: self.activeTopology,
            KEY_BINARY_MAX_DEPTH: str(self.binaryMaxDepth),
            KEY_UNILEVEL_MAX_DEPTH: str(self.unilevelMaxDepth),
            KEY_PERFORMANCE_BONUS: "true" if self.performanceBonusEnabled else "false",
            KEY_PV_CALCULATION: self.pvCalculation,
            KEY_CUTOFF_DAY: str(self.monthlyCutoffDay),
        }

    @classmethod
    def defaults(cls) -> "TopologyConfig":
        """Defaults from environment Config, falling back to built-ins."""
        from config import Config

        base = cls()
        if not Config.is_initialized():
            return base

        return replace(
            base,
            activeTopology=Config.get(Config.MLM_STRUCTURE, base.activeTopology),
            binaryMaxDepth=Config.get(Config.BINARY_MAX_DEPTH, base.binaryMaxDepth),
            unilevelMaxDepth=Config.get(Config.UNILEVEL_MAX_DEPTH, base.unilevelMaxDepth),
            performanceBonusEnabled=Config.get(Config.PERFORMANCE_BONUS_ENABLED, base.performanceBonusEnabled),
            pvCalculation=Config.get(Config.PV_CALCULATION, base.pvCalculation),
            monthlyCutoffDay=Config.get(Config.MONTHLY_CUTOFF_DAY, base.monthlyCutoffDay),
        )

    @classmethod
    def fromMapping(cls, raw: Mapping[str, str], defaults: "TopologyConfig" = None) -> "TopologyConfig":
        """
        Parse system_config rows.

        Missing or unparseable values fall back to defaults with a warning,
        so a broken row never stops a calculation.
        """
        defaults = defaults or cls.defaults()

        structure = (raw.get(KEY_STRUCTURE) or defaults.activeTopology).strip().lower()
        if structure not in (Topology.BINARY.value, Topology.UNILEVEL.value):
            logger.warning(f"Unknown {KEY_STRUCTURE} '{structure}', using {defaults.activeTopology}")
            structure = defaults.activeTopology

        pvCalculation = (raw.get(KEY_PV_CALCULATION) or defaults.pvCalculation).strip().lower()
        if pvCalculation not in ("percentage", "fixed"):
            logger.warning(f"Unknown {KEY_PV_CALCULATION} '{pvCalculation}', using {defaults.pvCalculation}")
            pvCalculation = defaults.pvCalculation

        bonusRaw = raw.get(KEY_PERFORMANCE_BONUS)
        performanceBonus = (
            defaults.performanceBonusEnabled if bonusRaw is None
            else str(bonusRaw).strip().lower() == "true"
        )

        return cls(
            activeTopology=structure,
            binaryMaxDepth=_parsePositiveInt(raw, KEY_BINARY_MAX_DEPTH, defaults.binaryMaxDepth),
            unilevelMaxDepth=_parsePositiveInt(raw, KEY_UNILEVEL_MAX_DEPTH, defaults.unilevelMaxDepth),
            performanceBonusEnabled=performanceBonus,
            pvCalculation=pvCalculation,
            monthlyCutoffDay=_parsePositiveInt(raw, KEY_CUTOFF_DAY, defaults.monthlyCutoffDay, maximum=31),
        )


def _parsePositiveInt(raw: Mapping[str, str], key: str, default: int, maximum: int = None) -> int:
    value = raw.get(key)
    if value is None:
        return default
    try:
        parsed = int(str(value).strip())
    except ValueError:
        logger.warning(f"Invalid integer for {key}: '{value}', using {default}")
        return default
    if parsed < 1 or (maximum is not None and parsed > maximum):
        logger.warning(f"Out of range value for {key}: {parsed}, using {default}")
        return default
    return parsed
