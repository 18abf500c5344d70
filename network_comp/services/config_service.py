# network_comp/services/config_service.py
"""
Configuration service - topology settings, performance-bonus tiers
and monthly cutoff records.
"""
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional
import logging

from sqlalchemy.orm import Session

from models.base import _get_current_time
from models.mlm.monthly_cutoff import MonthlyCutoff
from models.mlm.performance_bonus_tier import PerformanceBonusTier
from network_comp.config.constants import RewardType, PV_PRICE_RATIO
from network_comp.config.topology import (
    TopologyConfig,
    KEY_STRUCTURE,
    KEY_BINARY_MAX_DEPTH,
    KEY_UNILEVEL_MAX_DEPTH,
    KEY_PERFORMANCE_BONUS,
    KEY_PV_CALCULATION,
    KEY_CUTOFF_DAY,
)
from network_comp.errors import NotFound
from network_comp.repositories.config_repository import ConfigRepository
from network_comp.repositories.cutoff_repository import CutoffRepository
from network_comp.repositories.performance_schedule import PerformanceBonusSchedule

logger = logging.getLogger(__name__)

# Field name -> system_config key
CONFIG_FIELDS = {
    "activeTopology": KEY_STRUCTURE,
    "binaryMaxDepth": KEY_BINARY_MAX_DEPTH,
    "unilevelMaxDepth": KEY_UNILEVEL_MAX_DEPTH,
    "performanceBonusEnabled": KEY_PERFORMANCE_BONUS,
    "pvCalculation": KEY_PV_CALCULATION,
    "monthlyCutoffDay": KEY_CUTOFF_DAY,
}


class ConfigService:
    """Administrative configuration operations."""

    def __init__(self, session: Session):
        self.session = session
        self.configRepository = ConfigRepository(session)
        self.cutoffs = CutoffRepository(session)
        self.schedule = PerformanceBonusSchedule(session)

    # ============================================================
    # TOPOLOGY CONFIGURATION
    # ============================================================

    async def getConfiguration(self) -> TopologyConfig:
        return self.configRepository.get()

    async def updateConfiguration(self, **changes: Any) -> TopologyConfig:
        """
        Update configuration fields (TopologyConfig field names).

        Values are validated by parsing the merged result; nothing is stored
        when any value is rejected.

        Raises:
            ValueError: Unknown field or invalid value
        """
        unknown = set(changes) - set(CONFIG_FIELDS)
        if unknown:
            raise ValueError(f"Unknown configuration fields: {sorted(unknown)}")

        current = self.configRepository.get()
        raw = current.toMapping()
        for field, value in changes.items():
            if isinstance(value, bool):
                value = "true" if value else "false"
            raw[CONFIG_FIELDS[field]] = str(value).strip().lower()

        parsed = TopologyConfig.fromMapping(raw, defaults=current)
        parsedRaw = parsed.toMapping()
        for field in changes:
            key = CONFIG_FIELDS[field]
            if parsedRaw[key] != raw[key]:
                raise ValueError(f"Invalid value for {field}: '{changes[field]}'")

        for field in changes:
            key = CONFIG_FIELDS[field]
            self.configRepository.set(key, parsedRaw[key])

        self.session.commit()
        logger.info(f"✓ Configuration updated: {', '.join(sorted(changes))}")
        return parsed

    async def calculatePv(self, price: Decimal, productPv: Decimal) -> Decimal:
        """PV of a product: its own PV ('fixed') or a share of the price ('percentage')."""
        config = self.configRepository.get()
        if config.pvCalculation == "fixed":
            return Decimal(str(productPv))
        return Decimal(str(price)) * PV_PRICE_RATIO

    # ============================================================
    # PERFORMANCE BONUS TIERS
    # ============================================================

    async def getPerformanceBonusTiers(self, activeOnly: bool = True) -> List[PerformanceBonusTier]:
        return self.schedule.tiers(activeOnly=activeOnly)

    async def createPerformanceBonusTier(
            self,
            name: str,
            minSales: Decimal,
            maxSales: Optional[Decimal] = None,
            bonusType: str = RewardType.PERCENTAGE.value,
            percentage: Decimal = Decimal("0"),
            fixedAmount: Decimal = Decimal("0"),
            isActive: bool = True
    ) -> PerformanceBonusTier:
        if bonusType not in {t.value for t in RewardType}:
            raise ValueError(f"Invalid bonus type '{bonusType}'")
        if maxSales is not None and Decimal(str(maxSales)) < Decimal(str(minSales)):
            raise ValueError(f"maxSales {maxSales} is below minSales {minSales}")

        tier = PerformanceBonusTier(
            name=name,
            minSales=Decimal(str(minSales)),
            maxSales=None if maxSales is None else Decimal(str(maxSales)),
            bonusType=bonusType,
            percentage=Decimal(str(percentage)),
            fixedAmount=Decimal(str(fixedAmount)),
            isActive=isActive
        )
        self.session.add(tier)
        self.session.commit()
        logger.info(f"✓ Performance bonus tier '{name}' created")
        return tier

    async def updatePerformanceBonusTier(self, tierId: int, **fields: Any) -> PerformanceBonusTier:
        tier = self.session.query(PerformanceBonusTier).filter_by(tierID=tierId).first()
        if tier is None:
            raise NotFound("PerformanceBonusTier", tierId)
        for key, value in fields.items():
            if not hasattr(PerformanceBonusTier, key):
                raise AttributeError(f"PerformanceBonusTier has no field '{key}'")
            setattr(tier, key, value)
        self.session.commit()
        return tier

    async def calculatePerformanceBonus(self, salesAmount: Decimal) -> Decimal:
        """Bonus for a sales amount; 0 while the performance bonus is disabled."""
        if not self.configRepository.get().performanceBonusEnabled:
            return Decimal("0")
        bonus, _ = self.schedule.lookup(Decimal(str(salesAmount)))
        return bonus

    # ============================================================
    # MONTHLY CUTOFFS
    # ============================================================

    async def getMonthlyCutoffs(self, year: Optional[int] = None, month: Optional[int] = None) -> List[MonthlyCutoff]:
        return self.cutoffs.list(year, month)

    async def createMonthlyCutoff(
            self,
            year: int,
            month: int,
            cutoffDay: Optional[int] = None,
            notes: Optional[str] = None
    ) -> MonthlyCutoff:
        """
        Raises:
            AlreadyExists: If the period already has a cutoff
        """
        if not 1 <= month <= 12:
            raise ValueError(f"Month must be 1-12, got {month}")
        if cutoffDay is None:
            cutoffDay = self.configRepository.get().monthlyCutoffDay

        cutoff = self.cutoffs.create(year, month, cutoffDay=cutoffDay, notes=notes)
        self.session.commit()
        return cutoff

    async def updateMonthlyCutoff(self, cutoffId: int, **fields: Any) -> MonthlyCutoff:
        cutoff = self.cutoffs.update(cutoffId, **fields)
        self.session.commit()
        return cutoff

    async def getCurrentMonthlyCutoff(self, today: Optional[date] = None) -> Optional[MonthlyCutoff]:
        """Cutoff for the current month, or the next upcoming one."""
        return self.cutoffs.current(today or _get_current_time().date())
