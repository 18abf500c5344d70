"""
Performance-bonus schedule (unilevel): personal sales amount -> bonus amount.
"""
from decimal import Decimal
from typing import List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from models.mlm.performance_bonus_tier import PerformanceBonusTier
from network_comp.config.constants import RewardType

logger = logging.getLogger(__name__)


class PerformanceBonusSchedule:
    """Tiered lookup over active PerformanceBonusTier rows."""

    def __init__(self, session: Session):
        self.session = session

    def tiers(self, activeOnly: bool = True) -> List[PerformanceBonusTier]:
        query = self.session.query(PerformanceBonusTier)
        if activeOnly:
            query = query.filter(PerformanceBonusTier.isActive == True)  # noqa: E712
        return query.order_by(PerformanceBonusTier.minSales, PerformanceBonusTier.tierID).all()

    def findTier(self, totalSales: Decimal) -> Optional[PerformanceBonusTier]:
        """First tier (lowest minSales) whose range contains the amount."""
        for tier in self.tiers():
            minSales = Decimal(str(tier.minSales))
            maxSales = None if tier.maxSales is None else Decimal(str(tier.maxSales))
            if totalSales >= minSales and (maxSales is None or totalSales <= maxSales):
                return tier
        return None

    def lookup(self, totalSales: Decimal) -> Tuple[Decimal, Optional[PerformanceBonusTier]]:
        """
        Resolve bonus amount for a sales total.

        Returns:
            (bonus amount, matched tier or None)
        """
        tier = self.findTier(totalSales)
        if tier is None:
            return Decimal("0"), None

        if tier.bonusType == RewardType.PERCENTAGE.value:
            bonus = totalSales * Decimal(str(tier.percentage or 0)) / Decimal("100")
        elif tier.bonusType == RewardType.FIXED.value:
            bonus = Decimal(str(tier.fixedAmount or 0))
        else:
            logger.warning(f"Tier '{tier.name}' has unknown bonus type '{tier.bonusType}', paying 0")
            bonus = Decimal("0")

        return bonus, tier
