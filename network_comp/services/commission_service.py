# network_comp/services/commission_service.py
"""
Commission calculation: direct-join bonus, level overrides and the
structure-specific bonus (binary group volume / unilevel performance).
"""
from decimal import Decimal
from typing import Optional
import logging

from sqlalchemy.orm import Session

from network_comp.breakdown import ComponentBreakdown, LevelOverrideBreakdown, CommissionBreakdown
from network_comp.config.constants import Topology, GROUP_VOLUME_TIER_PV
from network_comp.config.rates import RateTable, RateSnapshot
from network_comp.config.topology import TopologyConfig
from network_comp.repositories.config_repository import ConfigRepository
from network_comp.repositories.member_repository import MemberRepository
from network_comp.repositories.performance_schedule import PerformanceBonusSchedule
from network_comp.repositories.rate_repository import RateRepository
from network_comp.repositories.sales_repository import SalesRepository
from network_comp.services.volume_service import VolumeService
from network_comp.utils.period import Window
from network_comp.utils.tree_builder import TreeBuilder, TreeNode, flattenByLevel, groupByLevel

logger = logging.getLogger(__name__)


class CommissionService:
    """Calculates itemized commissions of one member for one window."""

    def __init__(self, session: Session):
        self.session = session
        self.members = MemberRepository(session)
        self.sales = SalesRepository(session)
        self.trees = TreeBuilder(self.members)
        self.volumes = VolumeService(session)

    # ============================================================
    # PUBLIC API
    # ============================================================

    async def calculateBinaryCommissions(
            self,
            memberId: int,
            window: Window,
            rates: Optional[RateTable] = None,
            config: Optional[TopologyConfig] = None,
            tree: Optional[TreeNode] = None
    ) -> CommissionBreakdown:
        """
        Binary commissions: direct joins, level overrides, group volume bonus.

        Args:
            memberId: Member ID
            window: Calculation window
            rates: Rate snapshot (read once here when omitted)
            config: Configuration snapshot (read once here when omitted)
            tree: Prebuilt binary tree of the member, bounded by binaryMaxDepth

        Raises:
            NotFound: If member does not exist
        """
        rates, config = self._snapshots(rates, config)
        maxDepth = config.binaryMaxDepth
        if tree is None:
            tree = self.trees.buildBinaryTree(memberId, maxDepth)

        breakdown = CommissionBreakdown(
            memberID=memberId,
            topology=Topology.BINARY.value,
            window=window,
            directJoin=await self._directJoinBonus(memberId, window, rates.directJoin),
            levelOverrides=await self._levelOverrides(tree, window, rates, maxDepth),
            structureBonus=await self._groupVolumeBonus(tree, window, rates.groupVolume),
        )

        logger.info(
            f"Binary commissions for member {memberId} in {window}: "
            f"direct={breakdown.directJoinBonus}, levels={breakdown.levelOverridesTotal}, "
            f"group={breakdown.structureBonusAmount}, total={breakdown.total}"
        )
        return breakdown

    async def calculateUnilevelCommissions(
            self,
            memberId: int,
            window: Window,
            rates: Optional[RateTable] = None,
            config: Optional[TopologyConfig] = None,
            tree: Optional[TreeNode] = None
    ) -> CommissionBreakdown:
        """
        Unilevel commissions: direct joins, level overrides, performance bonus.

        Raises:
            NotFound: If member does not exist
        """
        rates, config = self._snapshots(rates, config)
        maxDepth = config.unilevelMaxDepth
        if tree is None:
            tree = self.trees.buildUnilevelTree(memberId, maxDepth)

        breakdown = CommissionBreakdown(
            memberID=memberId,
            topology=Topology.UNILEVEL.value,
            window=window,
            directJoin=await self._directJoinBonus(memberId, window, rates.directJoin),
            levelOverrides=await self._levelOverrides(tree, window, rates, maxDepth),
            structureBonus=await self._performanceBonus(memberId, window, config),
        )

        logger.info(
            f"Unilevel commissions for member {memberId} in {window}: "
            f"direct={breakdown.directJoinBonus}, levels={breakdown.levelOverridesTotal}, "
            f"performance={breakdown.structureBonusAmount}, total={breakdown.total}"
        )
        return breakdown

    # ============================================================
    # COMPONENTS
    # ============================================================

    async def _directJoinBonus(
            self,
            memberId: int,
            window: Window,
            rate: Optional[RateSnapshot]
    ) -> ComponentBreakdown:
        component = ComponentBreakdown(name="directJoinBonus")
        if rate is None:
            logger.debug(f"No active direct_join rate, direct join bonus is 0 for member {memberId}")
            component.note = "No active direct_join rate"
            return component

        # A percentage rate has no base amount for a join
        perJoin = rate.fixedAmount if rate.isFixed else Decimal("0")
        if rate.isPercentage:
            component.note = "Percentage direct_join rate pays 0 per join"

        for joined in self.members.listDirectJoins(memberId, window):
            component.addDetail(
                perJoin,
                memberId=joined.memberID,
                name=joined.name,
                joinedAt=joined.createdAt.isoformat(),
                rate=rate.describe(),
            )

        return component

    async def _levelOverrides(
            self,
            tree: TreeNode,
            window: Window,
            rates: RateTable,
            maxDepth: int
    ) -> LevelOverrideBreakdown:
        component = LevelOverrideBreakdown(name="levelOverrides")

        ratedLevels = {}
        for level, rate in rates.levelOverrides.items():
            if level > maxDepth:
                logger.debug(f"level_override rate for level {level} is beyond max depth {maxDepth}")
                continue
            ratedLevels[level] = rate

        if not ratedLevels:
            component.note = "No active level_override rates"
            return component

        levelOf = {}
        for level, members in groupByLevel(flattenByLevel(tree)).items():
            if level in ratedLevels:
                for member in members:
                    levelOf[member.memberID] = level

        # One query for every rated level
        for sale in self.sales.query(levelOf.keys(), window):
            level = levelOf[sale.memberID]
            rate = ratedLevels[level]
            pv = Decimal(str(sale.totalPV or 0))

            if rate.isPercentage:
                amount = pv * rate.percentage / Decimal("100")
            else:
                amount = rate.fixedAmount

            component.addSale(
                level,
                amount,
                memberId=sale.memberID,
                saleId=sale.saleID,
                productId=sale.productID,
                productName=sale.productName,
                pv=pv,
                rate=rate.describe(" per sale"),
            )

        return component

    async def _groupVolumeBonus(
            self,
            tree: TreeNode,
            window: Window,
            rate: Optional[RateSnapshot]
    ) -> ComponentBreakdown:
        component = ComponentBreakdown(name="groupVolumeBonus")
        if rate is None:
            logger.debug(f"No active group_volume rate for member {tree.memberId}")
            component.note = "No active group_volume rate"
            return component

        legs = self.volumes.legPVFromTree(tree, window)
        weaker = legs.weakerLegPV

        if rate.isPercentage:
            amount = weaker * rate.percentage / Decimal("100")
        else:
            amount = (weaker // GROUP_VOLUME_TIER_PV) * rate.fixedAmount

        component.addDetail(
            amount,
            leftLegPV=legs.leftLegPV,
            rightLegPV=legs.rightLegPV,
            weakerLegPV=weaker,
            rate=rate.describe(f" per {GROUP_VOLUME_TIER_PV} PV"),
        )
        return component

    async def _performanceBonus(
            self,
            memberId: int,
            window: Window,
            config: TopologyConfig
    ) -> ComponentBreakdown:
        component = ComponentBreakdown(name="performanceBonus")
        if not config.performanceBonusEnabled:
            component.note = "Performance bonus disabled"
            return component

        totalSales = await self.volumes.personalSalesAmount(memberId, window)
        bonus, tier = PerformanceBonusSchedule(self.session).lookup(totalSales)

        component.addDetail(
            bonus,
            totalSales=totalSales,
            tier=tier.name if tier else None,
        )
        return component

    def _snapshots(self, rates: Optional[RateTable], config: Optional[TopologyConfig]):
        if rates is None:
            rates = RateRepository(self.session).snapshot()
        if config is None:
            config = ConfigRepository(self.session).get()
        return rates, config
