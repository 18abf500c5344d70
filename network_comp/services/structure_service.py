# network_comp/services/structure_service.py
"""
Structure dispatcher.

Reads the active topology once per call and routes to the binary or unilevel
implementation. Holds no business rules of its own.
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from models.member import Member
from network_comp.breakdown import CommissionBreakdown
from network_comp.config.constants import Topology, Slot
from network_comp.config.rates import RateTable
from network_comp.config.topology import TopologyConfig, KEY_STRUCTURE
from network_comp.errors import InvalidPlacement
from network_comp.repositories.config_repository import ConfigRepository
from network_comp.repositories.member_repository import MemberRepository
from network_comp.services.commission_service import CommissionService
from network_comp.services.placement_service import PlacementService
from network_comp.services.volume_service import VolumeService
from network_comp.utils.period import Window
from network_comp.utils.tree_builder import TreeBuilder, TreeNode, flattenByLevel, groupByLevel

logger = logging.getLogger(__name__)


class NetworkStructure(ABC):
    """Capabilities every topology provides."""

    topology: str = None

    def __init__(self, session: Session, config: TopologyConfig):
        self.session = session
        self.config = config
        self.members = MemberRepository(session)
        self.trees = TreeBuilder(self.members)
        self.volumes = VolumeService(session)
        self.commissions = CommissionService(session)

    @property
    def maxDepth(self) -> int:
        return self.config.maxDepthFor(self.topology)

    @abstractmethod
    def buildTree(self, memberId: int, maxDepth: Optional[int] = None) -> TreeNode:
        pass

    async def getDownlineByLevel(self, memberId: int) -> Dict[int, List[Member]]:
        """Downline grouped by level (1..maxDepth), root excluded."""
        grouped = groupByLevel(flattenByLevel(self.buildTree(memberId)))
        grouped.pop(0, None)
        return grouped

    @abstractmethod
    async def calculateCommissions(
            self,
            memberId: int,
            window: Window,
            rates: Optional[RateTable] = None,
            tree: Optional[TreeNode] = None
    ) -> CommissionBreakdown:
        pass

    @abstractmethod
    async def groupVolumes(self, memberId: int, window: Window, tree: Optional[TreeNode] = None) -> Dict[str, Decimal]:
        """Group PV figures stored in the monthly snapshot."""
        pass

    @abstractmethod
    async def placeMember(self, memberId: int, sponsorId: int, preferredSlot: Optional[str] = None) -> Member:
        pass


class BinaryStructure(NetworkStructure):
    topology = Topology.BINARY.value

    def buildTree(self, memberId: int, maxDepth: Optional[int] = None) -> TreeNode:
        return self.trees.buildBinaryTree(memberId, self.maxDepth if maxDepth is None else maxDepth)

    async def calculateCommissions(self, memberId, window, rates=None, tree=None):
        return await self.commissions.calculateBinaryCommissions(
            memberId, window, rates=rates, config=self.config, tree=tree
        )

    async def groupVolumes(self, memberId, window, tree=None):
        tree = tree or self.buildTree(memberId)
        legs = self.volumes.legPVFromTree(tree, window)
        return {
            "leftLegPV": legs.leftLegPV,
            "rightLegPV": legs.rightLegPV,
            "totalGroupPV": legs.totalPV,
        }

    async def placeMember(self, memberId, sponsorId, preferredSlot=None):
        return await PlacementService(self.session).placeWithSpillover(
            memberId, sponsorId, preferredSlot or Slot.LEFT.value
        )


class UnilevelStructure(NetworkStructure):
    topology = Topology.UNILEVEL.value

    def buildTree(self, memberId: int, maxDepth: Optional[int] = None) -> TreeNode:
        return self.trees.buildUnilevelTree(memberId, self.maxDepth if maxDepth is None else maxDepth)

    async def calculateCommissions(self, memberId, window, rates=None, tree=None):
        return await self.commissions.calculateUnilevelCommissions(
            memberId, window, rates=rates, config=self.config, tree=tree
        )

    async def groupVolumes(self, memberId, window, tree=None):
        tree = tree or self.buildTree(memberId)
        return {
            "leftLegPV": Decimal("0"),
            "rightLegPV": Decimal("0"),
            "totalGroupPV": self.volumes.subtreePVFromTree(tree, window),
        }

    async def placeMember(self, memberId, sponsorId, preferredSlot=None):
        """Unilevel placement only records the sponsor as upline."""
        if preferredSlot:
            logger.debug(f"Slot preference '{preferredSlot}' ignored in unilevel structure")

        try:
            member = self.members.getForUpdate(memberId)
            sponsor = self.members.get(sponsorId)
            if memberId == sponsorId:
                raise InvalidPlacement(f"Member {memberId} cannot be placed under itself")
            if member.uplineID is not None:
                raise InvalidPlacement(f"Member {memberId} is already placed under {member.uplineID}")
            PlacementService(self.session).checkNotInSubtree(memberId, sponsor)

            self.members.recordUpline(memberId, sponsorId)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"✓ Member {memberId} recorded under upline {sponsorId}")
        return member


STRUCTURES = {
    Topology.BINARY.value: BinaryStructure,
    Topology.UNILEVEL.value: UnilevelStructure,
}


class StructureService:
    """Entry point that routes every call to the active structure."""

    def __init__(self, session: Session):
        self.session = session
        self.configRepository = ConfigRepository(session)

    def resolve(self, config: Optional[TopologyConfig] = None) -> NetworkStructure:
        """Structure for the given (or freshly read) configuration."""
        config = config or self.configRepository.get()
        return STRUCTURES[config.activeTopology](self.session, config)

    async def getActiveTopology(self) -> str:
        return self.configRepository.get().activeTopology

    async def buildTree(self, memberId: int, maxDepth: Optional[int] = None) -> TreeNode:
        return self.resolve().buildTree(memberId, maxDepth)

    async def getDownlineByLevel(self, memberId: int) -> Dict[int, List[Member]]:
        return await self.resolve().getDownlineByLevel(memberId)

    async def calculateCommissions(
            self,
            memberId: int,
            window: Window,
            rates: Optional[RateTable] = None
    ) -> CommissionBreakdown:
        return await self.resolve().calculateCommissions(memberId, window, rates=rates)

    async def groupVolumes(self, memberId: int, window: Window) -> Dict[str, Decimal]:
        return await self.resolve().groupVolumes(memberId, window)

    async def placeMember(self, memberId: int, sponsorId: int, preferredSlot: Optional[str] = None) -> Member:
        return await self.resolve().placeMember(memberId, sponsorId, preferredSlot)

    async def simulateEarnings(self, memberId: int, year: int, month: int):
        from network_comp.services.settlement_service import SettlementService
        return await SettlementService(self.session).simulateEarnings(memberId, year, month)

    async def changeStructure(self, topology: str) -> TopologyConfig:
        """
        Switch the active topology.

        Only the configuration changes; existing placements are left as they are.
        """
        topology = str(topology).strip().lower()
        if topology not in STRUCTURES:
            raise ValueError(f"Invalid topology '{topology}', expected one of {sorted(STRUCTURES)}")

        self.configRepository.set(KEY_STRUCTURE, topology)
        self.session.commit()
        logger.info(f"✓ Network structure changed to {topology}")
        return self.configRepository.get()
