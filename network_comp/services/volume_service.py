# network_comp/services/volume_service.py
"""
PV aggregation over completed sales.

Every aggregation first resolves the member set through the TreeBuilder and
then sums it with a single batched sales query.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable
import logging

from sqlalchemy.orm import Session

from models.sales_record import SalesRecord
from network_comp.config.constants import Topology, Slot
from network_comp.repositories.member_repository import MemberRepository
from network_comp.repositories.sales_repository import SalesRepository
from network_comp.utils.period import Window
from network_comp.utils.tree_builder import TreeBuilder, TreeNode, memberIds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LegVolumes:
    """Binary leg PV of one member."""
    leftLegPV: Decimal
    rightLegPV: Decimal

    @property
    def totalPV(self) -> Decimal:
        return self.leftLegPV + self.rightLegPV

    @property
    def weakerLegPV(self) -> Decimal:
        return min(self.leftLegPV, self.rightLegPV)


def sumPV(sales: Iterable[SalesRecord]) -> Decimal:
    return sum((Decimal(str(sale.totalPV or 0)) for sale in sales), Decimal("0"))


def sumAmount(sales: Iterable[SalesRecord]) -> Decimal:
    return sum((Decimal(str(sale.totalAmount or 0)) for sale in sales), Decimal("0"))


class VolumeService:
    """Personal, subtree and per-leg PV for a time window."""

    def __init__(self, session: Session):
        self.session = session
        self.members = MemberRepository(session)
        self.sales = SalesRepository(session)
        self.trees = TreeBuilder(self.members)

    # ============================================================
    # PERSONAL
    # ============================================================

    async def personalPV(self, memberId: int, window: Window) -> Decimal:
        """Own completed sales PV inside the window."""
        return sumPV(self.sales.query([memberId], window))

    async def personalSalesAmount(self, memberId: int, window: Window) -> Decimal:
        """Own completed sales money amount inside the window."""
        return sumAmount(self.sales.query([memberId], window))

    # ============================================================
    # GROUP
    # ============================================================

    async def subtreePV(self, rootId: int, window: Window, topology: str, maxDepth: int) -> Decimal:
        """
        PV of the whole rooted subtree (root included) up to maxDepth.

        Raises:
            NotFound: If root does not exist
        """
        if topology == Topology.BINARY.value:
            tree = self.trees.buildBinaryTree(rootId, maxDepth)
        else:
            tree = self.trees.buildUnilevelTree(rootId, maxDepth)
        return self.subtreePVFromTree(tree, window)

    def subtreePVFromTree(self, tree: TreeNode, window: Window) -> Decimal:
        return sumPV(self.sales.query(memberIds(tree), window))

    async def legPV(self, rootId: int, window: Window, maxDepth: int) -> LegVolumes:
        """
        Binary leg volumes: subtrees under the left and right child,
        bounded by the root's maxDepth.

        Raises:
            NotFound: If root does not exist
        """
        tree = self.trees.buildBinaryTree(rootId, maxDepth)
        return self.legPVFromTree(tree, window)

    def legPVFromTree(self, tree: TreeNode, window: Window) -> LegVolumes:
        """Leg volumes from an already built binary tree (one sales query)."""
        leftIds = memberIds(tree.child(Slot.LEFT.value))
        rightIds = memberIds(tree.child(Slot.RIGHT.value))

        sales = self.sales.query(leftIds + rightIds, window)
        left = set(leftIds)
        legs = LegVolumes(
            leftLegPV=sumPV(s for s in sales if s.memberID in left),
            rightLegPV=sumPV(s for s in sales if s.memberID not in left),
        )

        logger.debug(
            f"Leg PV for member {tree.memberId} in {window}: "
            f"left={legs.leftLegPV}, right={legs.rightLegPV}"
        )
        return legs
