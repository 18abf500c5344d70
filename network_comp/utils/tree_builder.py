# network_comp/utils/tree_builder.py
"""
Bounded-depth network traversal.

Trees are built level by level from a worklist: every level costs one batched
query, and nothing deeper than maxDepth is fetched.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set
import logging

from models.member import Member
from network_comp.config.constants import Slot
from network_comp.errors import NotFound
from network_comp.repositories.member_repository import MemberRepository

logger = logging.getLogger(__name__)


@dataclass
class TreeNode:
    """Member at a position of the tree (root is level 0)."""
    member: Member
    level: int
    slot: Optional[str] = None
    children: List["TreeNode"] = field(default_factory=list)

    @property
    def memberId(self) -> int:
        return self.member.memberID

    def child(self, slot: str) -> Optional["TreeNode"]:
        """Binary child in the given slot."""
        for node in self.children:
            if node.slot == slot:
                return node
        return None


@dataclass(frozen=True)
class FlatNode:
    member: Member
    level: int
    slot: Optional[str] = None


class TreeBuilder:
    """Builds binary and unilevel trees from the member store."""

    def __init__(self, members: MemberRepository):
        self.members = members

    def buildBinaryTree(self, rootId: int, maxDepth: int) -> TreeNode:
        """
        Binary tree rooted at rootId, children ordered left then right.

        Raises:
            NotFound: If root does not exist
        """
        root = TreeNode(member=self.members.get(rootId), level=0)
        visited: Set[int] = {rootId}
        frontier = [root]

        for level in range(1, maxDepth + 1):
            pointers = []
            for node in frontier:
                for slot in (Slot.LEFT.value, Slot.RIGHT.value):
                    childId = node.member.childID(slot)
                    if childId is not None:
                        pointers.append((node, slot, childId))

            if not pointers:
                break

            fetched = self.members.getMany(childId for _, _, childId in pointers)
            nextFrontier = []
            for parent, slot, childId in pointers:
                child = fetched.get(childId)
                if child is None:
                    logger.warning(
                        f"Member {parent.memberId} points to missing {slot} child {childId}, skipping"
                    )
                    continue
                if childId in visited:
                    logger.error(f"Cycle detected at member {childId} under {parent.memberId}, skipping")
                    continue
                visited.add(childId)
                node = TreeNode(member=child, level=level, slot=slot)
                parent.children.append(node)
                nextFrontier.append(node)

            frontier = nextFrontier

        return root

    def buildUnilevelTree(self, rootId: int, maxDepth: int) -> TreeNode:
        """
        Unilevel tree rooted at rootId, children ordered by member ID.

        Raises:
            NotFound: If root does not exist
        """
        root = TreeNode(member=self.members.get(rootId), level=0)
        visited: Set[int] = {rootId}
        frontier = [root]

        for level in range(1, maxDepth + 1):
            if not frontier:
                break

            byUpline = self.members.listChildrenOfMany(node.memberId for node in frontier)
            nextFrontier = []
            for parent in frontier:
                for child in byUpline.get(parent.memberId, []):
                    if child.memberID in visited:
                        logger.error(f"Cycle detected at member {child.memberID}, skipping")
                        continue
                    visited.add(child.memberID)
                    node = TreeNode(member=child, level=level)
                    parent.children.append(node)
                    nextFrontier.append(node)

            frontier = nextFrontier

        return root


def flattenByLevel(tree: Optional[TreeNode]) -> List[FlatNode]:
    """Pre-order list of (member, level, slot)."""
    if tree is None:
        return []

    result = []
    stack = [tree]
    while stack:
        node = stack.pop()
        result.append(FlatNode(member=node.member, level=node.level, slot=node.slot))
        stack.extend(reversed(node.children))
    return result


def memberIds(tree: Optional[TreeNode]) -> List[int]:
    return [flat.member.memberID for flat in flattenByLevel(tree)]


def groupByLevel(flat: List[FlatNode]) -> Dict[int, List[Member]]:
    grouped: Dict[int, List[Member]] = {}
    for node in flat:
        grouped.setdefault(node.level, []).append(node.member)
    return grouped
