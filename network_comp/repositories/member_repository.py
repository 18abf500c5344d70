"""
Member store.

Batched lookups (getMany, listChildrenOfMany) let traversals fetch one tree
level per query instead of one member per query.
"""
from typing import Dict, Iterable, List, Optional
import logging

from sqlalchemy.orm import Session

from models.member import Member
from network_comp.config.constants import Slot
from network_comp.errors import NotFound, InvalidPlacement
from network_comp.utils.period import Window

logger = logging.getLogger(__name__)

# Stay well below SQLite's bound-parameter limit
IN_CLAUSE_CHUNK = 500


def chunked(ids: List[int], size: int = IN_CLAUSE_CHUNK):
    for i in range(0, len(ids), size):
        yield ids[i:i + size]


def slotColumn(slot: str):
    """Member column holding the child for a binary slot."""
    if slot == Slot.LEFT.value:
        return Member.leftChildID
    if slot == Slot.RIGHT.value:
        return Member.rightChildID
    raise ValueError(f"Invalid slot '{slot}', expected 'left' or 'right'")


class MemberRepository:
    """Read/write access to members and their placement pointers."""

    def __init__(self, session: Session):
        self.session = session

    def find(self, memberId: int) -> Optional[Member]:
        return self.session.query(Member).filter_by(memberID=memberId).first()

    def get(self, memberId: int) -> Member:
        """
        Get member by ID.

        Raises:
            NotFound: If member does not exist
        """
        member = self.find(memberId)
        if member is None:
            raise NotFound("Member", memberId)
        return member

    def getForUpdate(self, memberId: int) -> Member:
        """Get member with a row lock (ignored by backends without FOR UPDATE)."""
        member = (
            self.session.query(Member)
            .filter(Member.memberID == memberId)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if member is None:
            raise NotFound("Member", memberId)
        return member

    def getMany(self, memberIds: Iterable[int]) -> Dict[int, Member]:
        """Fetch members by ID in batched queries. Missing IDs are simply absent."""
        ids = list(dict.fromkeys(memberIds))
        result = {}
        for chunk in chunked(ids):
            for member in self.session.query(Member).filter(Member.memberID.in_(chunk)).all():
                result[member.memberID] = member
        return result

    def listChildren(self, uplineId: int) -> List[Member]:
        """Direct downline (all members whose upline is this member)."""
        return (
            self.session.query(Member)
            .filter(Member.uplineID == uplineId)
            .order_by(Member.memberID)
            .all()
        )

    def listChildrenOfMany(self, uplineIds: Iterable[int]) -> Dict[int, List[Member]]:
        """Direct downlines of several members, grouped by upline."""
        ids = list(dict.fromkeys(uplineIds))
        grouped = {uplineId: [] for uplineId in ids}
        for chunk in chunked(ids):
            children = (
                self.session.query(Member)
                .filter(Member.uplineID.in_(chunk))
                .order_by(Member.memberID)
                .all()
            )
            for child in children:
                grouped[child.uplineID].append(child)
        return grouped

    def listDirectJoins(self, uplineId: int, window: Window) -> List[Member]:
        """Direct downline that joined inside the window."""
        return (
            self.session.query(Member)
            .filter(
                Member.uplineID == uplineId,
                Member.createdAt >= window.start,
                Member.createdAt < window.end,
            )
            .order_by(Member.createdAt, Member.memberID)
            .all()
        )

    def listAllIds(self, afterId: Optional[int] = None) -> List[int]:
        """All member IDs in ascending order, optionally after a resume marker."""
        query = self.session.query(Member.memberID)
        if afterId is not None:
            query = query.filter(Member.memberID > afterId)
        return [row[0] for row in query.order_by(Member.memberID).all()]

    def claimSlot(self, uplineId: int, slot: str, childId: int) -> bool:
        """
        Conditionally point the upline's slot at the child.

        Only succeeds while the slot is still NULL, so two writers racing for
        the same slot cannot both win.

        Returns:
            True if the slot was claimed
        """
        column = slotColumn(slot)
        updated = (
            self.session.query(Member)
            .filter(Member.memberID == uplineId, column.is_(None))
            .update({column: childId}, synchronize_session="fetch")
        )
        return updated == 1

    def updatePlacement(self, memberId: int, uplineId: int, slot: Optional[str]) -> Member:
        """
        Point the member at its upline while it is still unplaced.

        Raises:
            InvalidPlacement: If another writer placed the member first
        """
        updated = (
            self.session.query(Member)
            .filter(Member.memberID == memberId, Member.uplineID.is_(None))
            .update({Member.uplineID: uplineId, Member.slot: slot}, synchronize_session="fetch")
        )
        member = self.get(memberId)
        if updated != 1:
            self.session.refresh(member)
            raise InvalidPlacement(f"Member {memberId} is already placed under {member.uplineID}")
        return member

    def recordUpline(self, memberId: int, uplineId: int) -> Member:
        """Unilevel placement: only the upline pointer is stored."""
        return self.updatePlacement(memberId, uplineId, None)
