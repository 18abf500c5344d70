# network_comp/services/placement_service.py
"""
Binary placement: spillover search and atomic slot assignment.
"""
from collections import deque
from typing import List, Optional, Set, Tuple
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.member import Member
from network_comp.config.constants import Slot
from network_comp.errors import SlotOccupied, PlacementExhausted, InvalidPlacement
from network_comp.repositories.member_repository import MemberRepository

logger = logging.getLogger(__name__)

# Upper bound for upline walks during cycle checks
MAX_CHAIN_WALK = 10000


def _parseSlot(slot) -> Slot:
    try:
        return slot if isinstance(slot, Slot) else Slot(str(slot).lower())
    except ValueError:
        raise InvalidPlacement(f"Invalid slot '{slot}', expected 'left' or 'right'")


class PlacementService:
    """
    Places members into the binary tree.

    place() never retries: a lost race surfaces as SlotOccupied and the
    caller decides whether to re-resolve (placeWithSpillover does).
    """

    def __init__(self, session: Session):
        self.session = session
        self.members = MemberRepository(session)

    # ============================================================
    # RESOLUTION
    # ============================================================

    async def availableSlots(self, uplineId: int) -> List[str]:
        """
        Open slots of the upline, left before right.

        Raises:
            NotFound: If upline does not exist
        """
        upline = self.members.get(uplineId)
        return [
            slot.value for slot in (Slot.LEFT, Slot.RIGHT)
            if upline.childID(slot.value) is None
        ]

    async def findNextAvailablePlacement(
            self,
            startId: int,
            preferredSlot: str = Slot.LEFT.value
    ) -> Tuple[int, str]:
        """
        Find where a new member under startId should go.

        Checks the start's preferred slot, then its other slot. When both are
        taken, searches breadth-first starting with the preferred-side child;
        every dequeued node offers its left slot, then its right slot.

        Returns:
            (targetId, slot)

        Raises:
            NotFound: If start member does not exist
            PlacementExhausted: If no open slot is reachable
        """
        preferred = _parseSlot(preferredSlot)
        start = self.members.get(startId)

        for slot in (preferred, preferred.other):
            if start.childID(slot.value) is None:
                return start.memberID, slot.value

        queue = deque(
            childId for childId in (
                start.childID(preferred.value),
                start.childID(preferred.other.value),
            ) if childId is not None
        )
        visited: Set[int] = {start.memberID}

        while queue:
            # One frontier per query
            frontier = []
            while queue:
                childId = queue.popleft()
                if childId not in visited:
                    visited.add(childId)
                    frontier.append(childId)

            fetched = self.members.getMany(frontier)
            for nodeId in frontier:
                node = fetched.get(nodeId)
                if node is None:
                    logger.warning(f"Placement search hit missing member {nodeId}, skipping")
                    continue

                for slot in (Slot.LEFT, Slot.RIGHT):
                    if node.childID(slot.value) is None:
                        logger.debug(f"Next placement under {startId}: {node.memberID}/{slot.value}")
                        return node.memberID, slot.value

                queue.append(node.leftChildID)
                queue.append(node.rightChildID)

        raise PlacementExhausted(f"No available placement found under member {startId}")

    # ============================================================
    # ASSIGNMENT
    # ============================================================

    async def place(self, memberId: int, uplineId: int, slot: str) -> Member:
        """
        Atomically place member into upline's slot and commit.

        Raises:
            NotFound: Unknown member or upline
            InvalidPlacement: Member already placed, self placement or cycle
            SlotOccupied: Slot taken (checked under lock and on write)
        """
        slotValue = _parseSlot(slot).value

        try:
            member = self.members.getForUpdate(memberId)
            if memberId == uplineId:
                raise InvalidPlacement(f"Member {memberId} cannot be placed under itself")
            if member.uplineID is not None:
                raise InvalidPlacement(
                    f"Member {memberId} is already placed under {member.uplineID}"
                )

            upline = self.members.getForUpdate(uplineId)
            self.checkNotInSubtree(memberId, upline)

            if upline.childID(slotValue) is not None:
                raise SlotOccupied(uplineId, slotValue)

            if not self.members.claimSlot(uplineId, slotValue, memberId):
                raise SlotOccupied(uplineId, slotValue)

            self.members.updatePlacement(memberId, uplineId, slotValue)
            self.session.commit()

        except IntegrityError as e:
            self.session.rollback()
            logger.warning(f"Slot contention placing {memberId} under {uplineId}/{slotValue}: {e.orig}")
            raise SlotOccupied(uplineId, slotValue) from e
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"✓ Member {memberId} placed under {uplineId} ({slotValue})")
        return member

    async def placeWithSpillover(
            self,
            memberId: int,
            sponsorId: int,
            preferredSlot: str = Slot.LEFT.value,
            maxAttempts: int = 3
    ) -> Member:
        """
        Resolve a placement under the sponsor and place, re-resolving after
        every lost race up to maxAttempts times.

        Raises:
            SlotOccupied: If the last attempt still lost its slot
        """
        if maxAttempts < 1:
            raise ValueError(f"maxAttempts must be positive, got {maxAttempts}")

        lastError: Optional[SlotOccupied] = None

        for attempt in range(1, maxAttempts + 1):
            targetId, slot = await self.findNextAvailablePlacement(sponsorId, preferredSlot)
            try:
                return await self.place(memberId, targetId, slot)
            except SlotOccupied as e:
                lastError = e
                logger.warning(
                    f"Placement attempt {attempt}/{maxAttempts} for member {memberId} lost: {e}"
                )

        raise lastError

    def checkNotInSubtree(self, memberId: int, upline: Member):
        """Walk the upline chain; finding memberId means a cycle."""
        current = upline
        visited = set()

        for _ in range(MAX_CHAIN_WALK):
            if current.memberID == memberId:
                raise InvalidPlacement(
                    f"Upline {upline.memberID} is inside the subtree of member {memberId}"
                )
            if current.uplineID is None or current.memberID in visited:
                return
            visited.add(current.memberID)

            parent = self.members.find(current.uplineID)
            if parent is None:
                logger.warning(f"Upline {current.uplineID} of member {current.memberID} not found")
                return
            current = parent

        logger.error(f"Upline chain above member {upline.memberID} exceeds {MAX_CHAIN_WALK} levels")
