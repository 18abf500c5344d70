# tests/test_placement.py
"""
Tests for binary placement: slot resolution, spillover search and
atomic slot assignment.

Run:
    pytest tests/test_placement.py -v
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from core.db import enable_sqlite_savepoints
from models import Base, Member
from network_comp.errors import NotFound, SlotOccupied, PlacementExhausted, InvalidPlacement
from network_comp.repositories.member_repository import MemberRepository
from network_comp.services.placement_service import PlacementService


@pytest.fixture
def placement(session):
    return PlacementService(session)


@pytest.fixture
def full_two_levels(make_member, link):
    """
    R with both slots filled, A and B with both slots filled,
    D with only its left slot filled.

                R
             /     \\
            A       B
           / \\     / \\
          C   D   E   F
             /
            G
    """
    nodes = {name: make_member(name=name) for name in "RABCDEFG"}
    link(nodes["R"], nodes["A"], "left")
    link(nodes["R"], nodes["B"], "right")
    link(nodes["A"], nodes["C"], "left")
    link(nodes["A"], nodes["D"], "right")
    link(nodes["B"], nodes["E"], "left")
    link(nodes["B"], nodes["F"], "right")
    link(nodes["D"], nodes["G"], "left")
    return nodes


# =============================================================================
# TEST CLASS: availableSlots
# =============================================================================

class TestAvailableSlots:
    """Open slots of an upline."""

    @pytest.mark.asyncio
    async def test_new_member_has_both_slots(self, placement, make_member):
        member = make_member(name="solo")
        assert await placement.availableSlots(member.memberID) == ["left", "right"]

    @pytest.mark.asyncio
    async def test_filled_slot_is_not_offered(self, placement, make_member, link):
        upline = make_member(name="up")
        link(upline, make_member(name="child"), "left")

        assert await placement.availableSlots(upline.memberID) == ["right"]

    @pytest.mark.asyncio
    async def test_unknown_upline_raises(self, placement):
        with pytest.raises(NotFound):
            await placement.availableSlots(424242)


# =============================================================================
# TEST CLASS: findNextAvailablePlacement
# =============================================================================

class TestFindNextAvailablePlacement:
    """Spillover search order."""

    @pytest.mark.asyncio
    async def test_preferred_slot_of_start_wins(self, placement, make_member):
        root = make_member(name="R")

        assert await placement.findNextAvailablePlacement(root.memberID) == (root.memberID, "left")
        assert await placement.findNextAvailablePlacement(root.memberID, "right") == (root.memberID, "right")

    @pytest.mark.asyncio
    async def test_other_slot_of_start_when_preferred_taken(self, placement, make_member, link):
        root = make_member(name="R")
        link(root, make_member(name="A"), "left")

        assert await placement.findNextAvailablePlacement(root.memberID, "left") == (root.memberID, "right")

    @pytest.mark.asyncio
    async def test_first_open_grandchild_slot(self, placement, full_two_levels):
        """
        TEST: Root and both children full.

        Breadth-first from the left child visits A, B, then C, D, E, F;
        C is the first node with an open slot.
        """
        nodes = full_two_levels

        target = await placement.findNextAvailablePlacement(nodes["R"].memberID, "left")

        assert target == (nodes["C"].memberID, "left")

    @pytest.mark.asyncio
    async def test_grandchild_with_one_open_slot(self, placement, make_member, link):
        """
        TEST: Root and children full, every grandchild slot filled except D's right.
        """
        nodes = {name: make_member(name=name) for name in "RABCD"}
        link(nodes["R"], nodes["A"], "left")
        link(nodes["R"], nodes["B"], "right")
        link(nodes["A"], nodes["C"], "left")
        link(nodes["A"], nodes["D"], "right")
        link(nodes["B"], make_member(name="E"), "left")
        link(nodes["B"], make_member(name="F"), "right")
        link(nodes["C"], make_member(name="C1"), "left")
        link(nodes["C"], make_member(name="C2"), "right")
        link(nodes["D"], make_member(name="D1"), "left")

        target = await placement.findNextAvailablePlacement(nodes["R"].memberID, "left")

        assert target == (nodes["D"].memberID, "right")

    @pytest.mark.asyncio
    async def test_preferred_right_searches_right_leg_first(self, placement, full_two_levels):
        nodes = full_two_levels

        target = await placement.findNextAvailablePlacement(nodes["R"].memberID, "right")

        # Queue starts with B, so E is the first node at depth 2
        assert target == (nodes["E"].memberID, "left")

    @pytest.mark.asyncio
    async def test_search_is_deterministic(self, placement, full_two_levels):
        rootId = full_two_levels["R"].memberID

        first = await placement.findNextAvailablePlacement(rootId, "left")
        second = await placement.findNextAvailablePlacement(rootId, "left")

        assert first == second

    @pytest.mark.asyncio
    async def test_unknown_start_raises(self, placement):
        with pytest.raises(NotFound):
            await placement.findNextAvailablePlacement(999)

    @pytest.mark.asyncio
    async def test_dangling_children_exhaust_search(self, placement, session, make_member):
        """
        TEST: Both slots point at rows that do not exist.

        Nothing is reachable, so the search is exhausted instead of crashing.
        """
        root = make_member(name="R", leftChildID=9001, rightChildID=9002)

        with pytest.raises(PlacementExhausted):
            await placement.findNextAvailablePlacement(root.memberID)


# =============================================================================
# TEST CLASS: place
# =============================================================================

class TestPlace:
    """Atomic slot assignment."""

    @pytest.mark.asyncio
    async def test_place_fills_exactly_one_slot(self, placement, session, make_member):
        upline = make_member(name="up")
        member = make_member(name="new")

        await placement.place(member.memberID, upline.memberID, "left")

        session.refresh(upline)
        session.refresh(member)
        assert upline.leftChildID == member.memberID
        assert upline.rightChildID is None
        assert member.uplineID == upline.memberID
        assert member.slot == "left"

    @pytest.mark.asyncio
    async def test_place_leaves_siblings_untouched(self, placement, session, binary_tree, make_member):
        nodes = binary_tree
        before = {
            name: (m.leftChildID, m.rightChildID, m.uplineID)
            for name, m in nodes.items() if name != "B"
        }
        newcomer = make_member(name="N")

        await placement.place(newcomer.memberID, nodes["B"].memberID, "right")

        for name, state in before.items():
            session.refresh(nodes[name])
            m = nodes[name]
            assert (m.leftChildID, m.rightChildID, m.uplineID) == state
        session.refresh(nodes["B"])
        assert nodes["B"].leftChildID == nodes["E"].memberID
        assert nodes["B"].rightChildID == newcomer.memberID

    @pytest.mark.asyncio
    async def test_occupied_slot_raises(self, placement, session, make_member, link):
        upline = make_member(name="up")
        taken = make_member(name="first")
        link(upline, taken, "left")
        member = make_member(name="second")

        with pytest.raises(SlotOccupied):
            await placement.place(member.memberID, upline.memberID, "left")

        session.refresh(upline)
        session.refresh(member)
        assert upline.leftChildID == taken.memberID
        assert member.uplineID is None

    @pytest.mark.asyncio
    async def test_lost_conditional_update_raises(self, placement, session, make_member, monkeypatch):
        """
        TEST: Another writer claimed the slot between the check and the write.
        """
        upline = make_member(name="up")
        member = make_member(name="new")
        monkeypatch.setattr(placement.members, "claimSlot", lambda *args: False)

        with pytest.raises(SlotOccupied):
            await placement.place(member.memberID, upline.memberID, "right")

        session.refresh(member)
        assert member.uplineID is None

    @pytest.mark.asyncio
    async def test_unique_violation_maps_to_slot_occupied(self, placement, make_member, monkeypatch):
        upline = make_member(name="up")
        member = make_member(name="new")

        def _conflict(*args):
            raise IntegrityError("UPDATE members", {}, Exception("UNIQUE constraint failed"))

        monkeypatch.setattr(placement.members, "updatePlacement", _conflict)

        with pytest.raises(SlotOccupied):
            await placement.place(member.memberID, upline.memberID, "left")

    @pytest.mark.asyncio
    async def test_already_placed_member_raises(self, placement, binary_tree):
        nodes = binary_tree

        with pytest.raises(InvalidPlacement):
            await placement.place(nodes["E"].memberID, nodes["B"].memberID, "right")

    @pytest.mark.asyncio
    async def test_self_placement_raises(self, placement, make_member):
        member = make_member(name="self")

        with pytest.raises(InvalidPlacement):
            await placement.place(member.memberID, member.memberID, "left")

    @pytest.mark.asyncio
    async def test_upline_inside_own_subtree_raises(self, placement, make_member, link):
        """
        TEST: X (unplaced) already owns Y; placing X under Y would form a cycle.
        """
        x = make_member(name="X")
        y = make_member(name="Y")
        link(x, y, "left")

        with pytest.raises(InvalidPlacement):
            await placement.place(x.memberID, y.memberID, "left")

    @pytest.mark.asyncio
    async def test_unknown_upline_raises(self, placement, make_member):
        member = make_member(name="new")

        with pytest.raises(NotFound):
            await placement.place(member.memberID, 31337, "left")

    @pytest.mark.asyncio
    async def test_invalid_slot_raises(self, placement, make_member):
        upline = make_member(name="up")
        member = make_member(name="new")

        with pytest.raises(InvalidPlacement):
            await placement.place(member.memberID, upline.memberID, "middle")


# =============================================================================
# TEST CLASS: placeWithSpillover
# =============================================================================

class TestPlaceWithSpillover:
    """Resolve-and-place with re-resolution after lost races."""

    @pytest.mark.asyncio
    async def test_spills_into_first_open_slot(self, placement, session, full_two_levels, make_member):
        nodes = full_two_levels
        newcomer = make_member(name="N")

        await placement.placeWithSpillover(newcomer.memberID, nodes["R"].memberID)

        session.refresh(newcomer)
        assert newcomer.uplineID == nodes["C"].memberID
        assert newcomer.slot == "left"

    @pytest.mark.asyncio
    async def test_retries_after_slot_occupied(self, placement, session, make_member, monkeypatch):
        sponsor = make_member(name="S")
        newcomer = make_member(name="N")
        realPlace = placement.place
        calls = []

        async def _flaky(memberId, uplineId, slot):
            calls.append((uplineId, slot))
            if len(calls) == 1:
                raise SlotOccupied(uplineId, slot)
            return await realPlace(memberId, uplineId, slot)

        monkeypatch.setattr(placement, "place", _flaky)

        await placement.placeWithSpillover(newcomer.memberID, sponsor.memberID)

        assert len(calls) == 2
        session.refresh(newcomer)
        assert newcomer.uplineID == sponsor.memberID

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, placement, make_member, monkeypatch):
        sponsor = make_member(name="S")
        newcomer = make_member(name="N")
        calls = []

        async def _always_lost(memberId, uplineId, slot):
            calls.append(slot)
            raise SlotOccupied(uplineId, slot)

        monkeypatch.setattr(placement, "place", _always_lost)

        with pytest.raises(SlotOccupied):
            await placement.placeWithSpillover(newcomer.memberID, sponsor.memberID, maxAttempts=3)

        assert len(calls) == 3


# =============================================================================
# CONCURRENT WRITERS (two sessions on one database file)
# =============================================================================

@pytest.fixture
def file_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'placement.db'}")
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def two_sessions(file_engine):
    """Two independent sessions; loaded rows stay readable after commit."""
    Session = sessionmaker(bind=file_engine, expire_on_commit=False)
    first, second = Session(), Session()
    yield first, second
    first.close()
    second.close()


def seed_members(engine, *names):
    session = sessionmaker(bind=engine)()
    members = [Member(name=name) for name in names]
    session.add_all(members)
    session.commit()
    ids = [m.memberID for m in members]
    session.close()
    return ids


def reload(session, memberId):
    session.expire_all()
    return session.query(Member).filter_by(memberID=memberId).one()


class TestConcurrentPlacement:

    @pytest.mark.asyncio
    async def test_second_writer_for_same_slot_loses(self, file_engine, two_sessions):
        """
        TEST: Two placers resolve the same open slot, the first one commits.

        The second placer re-reads the upline under lock and gets SlotOccupied;
        the slot keeps the first child.
        """
        first, second = two_sessions
        uplineId, winnerId, loserId = seed_members(file_engine, "up", "winner", "loser")

        placerA = PlacementService(first)
        placerB = PlacementService(second)
        assert await placerA.findNextAvailablePlacement(uplineId, "left") == (uplineId, "left")
        assert await placerB.findNextAvailablePlacement(uplineId, "left") == (uplineId, "left")
        first.commit()
        second.commit()

        await placerA.place(winnerId, uplineId, "left")

        with pytest.raises(SlotOccupied):
            await placerB.place(loserId, uplineId, "left")

        upline = reload(first, uplineId)
        assert upline.leftChildID == winnerId
        assert reload(first, loserId).uplineID is None

    def test_conditional_slot_claim_after_other_commit(self, file_engine, two_sessions):
        """
        TEST: A writer holding a stale empty-slot view cannot overwrite the slot.
        """
        first, second = two_sessions
        uplineId, winnerId, loserId = seed_members(file_engine, "up", "winner", "loser")

        stale = second.query(Member).filter_by(memberID=uplineId).one()
        assert stale.leftChildID is None
        second.commit()

        assert MemberRepository(first).claimSlot(uplineId, "left", winnerId) is True
        first.commit()

        assert MemberRepository(second).claimSlot(uplineId, "left", loserId) is False
        second.rollback()

        assert reload(first, uplineId).leftChildID == winnerId

    @pytest.mark.asyncio
    async def test_member_placed_elsewhere_meanwhile_is_rejected(self, file_engine, two_sessions):
        """
        TEST: The same member placed by two writers into different uplines.

        The later write is conditional on the member still being unplaced,
        so the member keeps its first upline and the second upline stays empty.
        """
        first, second = two_sessions
        upAId, upBId, memberId = seed_members(file_engine, "upA", "upB", "member")

        stale = second.query(Member).filter_by(memberID=memberId).one()
        assert stale.uplineID is None
        second.commit()

        await PlacementService(first).place(memberId, upAId, "left")

        with pytest.raises(InvalidPlacement):
            MemberRepository(second).updatePlacement(memberId, upBId, "right")
        second.rollback()

        with pytest.raises(InvalidPlacement):
            await PlacementService(second).place(memberId, upBId, "right")

        member = reload(first, memberId)
        assert member.uplineID == upAId
        assert member.slot == "left"
        assert reload(first, upBId).rightChildID is None
