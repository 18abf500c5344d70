# tests/test_commission_service.py
"""
Tests for commission calculation.

Covers the component identities (total is the sum of components, each
component is the sum of its details) and the worked examples:

    R has direct joins A, B; direct_join fixed 50; level_override L1 10%;
    A sells PV 1000  ->  direct 100, level[1] 100, total 200

    Binary, left leg 300, right leg 500, group_volume fixed 20 per 1000 PV
    ->  bonus 0
"""
import json
from datetime import datetime
from decimal import Decimal

import pytest

from network_comp.errors import NotFound
from network_comp.services.commission_service import CommissionService
from network_comp.utils.period import monthWindow

YEAR, MONTH = 2025, 5
JOINED_IN_PERIOD = datetime(2025, 5, 3, 8, 0)


@pytest.fixture
def commissions(session):
    return CommissionService(session)


@pytest.fixture
def window():
    return monthWindow(YEAR, MONTH)


def assert_identities(breakdown):
    assert breakdown.total == (
        breakdown.directJoinBonus + breakdown.levelOverridesTotal + breakdown.structureBonusAmount
    )
    for component in (breakdown.directJoin, breakdown.levelOverrides, breakdown.structureBonus):
        assert component.amount == sum((d["amount"] for d in component.details), Decimal("0"))


# =============================================================================
# TEST CLASS: Worked examples
# =============================================================================

class TestWorkedExamples:

    @pytest.mark.asyncio
    async def test_direct_joins_plus_level_one_override(
            self, commissions, window, make_member, link, add_sale, add_rate
    ):
        root = make_member(name="R")
        a = make_member(name="A", createdAt=JOINED_IN_PERIOD)
        b = make_member(name="B", createdAt=JOINED_IN_PERIOD)
        link(root, a, "left")
        link(root, b, "right")
        add_rate("direct_join", "fixed", fixedAmount=50)
        add_rate("level_override", "percentage", level=1, percentage=10)
        add_sale(a, 1000, productID=7, productName="Starter Pack")

        breakdown = await commissions.calculateBinaryCommissions(root.memberID, window)

        assert breakdown.directJoinBonus == Decimal("100")
        assert breakdown.levelOverrides.byLevel == {1: Decimal("100")}
        assert breakdown.total == Decimal("200")
        assert_identities(breakdown)

        sale = breakdown.levelOverrides.details[0]
        assert sale["memberId"] == a.memberID
        assert sale["productName"] == "Starter Pack"
        assert sale["pv"] == Decimal("1000")

    @pytest.mark.asyncio
    async def test_weaker_leg_below_block_pays_nothing(
            self, commissions, window, binary_tree, add_sale, add_rate
    ):
        nodes = binary_tree
        add_sale(nodes["A"], 300)
        add_sale(nodes["B"], 500)
        add_rate("group_volume", "fixed", fixedAmount=20)

        breakdown = await commissions.calculateBinaryCommissions(nodes["R"].memberID, window)

        assert breakdown.structureBonusAmount == Decimal("0")
        detail = breakdown.structureBonus.details[0]
        assert detail["leftLegPV"] == Decimal("300")
        assert detail["rightLegPV"] == Decimal("500")
        assert detail["weakerLegPV"] == Decimal("300")
        assert_identities(breakdown)


# =============================================================================
# TEST CLASS: Direct join bonus
# =============================================================================

class TestDirectJoinBonus:

    @pytest.mark.asyncio
    async def test_joins_outside_window_do_not_count(
            self, commissions, window, make_member, add_rate
    ):
        root = make_member(name="R")
        make_member(name="old", uplineID=root.memberID)
        make_member(name="new", uplineID=root.memberID, createdAt=JOINED_IN_PERIOD)
        make_member(name="next", uplineID=root.memberID, createdAt=datetime(2025, 6, 1))
        add_rate("direct_join", "fixed", fixedAmount=25)

        breakdown = await commissions.calculateUnilevelCommissions(root.memberID, window)

        assert breakdown.directJoinBonus == Decimal("25")
        assert [d["name"] for d in breakdown.directJoin.details] == ["new"]

    @pytest.mark.asyncio
    async def test_percentage_rate_pays_zero_per_join(
            self, commissions, window, make_member, add_rate
    ):
        root = make_member(name="R")
        make_member(name="new", uplineID=root.memberID, createdAt=JOINED_IN_PERIOD)
        add_rate("direct_join", "percentage", percentage=10)

        breakdown = await commissions.calculateUnilevelCommissions(root.memberID, window)

        assert breakdown.directJoinBonus == Decimal("0")
        assert len(breakdown.directJoin.details) == 1
        assert_identities(breakdown)

    @pytest.mark.asyncio
    async def test_missing_rate_pays_zero_without_details(self, commissions, window, make_member):
        root = make_member(name="R")
        make_member(name="new", uplineID=root.memberID, createdAt=JOINED_IN_PERIOD)

        breakdown = await commissions.calculateUnilevelCommissions(root.memberID, window)

        assert breakdown.directJoinBonus == Decimal("0")
        assert breakdown.directJoin.details == []


# =============================================================================
# TEST CLASS: Level overrides
# =============================================================================

class TestLevelOverrides:

    @pytest.mark.asyncio
    async def test_fixed_rate_pays_per_sale(self, commissions, window, binary_tree, add_sale, add_rate):
        nodes = binary_tree
        add_sale(nodes["C"], 10)
        add_sale(nodes["C"], 5000)
        add_rate("level_override", "fixed", level=2, fixedAmount=5)

        breakdown = await commissions.calculateBinaryCommissions(nodes["R"].memberID, window)

        assert breakdown.levelOverrides.byLevel == {2: Decimal("10")}
        assert breakdown.levelOverridesTotal == Decimal("10")

    @pytest.mark.asyncio
    async def test_each_level_uses_its_own_rate(
            self, commissions, window, unilevel_tree, add_sale, add_rate
    ):
        nodes = unilevel_tree
        add_sale(nodes["A"], 200)
        add_sale(nodes["D"], 100)
        add_sale(nodes["F"], 100)
        add_rate("level_override", "percentage", level=1, percentage=10)
        add_rate("level_override", "percentage", level=2, percentage=5)

        breakdown = await commissions.calculateUnilevelCommissions(nodes["R"].memberID, window)

        # Level 3 has no rate
        assert breakdown.levelOverrides.byLevel == {1: Decimal("20"), 2: Decimal("5")}
        assert breakdown.levelOverridesTotal == Decimal("25")
        assert_identities(breakdown)

    @pytest.mark.asyncio
    async def test_levels_beyond_max_depth_are_ignored(
            self, commissions, window, binary_tree, add_sale, add_rate, set_config
    ):
        nodes = binary_tree
        set_config(binary_max_depth="1")
        add_sale(nodes["C"], 100)
        add_rate("level_override", "percentage", level=2, percentage=10)

        breakdown = await commissions.calculateBinaryCommissions(nodes["R"].memberID, window)

        assert breakdown.levelOverridesTotal == Decimal("0")

    @pytest.mark.asyncio
    async def test_own_sales_are_not_overridden(
            self, commissions, window, binary_tree, add_sale, add_rate
    ):
        nodes = binary_tree
        add_sale(nodes["R"], 1000)
        add_rate("level_override", "percentage", level=1, percentage=10)

        breakdown = await commissions.calculateBinaryCommissions(nodes["R"].memberID, window)

        assert breakdown.levelOverridesTotal == Decimal("0")

    @pytest.mark.asyncio
    async def test_malformed_rate_contributes_zero(
            self, commissions, window, binary_tree, add_sale, add_rate
    ):
        nodes = binary_tree
        add_sale(nodes["A"], 1000)
        add_rate("level_override", "bogus", level=1, percentage=10)

        breakdown = await commissions.calculateBinaryCommissions(nodes["R"].memberID, window)

        assert breakdown.levelOverridesTotal == Decimal("0")
        assert breakdown.total == Decimal("0")


# =============================================================================
# TEST CLASS: Group volume bonus (binary)
# =============================================================================

class TestGroupVolumeBonus:

    @pytest.mark.asyncio
    async def test_percentage_of_weaker_leg(self, commissions, window, binary_tree, add_sale, add_rate):
        nodes = binary_tree
        add_sale(nodes["C"], 300)
        add_sale(nodes["E"], 500)
        add_rate("group_volume", "percentage", percentage=10)

        breakdown = await commissions.calculateBinaryCommissions(nodes["R"].memberID, window)

        assert breakdown.structureBonusAmount == Decimal("30")

    @pytest.mark.asyncio
    async def test_fixed_pays_per_full_block(self, commissions, window, binary_tree, add_sale, add_rate):
        nodes = binary_tree
        add_sale(nodes["A"], 2500)
        add_sale(nodes["B"], 4000)
        add_rate("group_volume", "fixed", fixedAmount=20)

        breakdown = await commissions.calculateBinaryCommissions(nodes["R"].memberID, window)

        assert breakdown.structureBonusAmount == Decimal("40")

    @pytest.mark.asyncio
    async def test_no_rate_no_bonus(self, commissions, window, binary_tree, add_sale):
        nodes = binary_tree
        add_sale(nodes["A"], 2500)
        add_sale(nodes["B"], 4000)

        breakdown = await commissions.calculateBinaryCommissions(nodes["R"].memberID, window)

        assert breakdown.structureBonusAmount == Decimal("0")
        assert breakdown.structureBonus.details == []


# =============================================================================
# TEST CLASS: Performance bonus (unilevel)
# =============================================================================

class TestPerformanceBonus:

    @pytest.mark.asyncio
    async def test_disabled_pays_nothing(
            self, commissions, window, unilevel_tree, add_sale, default_tiers
    ):
        add_sale(unilevel_tree["R"], 100, amount=5000)

        breakdown = await commissions.calculateUnilevelCommissions(unilevel_tree["R"].memberID, window)

        assert breakdown.structureBonusAmount == Decimal("0")
        assert breakdown.structureBonus.details == []

    @pytest.mark.asyncio
    async def test_tier_matches_own_sales_amount(
            self, commissions, window, unilevel_tree, add_sale, default_tiers, set_config
    ):
        set_config(performance_bonus_enabled="true")
        add_sale(unilevel_tree["R"], 100, amount=1000)
        add_sale(unilevel_tree["R"], 100, amount=500)
        # Downline sales do not count
        add_sale(unilevel_tree["A"], 100, amount=9000)

        breakdown = await commissions.calculateUnilevelCommissions(unilevel_tree["R"].memberID, window)

        assert breakdown.structureBonusAmount == Decimal("30")
        detail = breakdown.structureBonus.details[0]
        assert detail["tier"] == "Bronze"
        assert detail["totalSales"] == Decimal("1500")
        assert_identities(breakdown)

    @pytest.mark.asyncio
    async def test_below_lowest_tier(
            self, commissions, window, unilevel_tree, add_sale, default_tiers, set_config
    ):
        set_config(performance_bonus_enabled="true")
        add_sale(unilevel_tree["R"], 100, amount=999)

        breakdown = await commissions.calculateUnilevelCommissions(unilevel_tree["R"].memberID, window)

        assert breakdown.structureBonusAmount == Decimal("0")
        assert breakdown.structureBonus.details[0]["tier"] is None


# =============================================================================
# TEST CLASS: Breakdown record
# =============================================================================

class TestBreakdownRecord:

    @pytest.mark.asyncio
    async def test_audit_record_is_json_serializable(
            self, commissions, window, binary_tree, add_sale, add_rate
    ):
        nodes = binary_tree
        add_sale(nodes["A"], 1234.56)
        add_rate("level_override", "percentage", level=1, percentage=7.5)
        add_rate("group_volume", "percentage", percentage=10)

        breakdown = await commissions.calculateBinaryCommissions(nodes["R"].memberID, window)
        record = json.loads(json.dumps(breakdown.toDict()))

        assert record["topology"] == "binary"
        assert record["levelOverrides"]["byLevel"] == {"1": 92.59}
        assert record["total"] == float(breakdown.total)

    @pytest.mark.asyncio
    async def test_unknown_member_raises(self, commissions, window):
        with pytest.raises(NotFound):
            await commissions.calculateBinaryCommissions(8080, window)
