"""
Commission rate snapshot.

Rates are administrator-mutable, so every calculation captures them once
into an immutable RateTable and never re-reads the table mid-run.
"""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Iterable, Mapping, Optional
import logging

from network_comp.config.constants import RateKind, RewardType

logger = logging.getLogger(__name__)


def _toDecimal(value) -> Decimal:
    """Convert a stored numeric value, treating missing/garbage as zero."""
    if value is None:
        return Decimal("0")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        logger.warning(f"Invalid numeric rate value '{value}', using 0")
        return Decimal("0")


@dataclass(frozen=True)
class RateSnapshot:
    """Numeric fields of one active commission rate."""
    rateId: Optional[int]
    kind: str
    rewardType: str
    level: Optional[int]
    percentage: Decimal
    fixedAmount: Decimal

    @property
    def isPercentage(self) -> bool:
        return self.rewardType == RewardType.PERCENTAGE.value

    @property
    def isFixed(self) -> bool:
        return self.rewardType == RewardType.FIXED.value

    def describe(self, perUnit: str = "") -> str:
        """Human readable rate, stored in audit details."""
        if self.isPercentage:
            return f"{self.percentage}%"
        return f"{self.fixedAmount}{perUnit}"

    @classmethod
    def fromModel(cls, rate) -> "RateSnapshot":
        return cls(
            rateId=getattr(rate, "rateID", None),
            kind=rate.kind,
            rewardType=(rate.rewardType or "").lower(),
            level=rate.level,
            percentage=_toDecimal(rate.percentage),
            fixedAmount=_toDecimal(rate.fixedAmount),
        )


@dataclass(frozen=True)
class RateTable:
    """Immutable view of the active rates, grouped by kind."""
    directJoin: Optional[RateSnapshot] = None
    levelOverrides: Mapping[int, RateSnapshot] = field(
        default_factory=lambda: MappingProxyType({})
    )
    groupVolume: Optional[RateSnapshot] = None

    def levelRate(self, level: int) -> Optional[RateSnapshot]:
        return self.levelOverrides.get(level)

    @classmethod
    def fromRates(cls, rates: Iterable) -> "RateTable":
        """
        Build table from CommissionRate rows (or anything with the same fields).

        Rows with an unknown reward type or a level_override without a valid
        level are dropped: that component then simply pays nothing.
        When a kind appears twice, the row with the lowest rateID wins.
        """
        snapshots = sorted(
            (RateSnapshot.fromModel(r) for r in rates),
            key=lambda s: (s.rateId is None, s.rateId or 0)
        )

        validTypes = {t.value for t in RewardType}
        single = {}
        levels = {}

        for snap in snapshots:
            if snap.rewardType not in validTypes:
                logger.warning(
                    f"Ignoring rate {snap.rateId} ({snap.kind}): "
                    f"unknown reward type '{snap.rewardType}'"
                )
                continue

            if snap.kind == RateKind.LEVEL_OVERRIDE.value:
                if snap.level is None or snap.level < 1:
                    logger.warning(f"Ignoring level_override rate {snap.rateId}: invalid level {snap.level}")
                    continue
                if snap.level in levels:
                    logger.warning(f"Duplicate level_override rate for level {snap.level}, keeping first")
                    continue
                levels[snap.level] = snap
                continue

            if snap.kind in single:
                logger.warning(f"Duplicate active '{snap.kind}' rate {snap.rateId}, keeping first")
                continue
            single[snap.kind] = snap

        used = (RateKind.DIRECT_JOIN.value, RateKind.GROUP_VOLUME.value)
        for kind in single:
            if kind not in used:
                logger.debug(f"Rate kind '{kind}' is not used by the calculator")

        return cls(
            directJoin=single.get(RateKind.DIRECT_JOIN.value),
            levelOverrides=MappingProxyType(levels),
            groupVolume=single.get(RateKind.GROUP_VOLUME.value),
        )
