# network_comp/breakdown.py
"""
Itemized commission breakdown.

Every component keeps the list of details it was summed from, so a settled
amount can always be traced back to the sales and joins that produced it.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from network_comp.utils.period import Window, money


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass
class ComponentBreakdown:
    """One commission component: amount plus the details it sums."""
    name: str
    amount: Decimal = Decimal("0.00")
    details: List[Dict[str, Any]] = field(default_factory=list)
    note: Optional[str] = None

    def addDetail(self, amount: Decimal, **fields) -> Decimal:
        """Append a detail and add its (cent-rounded) amount to the component."""
        amount = money(amount)
        self.details.append(dict(fields, amount=amount))
        self.amount = money(self.amount + amount)
        return amount

    def toDict(self) -> Dict[str, Any]:
        result = {
            "amount": _jsonable(self.amount),
            "details": _jsonable(self.details),
        }
        if self.note:
            result["note"] = self.note
        return result


@dataclass
class LevelOverrideBreakdown(ComponentBreakdown):
    byLevel: Dict[int, Decimal] = field(default_factory=dict)

    def addSale(self, level: int, amount: Decimal, **fields) -> Decimal:
        amount = self.addDetail(amount, level=level, **fields)
        self.byLevel[level] = money(self.byLevel.get(level, Decimal("0")) + amount)
        return amount

    def toDict(self) -> Dict[str, Any]:
        result = super().toDict()
        result["byLevel"] = _jsonable(self.byLevel)
        return result


@dataclass
class CommissionBreakdown:
    """Commissions of one member for one window."""
    memberID: int
    topology: str
    window: Window
    directJoin: ComponentBreakdown
    levelOverrides: LevelOverrideBreakdown
    structureBonus: ComponentBreakdown

    @property
    def directJoinBonus(self) -> Decimal:
        return self.directJoin.amount

    @property
    def levelOverridesTotal(self) -> Decimal:
        return self.levelOverrides.amount

    @property
    def structureBonusAmount(self) -> Decimal:
        return self.structureBonus.amount

    @property
    def total(self) -> Decimal:
        return money(self.directJoin.amount + self.levelOverrides.amount + self.structureBonus.amount)

    def toDict(self) -> Dict[str, Any]:
        """JSON-serializable audit record (stored in the snapshot)."""
        return {
            "memberID": self.memberID,
            "topology": self.topology,
            "window": {
                "start": self.window.start.isoformat(),
                "end": self.window.end.isoformat(),
            },
            "directJoin": self.directJoin.toDict(),
            "levelOverrides": self.levelOverrides.toDict(),
            "structureBonus": dict(self.structureBonus.toDict(), name=self.structureBonus.name),
            "total": float(self.total),
        }
