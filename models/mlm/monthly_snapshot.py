"""
MonthlySnapshot model - settled earnings of one member for one month.
Written only by the settlement batch; re-runs overwrite the row.
"""
from decimal import Decimal
from sqlalchemy import Column, Integer, String, DECIMAL, ForeignKey, JSON, UniqueConstraint
from models.base import Base, AuditMixin


class MonthlySnapshot(Base, AuditMixin):
    __tablename__ = 'monthly_snapshots'

    snapshotID = Column(Integer, primary_key=True, autoincrement=True)
    memberID = Column(Integer, ForeignKey('members.memberID'), nullable=False, index=True)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)

    topology = Column(String(10), nullable=False)  # binary / unilevel at settlement time

    # Volumes
    personalPV = Column(DECIMAL(18, 2), default=Decimal("0"))
    leftLegPV = Column(DECIMAL(18, 2), default=Decimal("0"))
    rightLegPV = Column(DECIMAL(18, 2), default=Decimal("0"))
    totalGroupPV = Column(DECIMAL(18, 2), default=Decimal("0"))

    # Earnings
    directJoinBonus = Column(DECIMAL(18, 2), default=Decimal("0"))
    levelOverrides = Column(DECIMAL(18, 2), default=Decimal("0"))
    groupVolumeBonus = Column(DECIMAL(18, 2), default=Decimal("0"))
    performanceBonus = Column(DECIMAL(18, 2), default=Decimal("0"))
    totalEarnings = Column(DECIMAL(18, 2), default=Decimal("0"))

    # Itemized commission breakdown (audit trail)
    breakdown = Column(JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint('memberID', 'year', 'month', name='_snapshot_member_period_uc'),
    )

    def __repr__(self):
        return (
            f"<MonthlySnapshot(member={self.memberID}, {self.year}-{self.month:02d}, "
            f"total={self.totalEarnings})>"
        )
